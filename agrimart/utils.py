from flask import request
from pydantic import BaseModel
from agrimart.errors import ValidationError
import logging

logger = logging.getLogger(__name__)


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('JSON object expected')
    return data


def parse_body(schema: type[BaseModel]):
    """Validate the JSON body against a request schema.

    pydantic errors propagate and are rendered as 400 responses.
    """
    return schema.model_validate(json_body())


def provided_fields(model: BaseModel) -> dict:
    """Fields the client actually sent (explicit nulls included)."""
    return {name: getattr(model, name) for name in model.model_fields_set}


def build_tracking_url(template, tracking_number):
    """Fill a carrier's tracking URL template.

    ``{tracking}`` and ``%s`` are recognised placeholders; a template without
    one is returned unchanged.
    """
    if not template:
        return ''
    if not tracking_number:
        return template
    if '{tracking}' in template:
        return template.replace('{tracking}', tracking_number)
    if '%s' in template:
        return template.replace('%s', tracking_number)
    return template


def word_count(text) -> int:
    return len([w for w in (text or '').split() if w])
