from flask import Blueprint, jsonify, request
from agrimart.errors import ValidationError
from agrimart.middleware import capability_required
from agrimart.roles import can_manage_content
from agrimart.schemas import (
    CropGuideRequest,
    CropIssueRequest,
    CropIssueUpdateRequest,
    CropRequest,
    CropUpdateRequest,
    IssueImageRequest,
    KeywordRequest,
    LogisticsRequest,
)
from agrimart.services import content_service
from agrimart.utils import parse_body, provided_fields

bp = Blueprint('content', __name__)

# Pests and diseases share one set of routes.
KIND = '<any(pests, diseases):kind>'


def _language():
    lang = (request.args.get('language') or 'en').strip().lower()
    if lang not in ('en', 'ta'):
        raise ValidationError('language must be en or ta')
    return lang


# Keywords

@bp.route('/keywords', methods=['GET'])
def list_keywords():
    return jsonify([k.to_dict() for k in content_service.list_keywords()])


@bp.route('/keywords', methods=['POST'])
@capability_required(can_manage_content)
def add_keyword():
    req = parse_body(KeywordRequest)
    keyword = content_service.add_keyword(req.name)
    return jsonify(keyword.to_dict()), 201


@bp.route('/keywords/<int:keyword_id>', methods=['DELETE'])
@capability_required(can_manage_content)
def delete_keyword(keyword_id):
    content_service.delete_keyword(keyword_id)
    return jsonify({'ok': True})


# Logistics carriers

@bp.route('/logistics', methods=['GET'])
def list_logistics():
    return jsonify([c.to_dict() for c in content_service.list_carriers()])


@bp.route('/logistics', methods=['POST'])
@capability_required(can_manage_content)
def add_logistics():
    req = parse_body(LogisticsRequest)
    carrier = content_service.add_carrier(req.name, req.tracking_url)
    return jsonify(carrier.to_dict()), 201


@bp.route('/logistics/<int:carrier_id>', methods=['PATCH'])
@capability_required(can_manage_content)
def update_logistics(carrier_id):
    req = parse_body(LogisticsRequest)
    carrier = content_service.update_carrier(
        carrier_id, provided_fields(req))
    return jsonify(carrier.to_dict())


@bp.route('/logistics/<int:carrier_id>', methods=['DELETE'])
@capability_required(can_manage_content)
def delete_logistics(carrier_id):
    content_service.delete_carrier(carrier_id)
    return jsonify({'ok': True})


# Crops

@bp.route('/crops', methods=['GET'])
def list_crops():
    return jsonify([c.to_dict() for c in content_service.list_crops()])


@bp.route('/crops', methods=['POST'])
@capability_required(can_manage_content)
def create_crop():
    req = parse_body(CropRequest)
    crop = content_service.create_crop(req.model_dump())
    return jsonify(crop.to_dict()), 201


@bp.route('/crops/<int:crop_id>', methods=['GET'])
def get_crop(crop_id):
    return jsonify(content_service.get_crop(crop_id).to_dict())


@bp.route('/crops/<int:crop_id>', methods=['PATCH'])
@capability_required(can_manage_content)
def update_crop(crop_id):
    req = parse_body(CropUpdateRequest)
    crop = content_service.update_crop(crop_id, provided_fields(req))
    return jsonify(crop.to_dict())


@bp.route('/crops/<int:crop_id>', methods=['DELETE'])
@capability_required(can_manage_content)
def delete_crop(crop_id):
    content_service.delete_crop(crop_id)
    return jsonify({'ok': True})


@bp.route('/crops/<int:crop_id>/guide', methods=['GET'])
def crop_guide(crop_id):
    return jsonify(content_service.crop_bundle(crop_id, _language()))


@bp.route('/crops/<int:crop_id>/guide', methods=['PUT'])
@capability_required(can_manage_content)
def save_crop_guide(crop_id):
    req = parse_body(CropGuideRequest)
    changes = provided_fields(req)
    changes.pop('language', None)
    guide = content_service.upsert_guide(crop_id, req.language, changes)
    return jsonify(guide.to_dict())


# Pests / diseases

@bp.route(f'/crops/<int:crop_id>/{KIND}', methods=['GET'])
def list_issues(crop_id, kind):
    content_service.get_crop(crop_id)
    language = request.args.get('language')
    issues = content_service.list_issues(
        kind, crop_id, _language() if language else None)
    return jsonify([i.to_dict(with_images=True) for i in issues])


@bp.route(f'/crops/<int:crop_id>/{KIND}', methods=['POST'])
@capability_required(can_manage_content)
def create_issue(crop_id, kind):
    req = parse_body(CropIssueRequest)
    issue = content_service.create_issue(
        kind, crop_id, req.model_dump())
    return jsonify(issue.to_dict(with_images=True)), 201


@bp.route(f'/crops/{KIND}/<int:issue_id>', methods=['PATCH'])
@capability_required(can_manage_content)
def update_issue(kind, issue_id):
    req = parse_body(CropIssueUpdateRequest)
    issue = content_service.update_issue(
        kind, issue_id, provided_fields(req))
    return jsonify(issue.to_dict(with_images=True))


@bp.route(f'/crops/{KIND}/<int:issue_id>', methods=['DELETE'])
@capability_required(can_manage_content)
def delete_issue(kind, issue_id):
    content_service.delete_issue(kind, issue_id)
    return jsonify({'ok': True})


@bp.route(f'/crops/{KIND}/<int:issue_id>/images', methods=['POST'])
@capability_required(can_manage_content)
def add_issue_image(kind, issue_id):
    req = parse_body(IssueImageRequest)
    img = content_service.add_issue_image(
        kind, issue_id, req.image, req.caption, req.caption_ta)
    return jsonify(img.to_dict()), 201


@bp.route(f'/crops/{KIND}/images/<int:image_id>', methods=['DELETE'])
@capability_required(can_manage_content)
def delete_issue_image(kind, image_id):
    content_service.delete_issue_image(kind, image_id)
    return jsonify({'ok': True})
