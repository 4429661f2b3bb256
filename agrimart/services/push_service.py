from flask import current_app
import logging
import requests

logger = logging.getLogger(__name__)


def send_push(tokens, title, body):
    """Deliver a push message to device tokens.

    Delivery is best effort: failures are logged and never raised to the
    caller. With PUSH_ENABLED off the message is only logged.
    """
    tokens = [t for t in tokens or () if t]
    if not tokens:
        return 0

    if not current_app.config.get('PUSH_ENABLED'):
        logger.info(
            "Push (Mock): %s token(s) title=%r", len(tokens), title)
        return 0

    messages = [
        {'to': t, 'sound': 'default', 'title': title, 'body': body}
        for t in tokens
    ]
    try:
        resp = requests.post(
            current_app.config['PUSH_API_URL'],
            json=messages,
            timeout=current_app.config.get('PUSH_TIMEOUT', 10),
        )
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Push delivery failed: %s", e)
        return 0
    return len(messages)
