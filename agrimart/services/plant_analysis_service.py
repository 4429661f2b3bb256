from agrimart.errors import (
    TransientUpstreamError,
    UpstreamError,
    ValidationError,
)
from flask import current_app
import json
import logging
import re
import time
import requests

logger = logging.getLogger(__name__)

RETRY_STATUSES = (429, 503)

PROMPTS = {
    'en': (
        "You are a plant disease and pest identification assistant.\n"
        "The plant is: {plant}.\n"
        "Analyze the image and return:\n"
        "1. Disease or pest\n"
        "2. Short description\n"
        "3. 3-5 keywords\n"
        "Respond strictly in JSON:\n"
        '{{ "plant": "{plant}", "disease_or_pest": "...", '
        '"description": "...", "keywords": ["..."] }}\n'
    ),
    'ta': (
        "நீங்கள் ஒரு தாவர நோய் மற்றும் பூச்சி அடையாள உதவியாளர்.\n"
        "தாவரம்: {plant}.\n"
        "படத்தை ஆய்வு செய்து பின்வருவனவற்றை வழங்கவும்:\n"
        "1. நோய் அல்லது பூச்சி\n"
        "2. சுருக்கமான விளக்கம்\n"
        "3. 3-5 முக்கிய வார்த்தைகள்\n"
        "கண்டிப்பாக JSON வடிவத்தில் பதிலளிக்கவும் (தமிழில்):\n"
        '{{ "plant": "{plant}", "disease_or_pest": "...", '
        '"description": "...", "keywords": ["..."] }}\n'
        "அனைத்து மதிப்புகளும் தமிழில் இருக்க வேண்டும்.\n"
    ),
}


def _strip_data_url(image_b64):
    # "data:image/jpeg;base64,...." -> raw base64
    if ',' in image_b64 and image_b64.startswith('data:'):
        return image_b64.split(',', 1)[1]
    return image_b64


def build_payload(image_b64, plant_name, language='en'):
    prompt = PROMPTS.get(language, PROMPTS['en']).format(plant=plant_name)
    return {
        'contents': [
            {
                'role': 'user',
                'parts': [
                    {'text': prompt},
                    {
                        'inlineData': {
                            'mimeType': 'image/jpeg',
                            'data': _strip_data_url(image_b64),
                        }
                    },
                ],
            }
        ]
    }


def _unknown(plant_name, text):
    return {
        'plant': plant_name,
        'disease_or_pest': 'Unknown',
        'description': text,
        'keywords': [],
    }


def parse_analysis(text, plant_name) -> dict:
    """Pull the JSON object out of the model's free-text answer."""
    match = re.search(r'\{.*\}', text or '', re.DOTALL)
    if not match:
        logger.warning("No JSON found in plant analysis response")
        return _unknown(plant_name, text)
    try:
        data = json.loads(match.group(0))
    except ValueError:
        logger.warning("Failed to parse plant analysis JSON")
        return _unknown(plant_name, text)
    if not isinstance(data, dict):
        return _unknown(plant_name, text)

    keywords = data.get('keywords') or []
    if not isinstance(keywords, list):
        keywords = [str(keywords)]
    return {
        'plant': data.get('plant') or plant_name,
        'disease_or_pest': data.get('disease_or_pest') or 'Unknown',
        'description': data.get('description') or '',
        'keywords': [str(k) for k in keywords],
    }


def _response_text(body):
    try:
        return body['candidates'][0]['content']['parts'][0]['text']
    except (KeyError, IndexError, TypeError):
        return None


def analyze_plant_image(image_b64, plant_name, language='en') -> dict:
    """Identify a disease or pest from a crop photo.

    Retries 429/503 responses, timeouts and connection errors with
    exponential backoff; any other failure is raised immediately.
    """
    if not image_b64:
        raise ValidationError('image is required')

    config = current_app.config
    api_key = config.get('PLANT_ANALYSIS_API_KEY')
    if not api_key:
        raise UpstreamError('Plant analysis is not configured')

    attempts = max(1, int(config.get('PLANT_ANALYSIS_ATTEMPTS', 3)))
    backoff = float(config.get('PLANT_ANALYSIS_BACKOFF', 1.0))
    timeout = config.get('PLANT_ANALYSIS_TIMEOUT', 30)
    payload = build_payload(image_b64, plant_name, language)

    last_error = None
    for attempt in range(1, attempts + 1):
        try:
            resp = requests.post(
                config['PLANT_ANALYSIS_URL'],
                params={'key': api_key},
                json=payload,
                timeout=timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            last_error = str(e) or e.__class__.__name__
        else:
            if resp.status_code in RETRY_STATUSES:
                last_error = f'HTTP {resp.status_code}'
            elif resp.status_code >= 400:
                logger.error(
                    "Plant analysis failed: HTTP %s", resp.status_code)
                raise UpstreamError(
                    f'Plant analysis failed (HTTP {resp.status_code})')
            else:
                try:
                    text = _response_text(resp.json())
                except ValueError:
                    text = None
                if not text:
                    raise UpstreamError('No response from plant analysis')
                return parse_analysis(text, plant_name)

        if attempt < attempts:
            delay = backoff * (2 ** (attempt - 1))
            logger.warning(
                "Plant analysis attempt %s/%s failed (%s); retrying in %.1fs",
                attempt,
                attempts,
                last_error,
                delay,
            )
            time.sleep(delay)

    logger.error(
        "Plant analysis gave up after %s attempts: %s", attempts, last_error)
    raise TransientUpstreamError('Plant analysis is temporarily unavailable')
