import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default='false'):
    return os.environ.get(name, default).lower() == 'true'


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or (
        'dev-secret-key-change-in-production'
    )
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or (
        'sqlite:///agrimart.db'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_FILE = os.environ.get('LOG_FILE', 'app.log')

    # Bearer tokens (seconds).
    ACCESS_TOKEN_MAX_AGE = int(os.environ.get('ACCESS_TOKEN_MAX_AGE', 3600))
    REFRESH_TOKEN_MAX_AGE = int(
        os.environ.get('REFRESH_TOKEN_MAX_AGE', 30 * 24 * 3600))

    # When enabled, PATCH /orders/<id> only accepts the transitions offered
    # by the admin screens (pending -> confirmed/cancelled, ...).
    ORDER_ENFORCE_TRANSITIONS = _env_flag('ORDER_ENFORCE_TRANSITIONS', 'true')

    # Push delivery (Expo push service).
    PUSH_ENABLED = _env_flag('PUSH_ENABLED')
    PUSH_API_URL = os.environ.get(
        'PUSH_API_URL', 'https://exp.host/--/api/v2/push/send')
    PUSH_TIMEOUT = int(os.environ.get('PUSH_TIMEOUT', 10))

    # Plant disease/pest recognition.
    PLANT_ANALYSIS_URL = os.environ.get(
        'PLANT_ANALYSIS_URL',
        'https://generativelanguage.googleapis.com/v1beta/models/'
        'gemini-2.5-flash:generateContent',
    )
    PLANT_ANALYSIS_API_KEY = os.environ.get('PLANT_ANALYSIS_API_KEY', '')
    PLANT_ANALYSIS_TIMEOUT = int(os.environ.get('PLANT_ANALYSIS_TIMEOUT', 30))
    PLANT_ANALYSIS_ATTEMPTS = 3
    PLANT_ANALYSIS_BACKOFF = 1.0
