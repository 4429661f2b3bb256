from flask import Blueprint, jsonify
from sqlalchemy import text
from agrimart.extensions import db

bp = Blueprint('public', __name__)


@bp.route('/health')
def health():
    db.session.execute(text('SELECT 1'))
    return jsonify({'status': 'ok'})
