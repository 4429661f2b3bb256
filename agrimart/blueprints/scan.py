from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from agrimart.middleware import capability_required
from agrimart.roles import can_manage_content
from agrimart.schemas import ScanPlantRequest, ScanRequest
from agrimart.services import content_service
from agrimart.services.plant_analysis_service import analyze_plant_image
from agrimart.utils import parse_body
import logging

logger = logging.getLogger(__name__)

bp = Blueprint('scan', __name__)


@bp.route('/scan/analyze', methods=['POST'])
@login_required
def analyze():
    req = parse_body(ScanRequest)
    result = analyze_plant_image(req.image, req.plant_name, req.language)
    logger.info(
        "Plant scan by user %s: %s -> %s",
        current_user.id,
        req.plant_name,
        result.get('disease_or_pest'),
    )
    return jsonify(result)


# Plants offered by the scanner

@bp.route('/scan-plants', methods=['GET'])
def list_scan_plants():
    return jsonify(
        [p.to_dict() for p in content_service.list_scan_plants()])


@bp.route('/scan-plants', methods=['POST'])
@capability_required(can_manage_content)
def add_scan_plant():
    req = parse_body(ScanPlantRequest)
    plant = content_service.add_scan_plant(req.name, req.name_ta)
    return jsonify(plant.to_dict()), 201


@bp.route('/scan-plants/<int:plant_id>', methods=['DELETE'])
@capability_required(can_manage_content)
def delete_scan_plant(plant_id):
    content_service.delete_scan_plant(plant_id)
    return jsonify({'ok': True})
