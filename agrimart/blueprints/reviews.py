from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from agrimart.schemas import RatingRequest
from agrimart.services import order_service
from agrimart.utils import parse_body

bp = Blueprint('reviews', __name__)


@bp.route('/order-items/<int:item_id>/rating', methods=['PATCH'])
@login_required
def rate_item(item_id):
    req = parse_body(RatingRequest)
    item = order_service.rate_order_item(
        current_user, item_id, req.rating, req.review)
    return jsonify(item.to_dict())


@bp.route('/products/<int:product_id>/reviews', methods=['GET'])
def product_reviews(product_id):
    reviews = order_service.product_reviews(product_id)
    average = (
        round(sum(r['rating'] for r in reviews) / len(reviews), 2)
        if reviews else None
    )
    return jsonify({
        'average_rating': average,
        'count': len(reviews),
        'reviews': reviews,
    })
