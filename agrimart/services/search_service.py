from agrimart.models import Product, ProductStatus
from sqlalchemy import func, or_
import string
import logging

logger = logging.getLogger(__name__)

# Columns matched by the free-text product search.
SEARCH_COLUMNS = (
    Product.name,
    Product.name_ta,
    Product.keywords,
    Product.details,
    Product.details_ta,
)

# SQLite's lower() only folds A-Z, so the needle is folded the same way.
_ASCII_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)


def _sanitize_query(query):
    if not query:
        return None
    q = str(query).replace('\x00', '').strip()
    return q or None


def _fold(text):
    return text.translate(_ASCII_LOWER)


def _contains(column, needle):
    return func.lower(column).contains(_fold(needle), autoescape=True)


def approved_products():
    return Product.query.filter_by(status=ProductStatus.APPROVED)


def search_products(query=None):
    """Approved products whose text columns contain ``query``.

    Matching is a substring test over name, Tamil name, keywords, details
    and Tamil details, after stripping surrounding whitespace. Case is
    ignored for A-Z only; other scripts, Tamil included, match as written.
    An empty query returns the whole approved catalog, newest first.
    """
    base_query = approved_products()

    query_safe = _sanitize_query(query)
    if query_safe:
        base_query = base_query.filter(
            or_(*[_contains(col, query_safe) for col in SEARCH_COLUMNS])
        )

    products = base_query.order_by(
        Product.created_at.desc(), Product.id.desc()).all()
    logger.debug("search q=%r -> %s products", query_safe, len(products))
    return products


def products_by_keyword(name):
    base_query = approved_products()
    name_safe = _sanitize_query(name)
    if name_safe:
        base_query = base_query.filter(_contains(Product.keywords, name_safe))
    return base_query.order_by(
        Product.created_at.desc(), Product.id.desc()).all()
