from agrimart.extensions import db
from agrimart.errors import NotFoundError, ValidationError
from agrimart.models import (
    Crop,
    CropDisease,
    CropDiseaseImage,
    CropGuide,
    CropPest,
    CropPestImage,
    Keyword,
    LogisticsCarrier,
    ScanPlant,
)
from sqlalchemy.exc import IntegrityError
import logging

logger = logging.getLogger(__name__)

CROP_FIELDS = ('name', 'name_ta', 'image')
GUIDE_FIELDS = ('cultivation_guide', 'pest_management', 'disease_management')
ISSUE_FIELDS = ('name', 'description', 'management')

# kind -> (issue model, image model, image FK column)
ISSUE_KINDS = {
    'pests': (CropPest, CropPestImage, 'pest_id'),
    'diseases': (CropDisease, CropDiseaseImage, 'disease_id'),
}


def _commit(conflict_message):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(conflict_message) from None


def _issue_kind(kind):
    try:
        return ISSUE_KINDS[kind]
    except KeyError:
        raise NotFoundError(f'Unknown content type: {kind}') from None


# Keywords

def list_keywords():
    return Keyword.query.order_by(Keyword.name).all()


def add_keyword(name) -> Keyword:
    name = (name or '').strip()
    if not name:
        raise ValidationError('Keyword cannot be empty')
    if Keyword.query.filter_by(name=name).first():
        raise ValidationError('Keyword already exists')
    keyword = Keyword(name=name)
    db.session.add(keyword)
    _commit('Keyword already exists')
    return keyword


def delete_keyword(keyword_id) -> None:
    keyword = db.session.get(Keyword, keyword_id)
    if not keyword:
        raise NotFoundError('Keyword not found')
    db.session.delete(keyword)
    db.session.commit()


# Scanner plants

def list_scan_plants():
    return ScanPlant.query.order_by(ScanPlant.name).all()


def add_scan_plant(name, name_ta=None) -> ScanPlant:
    name = (name or '').strip()
    if not name:
        raise ValidationError('Plant name cannot be empty')
    if ScanPlant.query.filter_by(name=name).first():
        raise ValidationError('Plant already exists')
    plant = ScanPlant(name=name, name_ta=name_ta or None)
    db.session.add(plant)
    _commit('Plant already exists')
    logger.info("Scanner plant added: %s", name)
    return plant


def delete_scan_plant(plant_id) -> None:
    plant = db.session.get(ScanPlant, plant_id)
    if not plant:
        raise NotFoundError('Plant not found')
    db.session.delete(plant)
    db.session.commit()


# Logistics carriers

def list_carriers():
    return LogisticsCarrier.query.order_by(LogisticsCarrier.name).all()


def add_carrier(name, tracking_url=None) -> LogisticsCarrier:
    carrier = LogisticsCarrier(name=name, tracking_url=tracking_url)
    db.session.add(carrier)
    _commit('Logistics carrier already exists')
    return carrier


def update_carrier(carrier_id, changes: dict) -> LogisticsCarrier:
    carrier = db.session.get(LogisticsCarrier, carrier_id)
    if not carrier:
        raise NotFoundError('Logistics carrier not found')
    for key in ('name', 'tracking_url'):
        if key in changes:
            setattr(carrier, key, changes[key])
    _commit('Logistics carrier already exists')
    return carrier


def delete_carrier(carrier_id) -> None:
    carrier = db.session.get(LogisticsCarrier, carrier_id)
    if not carrier:
        raise NotFoundError('Logistics carrier not found')
    db.session.delete(carrier)
    db.session.commit()


# Crops

def list_crops():
    return Crop.query.order_by(Crop.name).all()


def get_crop(crop_id) -> Crop:
    crop = db.session.get(Crop, crop_id)
    if not crop:
        raise NotFoundError('Crop not found')
    return crop


def create_crop(data: dict) -> Crop:
    crop = Crop(**{k: v for k, v in data.items() if k in CROP_FIELDS})
    db.session.add(crop)
    _commit('Crop already exists')
    logger.info("Crop %s created", crop.name)
    return crop


def update_crop(crop_id, changes: dict) -> Crop:
    crop = get_crop(crop_id)
    for key in CROP_FIELDS:
        if key in changes:
            if key == 'name' and not changes[key]:
                raise ValidationError('name cannot be empty')
            setattr(crop, key, changes[key])
    _commit('Crop already exists')
    return crop


def delete_crop(crop_id) -> None:
    crop = get_crop(crop_id)
    db.session.delete(crop)
    db.session.commit()
    logger.info("Crop %s deleted", crop_id)


def get_guide(crop_id, language='en'):
    return CropGuide.query.filter_by(
        crop_id=crop_id, language=language).first()


def upsert_guide(crop_id, language, changes: dict) -> CropGuide:
    get_crop(crop_id)
    guide = get_guide(crop_id, language)
    if guide is None:
        guide = CropGuide(crop_id=crop_id, language=language)
        db.session.add(guide)
    for key in GUIDE_FIELDS:
        if key in changes:
            setattr(guide, key, changes[key])
    _commit('Guide already exists')
    return guide


def crop_bundle(crop_id, language='en') -> dict:
    """Crop with its guide, pests and diseases (plus images) in one language."""
    crop = get_crop(crop_id)
    guide = get_guide(crop.id, language)
    return {
        'crop': crop.to_dict(),
        'language': language,
        'guide': guide.to_dict() if guide else None,
        'pests': [
            p.to_dict(with_images=True)
            for p in list_issues('pests', crop.id, language)
        ],
        'diseases': [
            d.to_dict(with_images=True)
            for d in list_issues('diseases', crop.id, language)
        ],
    }


# Pests / diseases

def list_issues(kind, crop_id, language=None):
    model, _, _ = _issue_kind(kind)
    q = model.query.filter_by(crop_id=crop_id)
    if language:
        q = q.filter_by(language=language)
    return q.order_by(model.name).all()


def get_issue(kind, issue_id):
    model, _, _ = _issue_kind(kind)
    issue = db.session.get(model, issue_id)
    if not issue:
        raise NotFoundError(f'{model.__name__} not found')
    return issue


def create_issue(kind, crop_id, data: dict):
    model, _, _ = _issue_kind(kind)
    get_crop(crop_id)
    issue = model(
        crop_id=crop_id,
        language=data.get('language') or 'en',
        **{k: data.get(k) for k in ISSUE_FIELDS},
    )
    db.session.add(issue)
    _commit(f'{model.__name__} already exists for this crop and language')
    return issue


def update_issue(kind, issue_id, changes: dict):
    issue = get_issue(kind, issue_id)
    for key in ISSUE_FIELDS:
        if key in changes:
            if key == 'name' and not changes[key]:
                raise ValidationError('name cannot be empty')
            setattr(issue, key, changes[key])
    _commit(
        f'{type(issue).__name__} already exists for this crop and language')
    return issue


def delete_issue(kind, issue_id) -> None:
    issue = get_issue(kind, issue_id)
    db.session.delete(issue)
    db.session.commit()


def add_issue_image(kind, issue_id, image, caption=None, caption_ta=None):
    _, image_model, fk = _issue_kind(kind)
    issue = get_issue(kind, issue_id)
    img = image_model(
        image_url=image,
        caption=caption,
        caption_ta=caption_ta,
        **{fk: issue.id},
    )
    db.session.add(img)
    db.session.commit()
    return img


def delete_issue_image(kind, image_id) -> None:
    _, image_model, _ = _issue_kind(kind)
    img = db.session.get(image_model, image_id)
    if not img:
        raise NotFoundError('Image not found')
    db.session.delete(img)
    db.session.commit()
