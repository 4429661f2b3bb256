from agrimart.extensions import db
from agrimart.roles import Role
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime
from sqlalchemy import CheckConstraint, UniqueConstraint
import enum
import json


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class ProductStatus(enum.Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class OrderStatus(enum.Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    PROCESSING = 'processing'
    DISPATCHED = 'dispatched'
    CANCELLED = 'cancelled'


class Language(enum.Enum):
    EN = 'en'
    TA = 'ta'


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    # Phone number is the login identity.
    number = db.Column(db.String(20), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name = db.Column(db.String(120), nullable=True)
    # Booking address and default delivery address.
    address = db.Column(db.Text, nullable=True)
    delivery_address = db.Column(db.Text, nullable=True)
    role = db.Column(db.Integer, nullable=False, default=int(Role.USER))
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    last_login_at = db.Column(db.DateTime, nullable=True)

    cart_items = db.relationship(
        'CartItem',
        backref='user',
        lazy='dynamic',
        cascade='all, delete-orphan')
    orders = db.relationship('Order', backref='user', lazy='dynamic')

    @property
    def role_enum(self) -> Role:
        return Role(self.role)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'number': self.number,
            'full_name': self.full_name,
            'address': self.address,
            'delivery_address': self.delivery_address,
            'role': self.role,
            'created_at': self.created_at.isoformat(),
        }

    def __repr__(self):
        return f'<User {self.number} role={self.role}>'


class Product(db.Model):
    __tablename__ = 'products'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    name_ta = db.Column(db.String(200), nullable=True)
    plant_used = db.Column(db.String(200), nullable=True)
    plant_used_ta = db.Column(db.String(200), nullable=True)
    # Comma-joined keyword tags.
    keywords = db.Column(db.Text, nullable=False, default='')
    details = db.Column(db.Text, nullable=True)
    details_ta = db.Column(db.Text, nullable=True)
    seller_name = db.Column(db.String(120), nullable=True)
    image = db.Column(db.String(500), nullable=True)
    unit = db.Column(db.String(40), nullable=True)
    # Derived from variants when the product has any (sum / min).
    stock_available = db.Column(db.Integer, nullable=False, default=0)
    cost_per_unit = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    status = db.Column(
        db.Enum(ProductStatus, values_callable=_enum_values),
        default=ProductStatus.APPROVED,
        nullable=False)
    created_by = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='SET NULL'),
        nullable=True,
        index=True)
    reviewed_by = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='SET NULL'),
        nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    review_note = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    creator = db.relationship('User', foreign_keys=[created_by])
    variants = db.relationship(
        'ProductVariant',
        backref='product',
        lazy='dynamic',
        cascade='all, delete-orphan',
        order_by='ProductVariant.price')
    cart_items = db.relationship(
        'CartItem',
        backref='product',
        lazy='dynamic',
        cascade='all, delete-orphan')

    def keyword_list(self):
        return [k.strip() for k in (self.keywords or '').split(',')
                if k.strip()]

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'name_ta': self.name_ta,
            'plant_used': self.plant_used,
            'plant_used_ta': self.plant_used_ta,
            'keywords': self.keywords,
            'details': self.details,
            'details_ta': self.details_ta,
            'seller_name': self.seller_name,
            'image': self.image,
            'unit': self.unit,
            'stock_available': self.stock_available,
            'cost_per_unit': float(self.cost_per_unit or 0),
            'status': self.status.value,
            'created_by': self.created_by,
            'review_note': self.review_note,
            'created_at': self.created_at.isoformat(),
        }

    def __repr__(self):
        return f'<Product {self.name}>'


class ProductVariant(db.Model):
    __tablename__ = 'product_variants'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'products.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    label = db.Column(db.String(80), nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    stock_available = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    __table_args__ = (
        UniqueConstraint(
            'product_id',
            'label',
            name='uq_product_variant_label'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'label': self.label,
            'price': float(self.price),
            'stock_available': self.stock_available,
        }

    def __repr__(self):
        return f'<ProductVariant {self.label} product={self.product_id}>'


class CartItem(db.Model):
    __tablename__ = 'cart_items'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'products.id',
            ondelete='CASCADE'),
        nullable=False)
    variant_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'product_variants.id',
            ondelete='CASCADE'),
        nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    variant = db.relationship('ProductVariant')

    __table_args__ = (
        UniqueConstraint(
            'user_id',
            'product_id',
            'variant_id',
            name='uq_cart_user_product_variant'),
        CheckConstraint('quantity > 0', name='check_quantity_positive'),
    )

    @property
    def unit_price(self):
        if self.variant is not None:
            return self.variant.price
        return self.product.cost_per_unit

    def __repr__(self):
        return (
            f"<CartItem user={self.user_id} product={self.product_id} "
            f"qty={self.quantity}>"
        )


class Order(db.Model):
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method = db.Column(db.String(40), nullable=False)
    delivery_address = db.Column(db.Text, nullable=True)
    status = db.Column(
        db.Enum(OrderStatus, values_callable=_enum_values),
        default=OrderStatus.PENDING,
        nullable=False)
    status_note = db.Column(db.Text, nullable=True)
    delivery_date = db.Column(db.String(40), nullable=True)
    logistics_name = db.Column(db.String(120), nullable=True)
    tracking_number = db.Column(db.String(120), nullable=True)
    tracking_url = db.Column(db.String(500), nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    items = db.relationship(
        'OrderItem',
        backref='order',
        lazy='dynamic',
        cascade='all, delete-orphan',
        order_by='OrderItem.id')
    history = db.relationship(
        'OrderStatusHistory',
        backref='order',
        lazy='dynamic',
        cascade='all, delete-orphan',
        order_by='OrderStatusHistory.id')

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'total_amount': float(self.total_amount),
            'payment_method': self.payment_method,
            'delivery_address': self.delivery_address,
            'status': self.status.value,
            'status_note': self.status_note,
            'delivery_date': self.delivery_date,
            'logistics_name': self.logistics_name,
            'tracking_number': self.tracking_number,
            'tracking_url': self.tracking_url,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
        }

    def __repr__(self):
        return f'<Order {self.id} status={self.status}>'


class OrderItem(db.Model):
    __tablename__ = 'order_items'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'orders.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey('products.id'),
        nullable=False,
        index=True)
    variant_id = db.Column(db.Integer, nullable=True)
    # Name/price snapshot taken when the order was placed.
    product_name = db.Column(db.String(200), nullable=False)
    variant_label = db.Column(db.String(80), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    price_per_unit = db.Column(db.Numeric(10, 2), nullable=False)
    rating = db.Column(db.Integer, nullable=True)
    review = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_order_quantity_positive'),
        CheckConstraint(
            'rating IS NULL OR (rating >= 1 AND rating <= 5)',
            name='check_order_item_rating_range'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'product_id': self.product_id,
            'variant_id': self.variant_id,
            'product_name': self.product_name,
            'variant_label': self.variant_label,
            'quantity': self.quantity,
            'price_per_unit': float(self.price_per_unit),
            'rating': self.rating,
            'review': self.review,
        }

    def __repr__(self):
        return (
            f"<OrderItem {self.id} order={self.order_id} "
            f"product={self.product_id}>"
        )


class OrderStatusHistory(db.Model):
    __tablename__ = 'order_status_history'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'orders.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    status = db.Column(
        db.Enum(OrderStatus, values_callable=_enum_values),
        nullable=False)
    note = db.Column(db.Text, nullable=True)
    changed_by = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='SET NULL'),
        nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)

    def to_dict(self):
        return {
            'status': self.status.value,
            'note': self.note,
            'created_at': self.created_at.isoformat(),
        }

    def __repr__(self):
        return f'<OrderStatusHistory order={self.order_id} {self.status}>'


class Keyword(db.Model):
    __tablename__ = 'keywords'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    def to_dict(self):
        return {'id': self.id, 'name': self.name}

    def __repr__(self):
        return f'<Keyword {self.name}>'


class LogisticsCarrier(db.Model):
    __tablename__ = 'logistics'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    # Template with a {tracking} or %s placeholder.
    tracking_url = db.Column(db.String(500), nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'tracking_url': self.tracking_url,
        }

    def __repr__(self):
        return f'<LogisticsCarrier {self.name}>'


class Crop(db.Model):
    __tablename__ = 'crops'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    name_ta = db.Column(db.String(120), nullable=True)
    image = db.Column(db.String(500), nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    guides = db.relationship(
        'CropGuide',
        backref='crop',
        lazy='dynamic',
        cascade='all, delete-orphan')
    pests = db.relationship(
        'CropPest',
        backref='crop',
        lazy='dynamic',
        cascade='all, delete-orphan')
    diseases = db.relationship(
        'CropDisease',
        backref='crop',
        lazy='dynamic',
        cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'name_ta': self.name_ta,
            'image': self.image,
        }

    def __repr__(self):
        return f'<Crop {self.name}>'


class CropGuide(db.Model):
    __tablename__ = 'crop_guides'

    id = db.Column(db.Integer, primary_key=True)
    crop_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'crops.id',
            ondelete='CASCADE'),
        nullable=False)
    language = db.Column(db.String(5), nullable=False, default='en')
    cultivation_guide = db.Column(db.Text, nullable=True)
    pest_management = db.Column(db.Text, nullable=True)
    disease_management = db.Column(db.Text, nullable=True)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    __table_args__ = (
        UniqueConstraint('crop_id', 'language', name='uq_crop_guide_lang'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'crop_id': self.crop_id,
            'language': self.language,
            'cultivation_guide': self.cultivation_guide,
            'pest_management': self.pest_management,
            'disease_management': self.disease_management,
        }

    def __repr__(self):
        return f'<CropGuide crop={self.crop_id} lang={self.language}>'


class _CropIssueMixin:
    """Shared columns for pests and diseases.

    English and Tamil entries are separate rows keyed by
    (crop, language, name).
    """

    id = db.Column(db.Integer, primary_key=True)
    language = db.Column(db.String(5), nullable=False, default='en')
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    management = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    def to_dict(self, with_images=False):
        data = {
            'id': self.id,
            'crop_id': self.crop_id,
            'language': self.language,
            'name': self.name,
            'description': self.description,
            'management': self.management,
        }
        if with_images:
            data['images'] = [img.to_dict() for img in self.images]
        return data


class CropPest(_CropIssueMixin, db.Model):
    __tablename__ = 'crop_pests'

    crop_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'crops.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)

    images = db.relationship(
        'CropPestImage',
        backref='pest',
        cascade='all, delete-orphan',
        order_by='CropPestImage.id')

    __table_args__ = (
        UniqueConstraint(
            'crop_id',
            'language',
            'name',
            name='uq_crop_pest_lang_name'),
    )

    def __repr__(self):
        return f'<CropPest {self.name} ({self.language})>'


class CropDisease(_CropIssueMixin, db.Model):
    __tablename__ = 'crop_diseases'

    crop_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'crops.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)

    images = db.relationship(
        'CropDiseaseImage',
        backref='disease',
        cascade='all, delete-orphan',
        order_by='CropDiseaseImage.id')

    __table_args__ = (
        UniqueConstraint(
            'crop_id',
            'language',
            'name',
            name='uq_crop_disease_lang_name'),
    )

    def __repr__(self):
        return f'<CropDisease {self.name} ({self.language})>'


class _IssueImageMixin:
    id = db.Column(db.Integer, primary_key=True)
    image_url = db.Column(db.String(500), nullable=False)
    caption = db.Column(db.Text, nullable=True)
    caption_ta = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'image': self.image_url,
            'caption': self.caption,
            'caption_ta': self.caption_ta,
        }


class CropPestImage(_IssueImageMixin, db.Model):
    __tablename__ = 'crop_pest_images'

    pest_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'crop_pests.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)


class CropDiseaseImage(_IssueImageMixin, db.Model):
    __tablename__ = 'crop_disease_images'

    disease_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'crop_diseases.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)


class ScanPlant(db.Model):
    """A plant the scanner offers to choose from."""
    __tablename__ = 'scan_plants'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    name_ta = db.Column(db.String(120), nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'name_ta': self.name_ta}

    def __repr__(self):
        return f'<ScanPlant {self.name}>'


conversation_participants = db.Table(
    'conversation_participants',
    db.Column(
        'conversation_id',
        db.Integer,
        db.ForeignKey('conversations.id', ondelete='CASCADE'),
        primary_key=True),
    db.Column(
        'user_id',
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        primary_key=True),
)


class Conversation(db.Model):
    __tablename__ = 'conversations'

    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    last_message_at = db.Column(db.DateTime, nullable=True)

    participants = db.relationship(
        'User',
        secondary=conversation_participants,
        lazy='selectin')
    messages = db.relationship(
        'Message',
        backref='conversation',
        lazy='dynamic',
        cascade='all, delete-orphan')

    @property
    def participant_ids(self):
        return sorted(u.id for u in self.participants)

    def __repr__(self):
        return f'<Conversation {self.id}>'


class Message(db.Model):
    __tablename__ = 'messages'

    id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'conversations.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    sender_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False)
    text = db.Column(db.Text, nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)

    sender = db.relationship('User', foreign_keys=[sender_id])

    def to_dict(self):
        return {
            'id': self.id,
            'conversation_id': self.conversation_id,
            'sender_id': self.sender_id,
            'text': self.text,
            'created_at': self.created_at.isoformat(),
        }

    def __repr__(self):
        return f'<Message {self.id} conv={self.conversation_id}>'


class ConversationSeen(db.Model):
    __tablename__ = 'conversation_seen'

    conversation_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'conversations.id',
            ondelete='CASCADE'),
        primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        primary_key=True)
    last_seen_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    def __repr__(self):
        return (
            f'<ConversationSeen conv={self.conversation_id} '
            f'user={self.user_id}>'
        )


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    title_ta = db.Column(db.String(200), nullable=True)
    message_ta = db.Column(db.Text, nullable=True)
    # NULL means a system-wide notification.
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=True,
        index=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'message': self.message,
            'title_ta': self.title_ta,
            'message_ta': self.message_ta,
            'user_id': self.user_id,
            'created_at': self.created_at.isoformat(),
        }

    def __repr__(self):
        return f'<Notification {self.id} user={self.user_id}>'


class PushToken(db.Model):
    __tablename__ = 'push_tokens'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=True,
        index=True)
    token = db.Column(db.String(255), unique=True, nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    def __repr__(self):
        return f'<PushToken user={self.user_id}>'


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='SET NULL'),
        nullable=True)
    actor_role = db.Column(db.String(20), nullable=False)
    # e.g., ORDER_CREATE, ROLE_CHANGE
    action = db.Column(db.String(100), nullable=False)
    # ORDER, PRODUCT, USER, etc.
    target_type = db.Column(db.String(50), nullable=True)
    target_id = db.Column(db.Integer, nullable=True)
    ip = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)
    # JSON format key field snapshot
    payload_json = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)

    actor = db.relationship('User', foreign_keys=[actor_id])

    def set_payload(self, data):
        self.payload_json = json.dumps(data, ensure_ascii=False)

    def get_payload(self):
        if self.payload_json:
            return json.loads(self.payload_json)
        return {}

    def __repr__(self):
        return f'<AuditLog {self.id} action={self.action}>'
