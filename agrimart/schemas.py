"""
Request schemas for the REST API.

Each mutating endpoint validates its JSON body against one of these models
before touching the database. Update schemas leave every field optional and
the handlers only write the fields the client actually sent
(``model_fields_set``), so an omitted field stays unchanged while an
explicit ``null`` clears it.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Request(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra='ignore')


# Auth / users

class SignupRequest(_Request):
    number: str = Field(..., min_length=1, max_length=20)
    # Already hashed on the device; hashed again before storage.
    password: str = Field(..., min_length=1)
    full_name: Optional[str] = None


class SigninRequest(_Request):
    number: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RefreshRequest(_Request):
    refresh_token: str = Field(..., min_length=1)


class CreateAdminRequest(_Request):
    number: str = Field(..., min_length=1, max_length=20)
    password: str = Field(..., min_length=1)
    full_name: Optional[str] = None
    role: int = Field(1, description="1=Vendor, 2=Master, 3=Support")

    @field_validator('role')
    @classmethod
    def _staff_role(cls, v):
        if v not in (1, 2, 3):
            raise ValueError('role must be 1 (vendor), 2 (master) or 3 '
                             '(support)')
        return v


class UpdateUserRequest(_Request):
    full_name: Optional[str] = None
    number: Optional[str] = Field(None, min_length=1, max_length=20)
    address: Optional[str] = None
    delivery_address: Optional[str] = None
    role: Optional[int] = None


# Catalog

class VariantRequest(_Request):
    label: str = Field(..., min_length=1, max_length=80)
    price: Decimal = Field(..., ge=0)
    stock_available: int = Field(0, ge=0)


class VariantUpdateRequest(_Request):
    label: Optional[str] = Field(None, min_length=1, max_length=80)
    price: Optional[Decimal] = Field(None, ge=0)
    stock_available: Optional[int] = Field(None, ge=0)


class ProductCreateRequest(_Request):
    name: str = Field(..., min_length=1, max_length=200)
    name_ta: Optional[str] = None
    plant_used: Optional[str] = None
    plant_used_ta: Optional[str] = None
    keywords: Union[str, List[str]] = ''
    details: Optional[str] = None
    details_ta: Optional[str] = None
    seller_name: Optional[str] = None
    image: Optional[str] = None
    unit: Optional[str] = None
    stock_available: int = Field(0, ge=0)
    cost_per_unit: Decimal = Field(Decimal('0'), ge=0)
    # When present the product is created through the variants path.
    variants: Optional[List[VariantRequest]] = None

    @field_validator('keywords')
    @classmethod
    def _join_keywords(cls, v):
        if isinstance(v, list):
            return ', '.join(k.strip() for k in v if k and k.strip())
        return v

    @field_validator('variants')
    @classmethod
    def _at_least_one_variant(cls, v):
        if v is not None and len(v) == 0:
            raise ValueError('at least one variant is required')
        return v


class ProductUpdateRequest(_Request):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    name_ta: Optional[str] = None
    plant_used: Optional[str] = None
    plant_used_ta: Optional[str] = None
    keywords: Optional[Union[str, List[str]]] = None
    details: Optional[str] = None
    details_ta: Optional[str] = None
    seller_name: Optional[str] = None
    image: Optional[str] = None
    unit: Optional[str] = None
    stock_available: Optional[int] = None
    cost_per_unit: Optional[Decimal] = Field(None, ge=0)

    @field_validator('keywords')
    @classmethod
    def _join_keywords(cls, v):
        if isinstance(v, list):
            return ', '.join(k.strip() for k in v if k and k.strip())
        return v


class ProductReviewRequest(_Request):
    status: Literal['approved', 'rejected', 'pending']
    note: Optional[str] = None

    @field_validator('status', mode='before')
    @classmethod
    def _lower(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class KeywordRequest(_Request):
    name: str = Field(..., min_length=1, max_length=100)


# Cart / orders

class CartAddRequest(_Request):
    product_id: int
    quantity: int = Field(1, ge=1)
    variant_id: Optional[int] = None


class CartItemUpdateRequest(_Request):
    product_id: int
    quantity: int
    variant_id: Optional[int] = None


class CartItemRemoveRequest(_Request):
    product_id: int
    variant_id: Optional[int] = None


class CreateOrderRequest(_Request):
    payment_method: str = Field(..., min_length=1, max_length=40)
    delivery_address: Optional[str] = None
    note: Optional[str] = None


class UpdateOrderStatusRequest(_Request):
    status: Optional[str] = Field(None, min_length=1)
    status_note: Optional[str] = None
    delivery_date: Optional[str] = None
    logistics_name: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None


class RatingRequest(_Request):
    rating: int = Field(..., ge=1, le=5)
    review: Optional[str] = None


# Crop content

class CropRequest(_Request):
    name: str = Field(..., min_length=1, max_length=120)
    name_ta: Optional[str] = None
    image: Optional[str] = None


class CropUpdateRequest(_Request):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    name_ta: Optional[str] = None
    image: Optional[str] = None


class CropGuideRequest(_Request):
    language: Literal['en', 'ta'] = 'en'
    cultivation_guide: Optional[str] = None
    pest_management: Optional[str] = None
    disease_management: Optional[str] = None


class CropIssueRequest(_Request):
    language: Literal['en', 'ta'] = 'en'
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    management: Optional[str] = None

    @field_validator('language', mode='before')
    @classmethod
    def _lower(cls, v):
        return (v or 'en').strip().lower() if isinstance(v, str) else v


class CropIssueUpdateRequest(_Request):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    management: Optional[str] = None


class IssueImageRequest(_Request):
    image: str = Field(..., min_length=1)
    caption: Optional[str] = None
    caption_ta: Optional[str] = None


class LogisticsRequest(_Request):
    name: str = Field(..., min_length=1, max_length=120)
    tracking_url: Optional[str] = None


# Notifications / messaging / scanning

class NotificationRequest(_Request):
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    title_ta: Optional[str] = None
    message_ta: Optional[str] = None


class PushRegisterRequest(_Request):
    token: str = Field(..., min_length=1)


class ConversationCreateRequest(_Request):
    user_ids: List[int] = Field(..., min_length=1)
    initial_text: Optional[str] = None


class MessageRequest(_Request):
    text: str = Field(..., min_length=1)


class SeenRequest(_Request):
    seen_at: Optional[datetime] = None


class ScanPlantRequest(_Request):
    name: str = Field(..., min_length=1, max_length=120)
    name_ta: Optional[str] = Field(None, max_length=120)


class ScanRequest(_Request):
    image: str = Field(..., min_length=1, description="Base64 image")
    plant_name: str = Field(..., min_length=1)
    language: Literal['en', 'ta'] = 'en'
