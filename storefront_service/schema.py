from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, EmailStr, Field

from .models import (
    OrderStatusEnum,
    PaymentMethod,
    PaymentStatusEnum,
    ShippingStatusEnum,
)

Quantity = Annotated[int, Field(gt=0, le=99)]


# --- Auth / Account Schemas ---
class RegisterRequest(BaseModel):
    name: str = Field(min_length=2, max_length=80)
    email: EmailStr
    password: str = Field(min_length=8)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordReset(BaseModel):
    email: EmailStr
    token: str = Field(min_length=10)
    new_password: str = Field(min_length=8)


class ProfileUpdate(BaseModel):
    name: str = Field(min_length=2, max_length=80)


class User(BaseModel):
    id: int
    email: str
    name: str

    class Config:
        from_attributes = True


class UserEnvelope(BaseModel):
    user: User


class SuccessResponse(BaseModel):
    success: bool = True


# --- Address Schemas ---
class AddressFields(BaseModel):
    label: str | None = Field(default=None, min_length=2, max_length=50)
    full_name: str = Field(min_length=2, max_length=80)
    line1: str = Field(min_length=3, max_length=120)
    line2: str | None = Field(default=None, max_length=120)
    city: str = Field(min_length=2, max_length=80)
    state: str = Field(min_length=2, max_length=80)
    postal_code: str = Field(min_length=3, max_length=20)
    country: str = Field(min_length=2, max_length=80)
    phone: str | None = Field(default=None, min_length=7, max_length=20)


class AddressCreate(AddressFields):
    is_default: bool = False


class AddressUpdate(BaseModel):
    label: str | None = Field(default=None, min_length=2, max_length=50)
    full_name: str | None = Field(default=None, min_length=2, max_length=80)
    line1: str | None = Field(default=None, min_length=3, max_length=120)
    line2: str | None = Field(default=None, max_length=120)
    city: str | None = Field(default=None, min_length=2, max_length=80)
    state: str | None = Field(default=None, min_length=2, max_length=80)
    postal_code: str | None = Field(default=None, min_length=3, max_length=20)
    country: str | None = Field(default=None, min_length=2, max_length=80)
    phone: str | None = Field(default=None, min_length=7, max_length=20)
    is_default: bool | None = None


class Address(AddressCreate):
    id: int

    class Config:
        from_attributes = True


class AddressSnapshot(BaseModel):
    """Shipping address as frozen onto an order at placement time."""

    full_name: str
    line1: str
    line2: str | None = None
    city: str
    state: str
    postal_code: str
    country: str
    phone: str | None = None

    class Config:
        from_attributes = True
        frozen = True


class SavedAddressSelector(BaseModel):
    kind: Literal["saved"]
    address_id: int = Field(gt=0)


class InlineAddressSelector(AddressFields):
    kind: Literal["inline"]


AddressSelector = Annotated[
    Union[SavedAddressSelector, InlineAddressSelector],
    Field(discriminator="kind"),
]


class SessionUser(User):
    addresses: list[Address] = []


class SessionEnvelope(BaseModel):
    user: SessionUser | None


# --- Catalog Schemas ---
class NamedRef(BaseModel):
    id: int
    name: str
    slug: str

    class Config:
        from_attributes = True


class ProductImage(BaseModel):
    id: int
    url: str
    alt: str | None = None
    is_primary: bool

    class Config:
        from_attributes = True


class ProductSummary(BaseModel):
    id: int
    name: str
    slug: str
    price_cents: int
    rating: float
    brand: str
    category: str
    image: str | None = None
    inventory: int


class Pagination(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int


class PriceRange(BaseModel):
    min: int
    max: int


class CatalogFilters(BaseModel):
    categories: list[NamedRef]
    brands: list[NamedRef]
    price_range: PriceRange


class ProductList(BaseModel):
    products: list[ProductSummary]
    pagination: Pagination
    filters: CatalogFilters


class ProductDetail(BaseModel):
    id: int
    name: str
    slug: str
    description: str
    sku: str | None = None
    price_cents: int
    rating: float
    inventory: int
    brand: str
    category: str
    images: list[ProductImage]


class Review(BaseModel):
    id: int
    rating: int
    comment: str
    reviewer: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ReviewCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=10, max_length=500)


class ReviewEnvelope(BaseModel):
    review: Review
    product_rating: float


class ExternalReview(BaseModel):
    rating: float
    comment: str
    reviewer: str
    date: str | None = None


class Recommendation(BaseModel):
    id: int
    title: str
    rating: float
    image: str | None = None
    slug: str | None = None
    brand: str | None = None
    price_cents: int | None = None
    price: float | None = None
    external: bool = False


class ProductInsights(BaseModel):
    product: ProductDetail
    reviews: list[Review]
    external_reviews: list[ExternalReview]
    recommendations: list[Recommendation]


# --- Cart Schemas ---
class CartItemCreate(BaseModel):
    product_id: int = Field(gt=0)
    quantity: Quantity


class CartItemUpdate(BaseModel):
    quantity: Quantity


class CartProduct(BaseModel):
    id: int
    name: str
    slug: str
    price_cents: int
    rating: float
    brand: str
    image: str | None = None
    inventory: int


class CartLine(BaseModel):
    id: int
    quantity: int
    product: CartProduct


class Cart(BaseModel):
    items: list[CartLine] = []
    subtotal_cents: int


# --- Checkout / Order Schemas ---
class CheckoutLine(BaseModel):
    product_id: int = Field(gt=0)
    quantity: Quantity


class QuoteRequest(BaseModel):
    cart_items: list[CheckoutLine]


class Quote(BaseModel):
    subtotal_cents: int
    tax_cents: int
    shipping_cents: int
    total_cents: int


class CheckoutRequest(BaseModel):
    cart_items: list[CheckoutLine]
    address: AddressSelector | None = None
    payment_method: PaymentMethod


class OrderItem(BaseModel):
    id: int
    product_id: int | None = None
    product_name: str
    product_slug: str
    price_cents: int
    image_url: str | None = None
    quantity: int

    class Config:
        from_attributes = True


class Order(BaseModel):
    id: int
    order_number: str
    status: OrderStatusEnum
    payment_status: PaymentStatusEnum
    shipping_status: ShippingStatusEnum
    payment_method: PaymentMethod
    subtotal_cents: int
    tax_cents: int
    shipping_cents: int
    total_cents: int
    address_snapshot: AddressSnapshot
    shipping_tracking_id: str | None = None
    created_at: datetime | None = None
    items: list[OrderItem] = []

    class Config:
        from_attributes = True


class PaymentDirective(BaseModel):
    provider: PaymentMethod
    order_number: str
    simulated: bool = False
    verified: bool = True
    session_id: str | None = None
    redirect_url: str | None = None
    client_id: str | None = None
    message: str | None = None


class CheckoutResponse(BaseModel):
    order: Order
    payment: PaymentDirective


class OrderList(BaseModel):
    orders: list[Order]


class TrackRequest(BaseModel):
    order_number: str = Field(min_length=1)


class ShippingCheckpoint(BaseModel):
    label: str
    detail: str


class ShippingProgress(BaseModel):
    status: Literal["CREATED", "PROCESSING", "IN_TRANSIT", "OUT_FOR_DELIVERY", "DELIVERED", "UNKNOWN"]
    summary: str
    estimated_delivery: str | None = None
    checkpoints: list[ShippingCheckpoint] = []
