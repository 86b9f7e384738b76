import logging
from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from . import accounts, addresses, cart, catalog, insights, orders, schema
from .auth import (
    AuthenticatedUser,
    clear_session_cookie,
    create_session_token,
    get_current_user,
    get_optional_user,
    set_session_cookie,
)
from .config import Settings, get_settings
from .database import get_db
from .errors import StorefrontError

logger = logging.getLogger(__name__)

DbSession = Annotated[Session, Depends(get_db)]
CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]
AppSettings = Annotated[Settings, Depends(get_settings)]


def _http_error(e: StorefrontError) -> NoReturn:
    raise HTTPException(status_code=e.status_code, detail=str(e)) from e


auth_router = APIRouter(prefix="/auth", tags=["Authentication"])


@auth_router.post("/register", response_model=schema.UserEnvelope, status_code=status.HTTP_201_CREATED)
def register(data: schema.RegisterRequest, response: Response, db: DbSession) -> schema.UserEnvelope:
    try:
        user = accounts.register_user(db, data)
    except StorefrontError as e:
        _http_error(e)
    set_session_cookie(response, create_session_token(user))
    return schema.UserEnvelope(user=schema.User.model_validate(user))


@auth_router.post("/login", response_model=schema.UserEnvelope)
def login(data: schema.LoginRequest, response: Response, db: DbSession) -> schema.UserEnvelope:
    try:
        user = accounts.authenticate(db, data)
    except StorefrontError as e:
        _http_error(e)
    set_session_cookie(response, create_session_token(user))
    return schema.UserEnvelope(user=schema.User.model_validate(user))


@auth_router.post("/logout", response_model=schema.SuccessResponse)
def logout(response: Response) -> schema.SuccessResponse:
    clear_session_cookie(response)
    return schema.SuccessResponse()


@auth_router.get("/session", response_model=schema.SessionEnvelope)
def current_session(
    db: DbSession,
    user: Annotated[AuthenticatedUser | None, Depends(get_optional_user)],
) -> schema.SessionEnvelope:
    if user is None:
        return schema.SessionEnvelope(user=None)
    return schema.SessionEnvelope(user=accounts.get_session_user(db, user.id))


@auth_router.post("/password/reset-request", response_model=schema.SuccessResponse)
def password_reset_request(data: schema.PasswordResetRequest, db: DbSession) -> schema.SuccessResponse:
    accounts.request_password_reset(db, data.email)
    return schema.SuccessResponse()


@auth_router.post("/password/reset", response_model=schema.SuccessResponse)
def password_reset(data: schema.PasswordReset, response: Response, db: DbSession) -> schema.SuccessResponse:
    try:
        user = accounts.reset_password(db, data)
    except StorefrontError as e:
        _http_error(e)
    set_session_cookie(response, create_session_token(user))
    return schema.SuccessResponse()


account_router = APIRouter(prefix="/account", tags=["Account"])


@account_router.patch("/profile", response_model=schema.UserEnvelope)
def update_profile(data: schema.ProfileUpdate, db: DbSession, user: CurrentUser) -> schema.UserEnvelope:
    try:
        updated = accounts.update_profile(db, user.id, data)
    except StorefrontError as e:
        _http_error(e)
    return schema.UserEnvelope(user=schema.User.model_validate(updated))


product_router = APIRouter(prefix="/products", tags=["Product Catalog"])


@product_router.get("", response_model=schema.ProductList)
def list_products(  # noqa: PLR0913
    db: DbSession,
    search: str | None = None,
    category: str | None = None,
    brand: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    rating: float | None = None,
    sort: str | None = None,
    page: int = 1,
    page_size: Annotated[int, Query(ge=1)] = catalog.DEFAULT_PAGE_SIZE,
) -> schema.ProductList:
    filters = catalog.ProductFilters(
        search=search,
        category=category,
        brand=brand,
        min_price=min_price,
        max_price=max_price,
        rating=rating,
        sort=sort,
        page=page,
        page_size=page_size,
    )
    return catalog.list_products(db, filters)


@product_router.get("/{slug}", response_model=schema.ProductInsights)
def retrieve_product(slug: str, db: DbSession) -> schema.ProductInsights:
    try:
        return insights.get_product_insights(db, slug)
    except StorefrontError as e:
        _http_error(e)


@product_router.post("/{slug}/reviews", response_model=schema.ReviewEnvelope)
def submit_review(
    slug: str,
    data: schema.ReviewCreate,
    db: DbSession,
    user: CurrentUser,
) -> schema.ReviewEnvelope:
    try:
        review, product_rating = catalog.submit_review(db, user.id, user.name, slug, data)
    except StorefrontError as e:
        _http_error(e)
    return schema.ReviewEnvelope(review=schema.Review.model_validate(review), product_rating=product_rating)


cart_router = APIRouter(prefix="/cart", tags=["Shopping Cart"])


@cart_router.get("", response_model=schema.Cart)
def get_cart(db: DbSession, user: CurrentUser) -> schema.Cart:
    return cart.get_cart(db, user.id)


@cart_router.post("", response_model=schema.Cart, status_code=status.HTTP_201_CREATED)
def add_to_cart(data: schema.CartItemCreate, db: DbSession, user: CurrentUser) -> schema.Cart:
    try:
        return cart.add_item(db, user.id, data)
    except StorefrontError as e:
        _http_error(e)


@cart_router.patch("/{item_id}", response_model=schema.Cart)
def update_cart_item(
    item_id: int,
    data: schema.CartItemUpdate,
    db: DbSession,
    user: CurrentUser,
) -> schema.Cart:
    try:
        return cart.update_item(db, user.id, item_id, data)
    except StorefrontError as e:
        _http_error(e)


@cart_router.delete("/{item_id}", response_model=schema.Cart)
def remove_cart_item(item_id: int, db: DbSession, user: CurrentUser) -> schema.Cart:
    return cart.remove_item(db, user.id, item_id)


address_router = APIRouter(prefix="/addresses", tags=["Addresses"])


@address_router.get("", response_model=list[schema.Address])
def list_addresses(db: DbSession, user: CurrentUser) -> list[schema.Address]:
    return addresses.list_addresses(db, user.id)


@address_router.post("", response_model=schema.Address, status_code=status.HTTP_201_CREATED)
def create_address(data: schema.AddressCreate, db: DbSession, user: CurrentUser) -> schema.Address:
    return addresses.create_address(db, user.id, data)


@address_router.patch("/{address_id}", response_model=schema.Address)
def update_address(
    address_id: int,
    data: schema.AddressUpdate,
    db: DbSession,
    user: CurrentUser,
) -> schema.Address:
    try:
        return addresses.update_address(db, user.id, address_id, data)
    except StorefrontError as e:
        _http_error(e)


@address_router.delete("/{address_id}", response_model=schema.SuccessResponse)
def delete_address(address_id: int, db: DbSession, user: CurrentUser) -> schema.SuccessResponse:
    addresses.delete_address(db, user.id, address_id)
    return schema.SuccessResponse()


checkout_router = APIRouter(prefix="/checkout", tags=["Checkout"])


@checkout_router.post("/quote", response_model=schema.Quote)
def quote_checkout(
    data: schema.QuoteRequest,
    db: DbSession,
    settings: AppSettings,
) -> schema.Quote:
    try:
        totals = orders.quote(db, data.cart_items, settings)
    except StorefrontError as e:
        _http_error(e)
    return schema.Quote(
        subtotal_cents=totals.subtotal_cents,
        tax_cents=totals.tax_cents,
        shipping_cents=totals.shipping_cents,
        total_cents=totals.total_cents,
    )


@checkout_router.post("", response_model=schema.CheckoutResponse, status_code=status.HTTP_201_CREATED)
def checkout(
    data: schema.CheckoutRequest,
    db: DbSession,
    user: CurrentUser,
    settings: AppSettings,
) -> schema.CheckoutResponse:
    try:
        return orders.checkout(db, user.id, data, settings)
    except StorefrontError as e:
        _http_error(e)
    except Exception as e:
        logger.exception("Checkout failed for user %s: %s", user.id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to complete checkout",
        ) from e


order_router = APIRouter(prefix="/orders", tags=["Order History"])


@order_router.get("", response_model=schema.OrderList)
def list_orders(db: DbSession, user: CurrentUser) -> schema.OrderList:
    return schema.OrderList(
        orders=[schema.Order.model_validate(o) for o in orders.get_orders_by_user(db, user.id)],
    )


@order_router.post("/track", response_model=schema.ShippingProgress)
def track_order(data: schema.TrackRequest, db: DbSession, user: CurrentUser) -> schema.ShippingProgress:
    try:
        return orders.track_order(db, user.id, data.order_number)
    except StorefrontError as e:
        _http_error(e)


@order_router.get("/{order_number}", response_model=schema.Order)
def retrieve_order(order_number: str, db: DbSession, user: CurrentUser) -> schema.Order:
    try:
        return orders.get_order(db, user.id, order_number)
    except StorefrontError as e:
        _http_error(e)


monitoring_router = APIRouter(tags=["Monitoring"])


@monitoring_router.get("/health/ping", status_code=status.HTTP_200_OK)
def health_check(db: DbSession) -> dict:
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.exception("Health check failed: Database connection error")
        raise HTTPException(
            status_code=503,
            detail={"status": "error", "database": "disconnected"},
        ) from e
    else:
        return {"status": "ok", "database": "connected"}
