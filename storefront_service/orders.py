import logging
import secrets
import string
import time

from prometheus_client import Counter
from sqlalchemy.orm import Session, selectinload

from . import addresses, insights, inventory, models, payments, pricing, schema
from .config import Settings
from .errors import NotFound, OrderNotFound, ProductNotFound, StorefrontError, ValidationError

CHECKOUTS_TOTAL = Counter(
    "storefront_checkouts_total",
    "Total number of checkout attempts",
    ["outcome"],
)

logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_uppercase


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits)) or "0"


def generate_order_number(store_tag: str) -> str:
    """Store tag plus a base36 microsecond timestamp and two random base36 characters."""
    stamp = _to_base36(time.time_ns() // 1_000)
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(2))
    return f"{store_tag}-{stamp}{suffix}"


def quote(db: Session, lines: list[schema.CheckoutLine], settings: Settings) -> pricing.Totals:
    if not lines:
        msg = "Cart is empty"
        raise ValidationError(msg)
    requested = inventory.merge_quantities(lines)
    products = inventory.load_products(db, requested, lock=False)
    missing = set(requested) - set(products)
    if missing:
        raise ProductNotFound
    return pricing.compute_totals(
        [pricing.PriceLine(products[pid].price_cents, qty) for pid, qty in requested.items()],
        settings.TAX_RATE,
        settings.SHIPPING_FLAT_CENTS,
    )


# --- COMMANDS (Write Operations) ---
def place_order(
    db: Session,
    user_id: int,
    checkout: schema.CheckoutRequest,
    settings: Settings,
) -> models.Order:
    """Create the order, its items, the stock decrements and the cart wipe in one transaction.

    Nothing is committed unless every step succeeds.
    """
    if not checkout.cart_items:
        msg = "Cart is empty"
        raise ValidationError(msg)

    try:
        address, snapshot = addresses.resolve_address(db, user_id, checkout.address)

        requested = inventory.merge_quantities(checkout.cart_items)
        products = inventory.load_products(db, requested)
        inventory.ensure_available(requested, products)

        totals = pricing.compute_totals(
            [pricing.PriceLine(products[pid].price_cents, qty) for pid, qty in requested.items()],
            settings.TAX_RATE,
            settings.SHIPPING_FLAT_CENTS,
        )

        db_order = models.Order(
            order_number=generate_order_number(settings.STORE_TAG),
            user_id=user_id,
            status=models.OrderStatusEnum.PENDING,
            payment_status=payments.initial_payment_status(checkout.payment_method),
            shipping_status=models.ShippingStatusEnum.NOT_SHIPPED,
            payment_method=checkout.payment_method,
            subtotal_cents=totals.subtotal_cents,
            tax_cents=totals.tax_cents,
            shipping_cents=totals.shipping_cents,
            total_cents=totals.total_cents,
            address_id=address.id,
            address_snapshot=snapshot.model_dump(),
            items=[
                models.OrderItem(
                    product_id=product_id,
                    product_name=products[product_id].name,
                    product_slug=products[product_id].slug,
                    price_cents=products[product_id].price_cents,
                    image_url=products[product_id].primary_image_url,
                    quantity=quantity,
                )
                for product_id, quantity in requested.items()
            ],
        )
        db.add(db_order)
        db.flush()

        inventory.decrement(db, requested, products)
        db.query(models.CartItem).filter(models.CartItem.user_id == user_id).delete(
            synchronize_session=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(db_order)
    logger.info(
        "Placed order %s for user %s: total %s cents",
        db_order.order_number,
        user_id,
        db_order.total_cents,
    )
    return db_order


def checkout(
    db: Session,
    user_id: int,
    checkout_request: schema.CheckoutRequest,
    settings: Settings,
) -> schema.CheckoutResponse:
    try:
        db_order = place_order(db, user_id, checkout_request, settings)
    except StorefrontError as e:
        CHECKOUTS_TOTAL.labels(outcome="rejected").inc()
        logger.info("Checkout rejected for user %s: %s", user_id, e)
        raise
    except Exception:
        CHECKOUTS_TOTAL.labels(outcome="failed").inc()
        raise

    CHECKOUTS_TOTAL.labels(outcome="placed").inc()
    payment = payments.dispatch_payment(db_order, user_id, settings)
    return schema.CheckoutResponse(order=schema.Order.model_validate(db_order), payment=payment)


# --- QUERIES (Read Operations) ---
def get_orders_by_user(db: Session, user_id: int) -> list[models.Order]:
    return (
        db.query(models.Order)
        .options(selectinload(models.Order.items))
        .filter(models.Order.user_id == user_id)
        .order_by(models.Order.created_at.desc(), models.Order.id.desc())
        .all()
    )


def get_order(db: Session, user_id: int, order_number: str) -> models.Order:
    db_order = (
        db.query(models.Order)
        .options(selectinload(models.Order.items))
        .filter(models.Order.order_number == order_number, models.Order.user_id == user_id)
        .first()
    )
    if db_order is None:
        raise OrderNotFound
    return db_order


def track_order(db: Session, user_id: int, order_number: str) -> schema.ShippingProgress:
    db_order = (
        db.query(models.Order)
        .filter(models.Order.order_number == order_number, models.Order.user_id == user_id)
        .first()
    )
    if db_order is None or not db_order.shipping_tracking_id:
        msg = "No tracking available"
        raise NotFound(msg)
    return insights.fetch_shipping_progress(db_order.shipping_tracking_id)
