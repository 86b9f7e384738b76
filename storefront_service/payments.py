"""Payment dispatch.

Runs strictly after the order is committed. A provider failure never rolls
the order back; the card gateway degrades to a simulated directive instead.
"""
import logging
from collections.abc import Callable

import pybreaker
from prometheus_client import Counter

from . import card_gateway_client, models, schema
from .card_gateway_client import PaymentServiceError
from .config import Settings
from .models import PaymentMethod, PaymentStatusEnum

PAYMENT_DIRECTIVES_TOTAL = Counter(
    "storefront_payment_directives_total",
    "Total number of payment directives returned to clients",
    ["provider", "simulated"],
)

logger = logging.getLogger(__name__)

PAYMENT_STATUS_ON_PLACEMENT = {
    PaymentMethod.CARD_GATEWAY: PaymentStatusEnum.PENDING,
    # Optimistic: the wallet capture happens in the browser and is not verified server-side.
    PaymentMethod.WALLET_REDIRECT: PaymentStatusEnum.AUTHORIZED,
    PaymentMethod.PAY_ON_DELIVERY: PaymentStatusEnum.PENDING,
}


def initial_payment_status(method: PaymentMethod) -> PaymentStatusEnum:
    return PAYMENT_STATUS_ON_PLACEMENT[method]


def _simulated_card_directive(order: models.Order, message: str) -> schema.PaymentDirective:
    return schema.PaymentDirective(
        provider=PaymentMethod.CARD_GATEWAY,
        order_number=order.order_number,
        simulated=True,
        message=message,
    )


def dispatch_card_gateway(order: models.Order, user_id: int, settings: Settings) -> schema.PaymentDirective:
    if not card_gateway_client.is_configured(settings.CARD_GATEWAY_SECRET_KEY):
        return _simulated_card_directive(
            order,
            "Card gateway secret key not configured. Using simulated payment.",
        )

    base_url = settings.APP_URL.rstrip("/")
    line_items = [
        {"name": item.product_name, "unit_amount": item.price_cents, "quantity": item.quantity}
        for item in order.items
    ]
    try:
        session = card_gateway_client.create_checkout_session(
            secret_key=settings.CARD_GATEWAY_SECRET_KEY,
            line_items=line_items,
            success_url=f"{base_url}/checkout/success?order={order.order_number}",
            cancel_url=f"{base_url}/checkout/cancel?order={order.order_number}",
            metadata={"order_number": order.order_number, "user_id": user_id},
            currency=settings.CURRENCY,
        )
    except (PaymentServiceError, pybreaker.CircuitBreakerError) as e:
        logger.warning(
            "Card gateway session failed for order %s, falling back to simulated payment: %s",
            order.order_number,
            e,
        )
        return _simulated_card_directive(
            order,
            "Card gateway is currently unavailable. Using simulated payment.",
        )
    except Exception as e:
        # The order is already committed; no gateway fault may fail the checkout.
        logger.exception(
            "Unexpected card gateway error for order %s, falling back to simulated payment: %s",
            order.order_number,
            e,
        )
        return _simulated_card_directive(
            order,
            "Card gateway is currently unavailable. Using simulated payment.",
        )

    return schema.PaymentDirective(
        provider=PaymentMethod.CARD_GATEWAY,
        order_number=order.order_number,
        session_id=session["session_id"],
        redirect_url=session["url"],
    )


def dispatch_wallet_redirect(order: models.Order, user_id: int, settings: Settings) -> schema.PaymentDirective:
    logger.warning(
        "Order %s marked %s before any server-side wallet capture check",
        order.order_number,
        order.payment_status.value,
    )
    return schema.PaymentDirective(
        provider=PaymentMethod.WALLET_REDIRECT,
        order_number=order.order_number,
        client_id=settings.WALLET_CLIENT_ID or None,
        verified=False,
        message="Use the wallet client SDK on the frontend to capture the payment.",
    )


def dispatch_pay_on_delivery(order: models.Order, user_id: int, settings: Settings) -> schema.PaymentDirective:
    return schema.PaymentDirective(
        provider=PaymentMethod.PAY_ON_DELIVERY,
        order_number=order.order_number,
        message="Payment will be collected on delivery.",
    )


PaymentHandler = Callable[[models.Order, int, Settings], schema.PaymentDirective]

PAYMENT_HANDLERS: dict[PaymentMethod, PaymentHandler] = {
    PaymentMethod.CARD_GATEWAY: dispatch_card_gateway,
    PaymentMethod.WALLET_REDIRECT: dispatch_wallet_redirect,
    PaymentMethod.PAY_ON_DELIVERY: dispatch_pay_on_delivery,
}


def dispatch_payment(order: models.Order, user_id: int, settings: Settings) -> schema.PaymentDirective:
    method = PaymentMethod(order.payment_method)
    directive = PAYMENT_HANDLERS[method](order, user_id, settings)
    PAYMENT_DIRECTIVES_TOTAL.labels(provider=method.value, simulated=str(directive.simulated).lower()).inc()
    return directive
