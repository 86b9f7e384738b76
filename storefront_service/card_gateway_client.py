import logging

import httpx
import pybreaker

from .config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

card_gateway_breaker = pybreaker.CircuitBreaker(fail_max=5, reset_timeout=60)
client = httpx.Client(base_url=settings.CARD_GATEWAY_BASE_URL, timeout=10.0)


class PaymentServiceError(Exception):
    pass


def is_configured(secret_key: str | None) -> bool:
    return bool(secret_key) and "placeholder" not in secret_key.lower()


def _session_form(
    line_items: list[dict],
    success_url: str,
    cancel_url: str,
    metadata: dict,
    currency: str,
) -> dict[str, str]:
    form = {
        "mode": "payment",
        "success_url": success_url,
        "cancel_url": cancel_url,
    }
    for index, item in enumerate(line_items):
        prefix = f"line_items[{index}]"
        form[f"{prefix}[quantity]"] = str(item["quantity"])
        form[f"{prefix}[price_data][currency]"] = currency
        form[f"{prefix}[price_data][unit_amount]"] = str(item["unit_amount"])
        form[f"{prefix}[price_data][product_data][name]"] = item["name"]
    for key, value in metadata.items():
        form[f"metadata[{key}]"] = str(value)
    return form


@card_gateway_breaker
def create_checkout_session(
    secret_key: str,
    line_items: list[dict],
    success_url: str,
    cancel_url: str,
    metadata: dict,
    currency: str = "usd",
) -> dict:
    """Create a hosted checkout session and return its id and redirect URL."""
    order_number = metadata.get("order_number")
    logger.info("Creating card gateway session for order %s", order_number)
    try:
        response = client.post(
            "/v1/checkout/sessions",
            data=_session_form(line_items, success_url, cancel_url, metadata, currency),
            headers={"Authorization": f"Bearer {secret_key}"},
        )
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        try:
            error = e.response.json().get("error", {}).get("message", e.response.text)
        except Exception:
            error = e.response.text
        logger.exception("Card gateway rejected session for order %s: %s", order_number, error)
        msg = f"Card gateway rejected session: {error}"
        raise PaymentServiceError(msg) from e
    except httpx.RequestError as e:
        logger.exception("Card gateway is unavailable for order %s: %s", order_number, e)
        msg = f"Card gateway is unavailable: {e}"
        raise PaymentServiceError(msg) from e
    except ValueError as e:
        msg = "Card gateway returned a malformed response"
        raise PaymentServiceError(msg) from e

    session_id = data.get("id") if isinstance(data, dict) else None
    url = data.get("url") if isinstance(data, dict) else None
    if not session_id or not url:
        msg = "Card gateway response is missing the session id or URL"
        raise PaymentServiceError(msg)

    logger.info("Card gateway session %s created for order %s", session_id, order_number)
    return {"session_id": session_id, "url": url}
