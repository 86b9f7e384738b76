import logging

import httpx
import pybreaker

from .config import get_settings
from .errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

settings = get_settings()

insights_breaker = pybreaker.CircuitBreaker(fail_max=5, reset_timeout=60)

client = httpx.Client(
    base_url=settings.INSIGHTS_SERVICE_URL,
    timeout=settings.INSIGHTS_TIMEOUT_SECONDS,
)


def _get_json(path: str, params: dict | None = None) -> dict:
    try:
        response = client.get(path, params=params)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        msg = f"Insights service returned {e.response.status_code} for {path}"
        raise UpstreamUnavailable(msg) from e
    except httpx.RequestError as e:
        msg = f"Insights service is unavailable: {e}"
        raise UpstreamUnavailable(msg) from e
    except ValueError as e:
        msg = f"Insights service returned a malformed body for {path}"
        raise UpstreamUnavailable(msg) from e

    if not isinstance(data, dict):
        msg = f"Insights service returned an unexpected payload for {path}"
        raise UpstreamUnavailable(msg)
    return data


def _products_of(data: dict) -> list[dict]:
    products = data.get("products")
    if not isinstance(products, list):
        msg = "Insights payload has no product list"
        raise UpstreamUnavailable(msg)
    return [product for product in products if isinstance(product, dict)]


@insights_breaker
def search_products(query: str, limit: int = 5) -> list[dict]:
    logger.debug("Searching insights service for %r", query)
    return _products_of(_get_json("/products/search", params={"q": query, "limit": limit}))


@insights_breaker
def get_product(product_id: int) -> dict:
    return _get_json(f"/products/{product_id}")


@insights_breaker
def get_category_products(category: str, limit: int = 6) -> list[dict]:
    return _products_of(_get_json(f"/products/category/{category}", params={"limit": limit}))


@insights_breaker
def get_shipment(tracking_id: str) -> dict:
    return _get_json(f"/carts/{tracking_id}")
