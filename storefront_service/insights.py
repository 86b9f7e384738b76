"""Catalog insight aggregation.

Local reviews and same-category recommendations always come from the
database. Third-party reviews and recommendations are best effort: any
upstream failure or malformed payload degrades to empty lists.
"""
import logging

import pybreaker
from prometheus_client import Counter
from sqlalchemy.orm import Session

from . import catalog, insights_client, models, schema
from .errors import UpstreamUnavailable

INSIGHT_FAILURES_TOTAL = Counter(
    "storefront_insight_upstream_failures_total",
    "Total number of absorbed insights service failures",
    ["operation"],
)

logger = logging.getLogger(__name__)

INTERNAL_RECOMMENDATION_LIMIT = 4
EXTERNAL_RECOMMENDATION_LIMIT = 4

# Malformed payloads surface as KeyError/TypeError while picking fields and as
# ValueError (pydantic.ValidationError included) while building schemas.
ABSORBED_ERRORS = (
    UpstreamUnavailable,
    pybreaker.CircuitBreakerError,
    KeyError,
    TypeError,
    ValueError,
)


def _absorb(operation: str, error: Exception) -> None:
    INSIGHT_FAILURES_TOTAL.labels(operation=operation).inc()
    logger.warning("Insights %s failed, continuing without it: %s", operation, error)


def fetch_external_product(product_name: str) -> dict | None:
    try:
        candidates = insights_client.search_products(product_name)
        if not candidates:
            return None
        return insights_client.get_product(int(candidates[0]["id"]))
    except ABSORBED_ERRORS as e:
        _absorb("lookup", e)
        return None


def external_reviews(external_product: dict) -> list[schema.ExternalReview]:
    try:
        return [
            schema.ExternalReview(
                rating=review["rating"],
                comment=review["comment"],
                reviewer=review["reviewerName"],
                date=review.get("date"),
            )
            for review in external_product.get("reviews") or []
        ]
    except ABSORBED_ERRORS as e:
        _absorb("reviews", e)
        return []


def external_recommendations(external_product: dict) -> list[schema.Recommendation]:
    try:
        candidates = insights_client.get_category_products(external_product["category"])
        recommendations = []
        for item in candidates:
            if item.get("id") == external_product.get("id"):
                continue
            images = item.get("images") or [None]
            recommendations.append(
                schema.Recommendation(
                    id=item["id"],
                    title=item["title"],
                    image=item.get("thumbnail") or images[0],
                    price=item.get("price"),
                    rating=item.get("rating", 0),
                    external=True,
                ),
            )
        return recommendations[:EXTERNAL_RECOMMENDATION_LIMIT]
    except ABSORBED_ERRORS as e:
        _absorb("recommendations", e)
        return []


def fetch_external_insights(
    product_name: str,
) -> tuple[list[schema.ExternalReview], list[schema.Recommendation]]:
    external_product = fetch_external_product(product_name)
    if external_product is None:
        return [], []
    return external_reviews(external_product), external_recommendations(external_product)


def internal_recommendations(
    db: Session,
    product: models.Product,
    limit: int = INTERNAL_RECOMMENDATION_LIMIT,
) -> list[schema.Recommendation]:
    related = (
        db.query(models.Product)
        .filter(
            models.Product.category_id == product.category_id,
            models.Product.id != product.id,
        )
        .order_by(models.Product.rating.desc(), models.Product.id)
        .limit(limit)
        .all()
    )
    return [
        schema.Recommendation(
            id=item.id,
            title=item.name,
            price_cents=item.price_cents,
            rating=item.rating,
            brand=item.brand.name,
            image=item.primary_image_url,
            slug=item.slug,
        )
        for item in related
    ]


def get_product_insights(db: Session, slug: str) -> schema.ProductInsights:
    product = catalog.get_product_by_slug(db, slug)

    reviews_from_partner, partner_recommendations = fetch_external_insights(product.name)

    return schema.ProductInsights(
        product=schema.ProductDetail(
            id=product.id,
            name=product.name,
            slug=product.slug,
            description=product.description,
            sku=product.sku,
            price_cents=product.price_cents,
            rating=product.rating,
            inventory=product.inventory,
            brand=product.brand.name,
            category=product.category.name,
            images=[schema.ProductImage.model_validate(image) for image in product.images],
        ),
        reviews=[schema.Review.model_validate(review) for review in product.reviews],
        external_reviews=reviews_from_partner,
        recommendations=internal_recommendations(db, product) + partner_recommendations,
    )


def _shipment_status(total_quantity: int) -> str:
    if total_quantity < 5:
        return "CREATED"
    if total_quantity < 10:
        return "IN_TRANSIT"
    if total_quantity < 12:
        return "OUT_FOR_DELIVERY"
    return "DELIVERED"


def fetch_shipping_progress(tracking_id: str) -> schema.ShippingProgress:
    """Coarse shipment status.

    The insights service has no carrier data; its cart records stand in for a
    shipment and the total quantity drives the status.
    """
    try:
        shipment = insights_client.get_shipment(tracking_id)
        status = _shipment_status(int(shipment["totalQuantity"]))
        return schema.ShippingProgress(
            status=status,
            summary=(
                f"Your shipment containing {shipment['totalProducts']} items is currently "
                f"{status.replace('_', ' ').lower()}."
            ),
            checkpoints=[
                schema.ShippingCheckpoint(
                    label=f"Checkpoint {index}",
                    detail=f"{item['title']} staged - quantity {item['quantity']}",
                )
                for index, item in enumerate(shipment.get("products") or [], start=1)
            ],
        )
    except ABSORBED_ERRORS as e:
        _absorb("shipment", e)
        return schema.ShippingProgress(
            status="UNKNOWN",
            summary="Tracking information is currently unavailable. Please try again later.",
            checkpoints=[],
        )
