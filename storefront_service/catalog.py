import logging
import math
from dataclasses import dataclass

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from . import models, schema
from .errors import ProductNotFound

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 16
MAX_PAGE_SIZE = 48

SORT_ORDERS = {
    "price-asc": (models.Product.price_cents.asc(),),
    "price-desc": (models.Product.price_cents.desc(),),
    "rating-desc": (models.Product.rating.desc(),),
    "newest": (models.Product.created_at.desc(),),
}


@dataclass
class ProductFilters:
    search: str | None = None
    category: str | None = None
    brand: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    rating: float | None = None
    sort: str | None = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE


def _summary(product: models.Product) -> schema.ProductSummary:
    return schema.ProductSummary(
        id=product.id,
        name=product.name,
        slug=product.slug,
        price_cents=product.price_cents,
        rating=product.rating,
        brand=product.brand.name,
        category=product.category.name,
        image=product.primary_image_url,
        inventory=product.inventory,
    )


def list_products(db: Session, filters: ProductFilters) -> schema.ProductList:
    page = max(1, filters.page)
    page_size = max(1, min(MAX_PAGE_SIZE, filters.page_size))

    query = db.query(models.Product)
    if filters.search:
        pattern = f"%{filters.search}%"
        query = query.filter(
            or_(models.Product.name.ilike(pattern), models.Product.description.ilike(pattern)),
        )
    if filters.category:
        query = query.filter(models.Product.category.has(models.Category.slug == filters.category))
    if filters.brand:
        query = query.filter(models.Product.brand.has(models.Brand.slug == filters.brand))
    # Price filters arrive in major units.
    if filters.min_price:
        query = query.filter(models.Product.price_cents >= round(filters.min_price * 100))
    if filters.max_price:
        query = query.filter(models.Product.price_cents <= round(filters.max_price * 100))
    if filters.rating:
        query = query.filter(models.Product.rating >= filters.rating)

    total = query.count()
    order_by = SORT_ORDERS.get(filters.sort or "", SORT_ORDERS["newest"])
    products = (
        query.options(
            selectinload(models.Product.images),
            selectinload(models.Product.brand),
            selectinload(models.Product.category),
        )
        .order_by(*order_by, models.Product.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    prices = [product.price_cents for product in products]
    return schema.ProductList(
        products=[_summary(product) for product in products],
        pagination=schema.Pagination(
            page=page,
            page_size=page_size,
            total=total,
            total_pages=max(1, math.ceil(total / page_size)),
        ),
        filters=schema.CatalogFilters(
            categories=[
                schema.NamedRef.model_validate(c)
                for c in db.query(models.Category).order_by(models.Category.name).all()
            ],
            brands=[
                schema.NamedRef.model_validate(b)
                for b in db.query(models.Brand).order_by(models.Brand.name).all()
            ],
            price_range=schema.PriceRange(min=min(prices, default=0), max=max(prices, default=0)),
        ),
    )


def get_product_by_slug(db: Session, slug: str) -> models.Product:
    product = db.query(models.Product).filter(models.Product.slug == slug).first()
    if product is None:
        msg = "Product not found"
        raise ProductNotFound(msg)
    return product


def submit_review(
    db: Session,
    user_id: int,
    reviewer: str,
    slug: str,
    data: schema.ReviewCreate,
) -> tuple[models.Review, float]:
    """Create or replace the caller's review, then recompute the product's mean rating."""
    product = get_product_by_slug(db, slug)

    review = (
        db.query(models.Review)
        .filter(models.Review.product_id == product.id, models.Review.user_id == user_id)
        .first()
    )
    if review is None:
        review = models.Review(product_id=product.id, user_id=user_id)
        db.add(review)
    review.rating = data.rating
    review.comment = data.comment
    review.reviewer = reviewer
    db.flush()

    average = (
        db.query(func.avg(models.Review.rating))
        .filter(models.Review.product_id == product.id)
        .scalar()
    )
    if average is not None:
        product.rating = float(average)
    db.commit()
    db.refresh(review)
    logger.info("Review %s saved for product %s; rating now %.2f", review.id, product.id, product.rating)
    return review, product.rating
