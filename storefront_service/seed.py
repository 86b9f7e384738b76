"""Load demo catalog data.

Run with ``python -m storefront_service.seed``. Safe to run repeatedly: rows are
matched on their slug or email and refreshed in place.
"""
import logging

from sqlalchemy.orm import Session

from . import models
from .auth import hash_secret
from .database import SessionLocal, engine

logger = logging.getLogger(__name__)

DEMO_EMAIL = "demo@storefront.test"
DEMO_PASSWORD = "Password123!"
DEMO_ORDER_NUMBER = "SF-100001"

CATEGORIES = [
    {"name": "Electronics", "slug": "electronics"},
    {"name": "Home & Kitchen", "slug": "home-kitchen"},
    {"name": "Beauty", "slug": "beauty"},
    {"name": "Books", "slug": "books"},
]

BRANDS = [
    {"name": "Apex", "slug": "apex"},
    {"name": "Lumina", "slug": "lumina"},
    {"name": "PureGlow", "slug": "pureglow"},
    {"name": "PageTurner", "slug": "pageturner"},
]

PRODUCTS = [
    {
        "name": "Apex Echo Smart Speaker",
        "slug": "apex-echo-smart-speaker",
        "description": "Voice-controlled smart speaker with spatial audio and a built-in smart home hub.",
        "price_cents": 14999,
        "rating": 4.6,
        "inventory": 120,
        "sku": "APX-ECHO-01",
        "category": "electronics",
        "brand": "apex",
        "images": [
            ("https://images.unsplash.com/photo-1582719478250-c89cae4dc85b", "Smart speaker on a wooden desk"),
            ("https://images.unsplash.com/photo-1484704849700-f032a568e944", "Smart speaker lifestyle image"),
        ],
    },
    {
        "name": "Lumina Air Purifier Pro",
        "slug": "lumina-air-purifier-pro",
        "description": "HEPA-14 filtration with live air quality monitoring and a whisper-quiet fan.",
        "price_cents": 22999,
        "rating": 4.8,
        "inventory": 75,
        "sku": "LUM-AIR-02",
        "category": "home-kitchen",
        "brand": "lumina",
        "images": [
            ("https://images.unsplash.com/photo-1482062364825-616fd23b8fc1", "Air purifier in a living room"),
            ("https://images.unsplash.com/photo-1616628182506-57d0c7965731", "Air purifier control panel"),
        ],
    },
    {
        "name": "PureGlow Vitamin C Serum",
        "slug": "pureglow-vitamin-c-serum",
        "description": "15% vitamin C serum with hyaluronic acid for brightening and hydration.",
        "price_cents": 3999,
        "rating": 4.4,
        "inventory": 300,
        "sku": "PURE-SKIN-88",
        "category": "beauty",
        "brand": "pureglow",
        "images": [
            ("https://images.unsplash.com/photo-1586495777744-4413f21062fa", "Vitamin C serum bottle"),
        ],
    },
    {
        "name": "PageTurner Hardcover Classics Bundle",
        "slug": "pageturner-hardcover-classics-bundle",
        "description": "Five literary classics on archival paper with illustrated endpapers.",
        "price_cents": 8999,
        "rating": 4.9,
        "inventory": 45,
        "sku": "PAGE-CLSC-05",
        "category": "books",
        "brand": "pageturner",
        "images": [
            ("https://images.unsplash.com/photo-1524578271613-d550eacf6090", "Stack of hardcover books"),
            ("https://images.unsplash.com/photo-1463320898484-cdee8141c787", "Open book with reading glasses"),
        ],
    },
]


def _upsert_by_slug(db: Session, model, data: dict):
    row = db.query(model).filter(model.slug == data["slug"]).first()
    if row is None:
        row = model(**data)
        db.add(row)
    else:
        for field, value in data.items():
            setattr(row, field, value)
    return row


def seed(db: Session) -> None:
    user = db.query(models.User).filter(models.User.email == DEMO_EMAIL).first()
    if user is None:
        user = models.User(email=DEMO_EMAIL, name="Demo Shopper", password_hash=hash_secret(DEMO_PASSWORD))
        db.add(user)

    categories = {c["slug"]: _upsert_by_slug(db, models.Category, c) for c in CATEGORIES}
    brands = {b["slug"]: _upsert_by_slug(db, models.Brand, b) for b in BRANDS}
    db.flush()

    products = {}
    for entry in PRODUCTS:
        fields = {k: v for k, v in entry.items() if k not in ("category", "brand", "images")}
        fields["category_id"] = categories[entry["category"]].id
        fields["brand_id"] = brands[entry["brand"]].id
        product = _upsert_by_slug(db, models.Product, fields)
        product.images = [
            models.ProductImage(url=url, alt=alt, is_primary=position == 0, position=position)
            for position, (url, alt) in enumerate(entry["images"])
        ]
        products[product.slug] = product
    db.flush()

    user.addresses = [
        models.Address(
            label="Home",
            full_name="Demo Shopper",
            line1="123 Innovation Way",
            line2="Suite 400",
            city="San Francisco",
            state="CA",
            postal_code="94107",
            country="USA",
            phone="+1-555-123-4567",
            is_default=True,
        ),
    ]
    db.flush()
    address = user.addresses[0]

    speaker = products["apex-echo-smart-speaker"]
    previous = db.query(models.Order).filter(models.Order.order_number == DEMO_ORDER_NUMBER).first()
    if previous is not None:
        db.delete(previous)
        db.flush()
    db.add(
        models.Order(
            order_number=DEMO_ORDER_NUMBER,
            user_id=user.id,
            status=models.OrderStatusEnum.FULFILLED,
            payment_status=models.PaymentStatusEnum.PAID,
            shipping_status=models.ShippingStatusEnum.DELIVERED,
            payment_method=models.PaymentMethod.CARD_GATEWAY,
            subtotal_cents=speaker.price_cents,
            tax_cents=1275,
            shipping_cents=1299,
            total_cents=speaker.price_cents + 1275 + 1299,
            address_id=address.id,
            address_snapshot={
                "full_name": address.full_name,
                "line1": address.line1,
                "line2": address.line2,
                "city": address.city,
                "state": address.state,
                "postal_code": address.postal_code,
                "country": address.country,
                "phone": address.phone,
            },
            # Resolves against the insights service's sample cart records.
            shipping_tracking_id="1",
            items=[
                models.OrderItem(
                    product_id=speaker.id,
                    product_name=speaker.name,
                    product_slug=speaker.slug,
                    price_cents=speaker.price_cents,
                    image_url=speaker.primary_image_url,
                    quantity=1,
                ),
            ],
        ),
    )

    review = (
        db.query(models.Review)
        .filter(models.Review.product_id == speaker.id, models.Review.user_id == user.id)
        .first()
    )
    if review is None:
        db.add(
            models.Review(
                product_id=speaker.id,
                user_id=user.id,
                rating=5,
                comment="Immersive sound with crisp highs and deep bass. Setup was effortless!",
                reviewer=user.name,
            ),
        )
    db.commit()
    logger.info("Seeded %s products for demo user %s", len(products), DEMO_EMAIL)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    models.Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        seed(session)
