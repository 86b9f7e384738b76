import logging

from sqlalchemy.orm import Session, selectinload

from . import inventory, models, schema
from .errors import CartItemNotFound, OutOfStock, ProductNotFound

logger = logging.getLogger(__name__)


def get_cart(db: Session, user_id: int) -> schema.Cart:
    items = (
        db.query(models.CartItem)
        .options(selectinload(models.CartItem.product))
        .filter(models.CartItem.user_id == user_id)
        .order_by(models.CartItem.created_at.desc(), models.CartItem.id.desc())
        .all()
    )
    return schema.Cart(
        items=[
            schema.CartLine(
                id=item.id,
                quantity=item.quantity,
                product=schema.CartProduct(
                    id=item.product.id,
                    name=item.product.name,
                    slug=item.product.slug,
                    price_cents=item.product.price_cents,
                    rating=item.product.rating,
                    brand=item.product.brand.name,
                    image=item.product.primary_image_url,
                    inventory=item.product.inventory,
                ),
            )
            for item in items
        ],
        subtotal_cents=sum(item.product.price_cents * item.quantity for item in items),
    )


def add_item(db: Session, user_id: int, data: schema.CartItemCreate) -> schema.Cart:
    product = db.get(models.Product, data.product_id)
    if product is None:
        msg = "Product not found"
        raise ProductNotFound(msg)
    if data.quantity > product.inventory:
        raise OutOfStock(product.name)

    existing = (
        db.query(models.CartItem)
        .filter(models.CartItem.user_id == user_id, models.CartItem.product_id == product.id)
        .first()
    )
    if existing is not None:
        existing.quantity = inventory.clamp_quantity(product, existing.quantity + data.quantity)
    else:
        db.add(models.CartItem(user_id=user_id, product_id=product.id, quantity=data.quantity))
    db.commit()
    return get_cart(db, user_id)


def update_item(db: Session, user_id: int, item_id: int, data: schema.CartItemUpdate) -> schema.Cart:
    item = (
        db.query(models.CartItem)
        .filter(models.CartItem.id == item_id, models.CartItem.user_id == user_id)
        .first()
    )
    if item is None:
        raise CartItemNotFound

    quantity = inventory.clamp_quantity(item.product, data.quantity)
    if quantity < 1:
        # Nothing left in stock; a zero-quantity line cannot exist.
        db.delete(item)
    else:
        item.quantity = quantity
    db.commit()
    return get_cart(db, user_id)


def remove_item(db: Session, user_id: int, item_id: int) -> schema.Cart:
    db.query(models.CartItem).filter(
        models.CartItem.id == item_id,
        models.CartItem.user_id == user_id,
    ).delete(synchronize_session="fetch")
    db.commit()
    return get_cart(db, user_id)
