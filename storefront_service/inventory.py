import logging
from collections.abc import Iterable, Mapping

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from . import models
from .errors import OutOfStock, ProductNotFound

logger = logging.getLogger(__name__)


def merge_quantities(lines: Iterable) -> dict[int, int]:
    """Collapse checkout lines into {product_id: total quantity}, keeping first-seen order."""
    requested: dict[int, int] = {}
    for line in lines:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity
    return requested


def load_products(
    db: Session,
    product_ids: Iterable[int],
    lock: bool = True,
) -> dict[int, models.Product]:
    """Read every involved product in one statement, row-locked where the backend supports it."""
    stmt = (
        select(models.Product)
        .where(models.Product.id.in_(list(product_ids)))
        .execution_options(populate_existing=True)
    )
    if lock:
        stmt = stmt.with_for_update()
    return {product.id: product for product in db.scalars(stmt)}


def ensure_available(
    requested: Mapping[int, int],
    products: Mapping[int, models.Product],
) -> None:
    for product_id, quantity in requested.items():
        product = products.get(product_id)
        if product is None:
            raise ProductNotFound
        if quantity > product.inventory:
            logger.info(
                "Rejecting quantity %s for product %s: only %s in stock",
                quantity,
                product_id,
                product.inventory,
            )
            raise OutOfStock(product.name)


def decrement(
    db: Session,
    requested: Mapping[int, int],
    products: Mapping[int, models.Product],
) -> None:
    # Conditional update so a concurrent checkout that already took the stock matches no row.
    for product_id, quantity in requested.items():
        result = db.execute(
            update(models.Product)
            .where(models.Product.id == product_id, models.Product.inventory >= quantity)
            .values(inventory=models.Product.inventory - quantity)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise OutOfStock(products[product_id].name)


def clamp_quantity(product: models.Product, quantity: int) -> int:
    return min(product.inventory, quantity)
