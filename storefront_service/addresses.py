import logging

from sqlalchemy.orm import Session

from . import models, schema
from .errors import AddressNotFound, AddressRequired

logger = logging.getLogger(__name__)

CLEARABLE_FIELDS = {"label", "line2", "phone"}


def take_snapshot(address: models.Address) -> schema.AddressSnapshot:
    return schema.AddressSnapshot.model_validate(address)


def _unset_other_defaults(db: Session, user_id: int, keep_id: int) -> None:
    db.query(models.Address).filter(
        models.Address.user_id == user_id,
        models.Address.id != keep_id,
    ).update({models.Address.is_default: False}, synchronize_session="fetch")


def get_owned_address(db: Session, user_id: int, address_id: int) -> models.Address:
    address = (
        db.query(models.Address)
        .filter(models.Address.id == address_id, models.Address.user_id == user_id)
        .first()
    )
    if address is None:
        raise AddressNotFound
    return address


def resolve_address(
    db: Session,
    user_id: int,
    selector: schema.SavedAddressSelector | schema.InlineAddressSelector | None,
) -> tuple[models.Address, schema.AddressSnapshot]:
    """Turn a checkout address selector into the address row and its frozen snapshot.

    Inline addresses are persisted for the user but only flushed, so they roll
    back together with the rest of a failed checkout.
    """
    if selector is None:
        raise AddressRequired

    if isinstance(selector, schema.SavedAddressSelector):
        address = get_owned_address(db, user_id, selector.address_id)
    elif isinstance(selector, schema.InlineAddressSelector):
        address = models.Address(user_id=user_id, **selector.model_dump(exclude={"kind"}))
        db.add(address)
        db.flush()
        logger.info("Saved inline checkout address %s for user %s", address.id, user_id)
    else:
        msg = f"Unsupported address selector: {type(selector).__name__}"
        raise TypeError(msg)

    return address, take_snapshot(address)


# --- COMMANDS (Write Operations) ---
def create_address(db: Session, user_id: int, data: schema.AddressCreate) -> models.Address:
    address = models.Address(user_id=user_id, **data.model_dump())
    db.add(address)
    db.flush()
    if address.is_default:
        _unset_other_defaults(db, user_id, address.id)
    db.commit()
    db.refresh(address)
    return address


def update_address(
    db: Session,
    user_id: int,
    address_id: int,
    data: schema.AddressUpdate,
) -> models.Address:
    address = get_owned_address(db, user_id, address_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field not in CLEARABLE_FIELDS:
            continue
        setattr(address, field, value)
    db.flush()
    if address.is_default:
        _unset_other_defaults(db, user_id, address.id)
    db.commit()
    db.refresh(address)
    return address


def delete_address(db: Session, user_id: int, address_id: int) -> None:
    # Orders keep their own snapshot, so deleting the source address never touches them.
    db.query(models.Address).filter(
        models.Address.id == address_id,
        models.Address.user_id == user_id,
    ).delete(synchronize_session="fetch")
    db.commit()


# --- QUERIES (Read Operations) ---
def list_addresses(db: Session, user_id: int) -> list[models.Address]:
    return (
        db.query(models.Address)
        .filter(models.Address.user_id == user_id)
        .order_by(models.Address.is_default.desc(), models.Address.created_at.desc())
        .all()
    )
