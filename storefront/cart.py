"""
Cart persistence.

One row per (username, product_id), enforced by uq_cart_items_username_product.
Add is a single INSERT ... ON CONFLICT DO UPDATE so that concurrent adds of
the same product merge instead of duplicating. Quantity never reaches zero:
a decrease from 1 deletes the row in the same transaction.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.logger import get_logger
from storefront.models import CartItem, Product, _new_id, utcnow
from storefront.responses import ConflictError

logger = get_logger("cart")

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


@dataclass
class CartAddResult:
    item: CartItem
    merged: bool


def add_item(
    db: Session,
    username: str,
    product_id: str,
    product_name: str,
    description: str,
    price: str,
    id_url: str,
    quantity: int = 1,
) -> CartAddResult:
    """
    Insert a cart row or add `quantity` to the existing one.

    The returned quantity equals the requested quantity only when the row
    was freshly inserted; anything larger means it was merged.
    """
    logger.info("cart: method=add_item username=%s product_id=%s quantity=%s", username, product_id, quantity)
    values = {
        "id": _new_id(),
        "username": username,
        "product_id": product_id,
        "product_name": product_name,
        "description": description,
        "price": price,
        "id_url": id_url,
        "quantity": quantity,
        "created_at": utcnow(),
    }
    insert = _UPSERT_INSERTS.get(db.get_bind().dialect.name)
    try:
        if insert is not None:
            stmt = insert(CartItem).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["username", "product_id"],
                set_={"quantity": CartItem.quantity + stmt.excluded.quantity},
            )
            item = db.scalars(
                stmt.returning(CartItem),
                execution_options={"populate_existing": True},
            ).one()
        else:
            item = _add_item_fallback(db, values)
        merged = item.quantity != quantity
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("cart: method=add_item username=%s product_id=%s result=conflict error=%s", username, product_id, e)
        raise ConflictError("Product already in cart")

    logger.info(
        "cart: method=add_item username=%s product_id=%s result=success merged=%s quantity=%s",
        username, product_id, merged, item.quantity,
    )
    return CartAddResult(item=item, merged=merged)


def _add_item_fallback(db: Session, values: Dict[str, Any]) -> CartItem:
    # Dialects without ON CONFLICT: row lock then write; the unique
    # constraint turns a lost race into IntegrityError.
    existing = (
        db.query(CartItem)
        .filter(CartItem.username == values["username"], CartItem.product_id == values["product_id"])
        .with_for_update()
        .first()
    )
    if existing is not None:
        existing.quantity = existing.quantity + values["quantity"]
        db.flush()
        return existing
    item = CartItem(**values)
    db.add(item)
    db.flush()
    return item


def get_item(db: Session, item_id: str) -> Optional[CartItem]:
    return db.get(CartItem, item_id)


def remove_item(db: Session, item: CartItem) -> None:
    logger.info("cart: method=remove_item username=%s item_id=%s", item.username, item.id)
    db.delete(item)
    db.commit()


def increase_quantity(db: Session, item_id: str) -> Optional[CartItem]:
    db.execute(
        update(CartItem)
        .where(CartItem.id == item_id)
        .values(quantity=CartItem.quantity + 1)
    )
    db.commit()
    return db.get(CartItem, item_id)


def decrease_quantity(db: Session, item_id: str) -> Optional[CartItem]:
    """Decrement by one; returns None when the row was removed instead."""
    result = db.execute(
        update(CartItem)
        .where(CartItem.id == item_id, CartItem.quantity > 1)
        .values(quantity=CartItem.quantity - 1)
    )
    if result.rowcount == 0:
        db.execute(delete(CartItem).where(CartItem.id == item_id))
        db.commit()
        logger.info("cart: method=decrease_quantity item_id=%s result=removed", item_id)
        return None
    db.commit()
    return db.get(CartItem, item_id)


def list_items(db: Session, username: str) -> List[Dict[str, Any]]:
    """Cart rows newest first, each with the product's current seller."""
    rows = (
        db.query(CartItem, Product.seller_username)
        .outerjoin(Product, Product.product_id == CartItem.product_id)
        .filter(CartItem.username == username)
        .order_by(CartItem.created_at.desc())
        .all()
    )
    cart = []
    for item, seller_username in rows:
        data = item.to_dict()
        data["idUrl"] = item.id_url
        data["productName"] = item.product_name
        data["seller_username"] = seller_username or "Unknown"
        cart.append(data)
    return cart


def count_items(db: Session, username: str) -> int:
    return db.query(func.count(CartItem.id)).filter(CartItem.username == username).scalar() or 0
