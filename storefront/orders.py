"""
Checkout and order lifecycle.

Checkout converts cart lines into orders in a single transaction: every
item is validated first, then all order inserts and all cart-row deletions
are committed together. Cart rows that were already gone do not fail the
request; they are written to operational_failures for reconciliation.
"""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.event_logger import record_failure
from storefront.logger import get_logger
from storefront.models import CartItem, Order, Product, ShippingAddress, utcnow
from storefront.responses import ApiError, NotFoundError, ValidationError
from storefront.validation import is_valid_price, is_valid_quantity, parse_quantity, sanitize_string

logger = get_logger("orders")

# Order money columns hold two decimal places
CENT = Decimal("0.01")

# Legal status moves. Writing the current status again is a no-op.
ORDER_TRANSITIONS = {
    "pending": ("confirmed", "cancelled"),
    "confirmed": ("ready_to_ship",),
    "ready_to_ship": ("shipped",),
    "shipped": ("delivered",),
    "delivered": (),
    "cancelled": (),
}


def _pick(item: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value is not None:
            return value
    return None


def validate_checkout_items(items: List[Any]) -> List[Dict[str, Any]]:
    """Check every item before anything is written; first failure wins."""
    normalized = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Invalid item data")
        product_id = _pick(item, "product_id", "productId")
        product_name = _pick(item, "product_name", "productName")
        price = item.get("price")
        if not product_id or not product_name or price is None:
            raise ValidationError("Invalid item data")
        if not is_valid_price(price):
            raise ValidationError("Invalid price in item")
        quantity = item.get("quantity")
        if not is_valid_quantity(quantity):
            raise ValidationError("Invalid quantity in item")
        try:
            unit_price = Decimal(str(price).strip()).quantize(CENT, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise ValidationError("Invalid price in item")
        normalized.append({
            "cart_item_id": item.get("id"),
            "product_id": sanitize_string(str(product_id), 100),
            "product_name": sanitize_string(str(product_name), 200),
            "price": unit_price,
            "quantity": parse_quantity(quantity),
            "seller_username": sanitize_string(_pick(item, "seller_username", "sellerUsername"), 100),
            "id_url": _pick(item, "id_url", "idUrl"),
        })
    return normalized


def _resolve_seller(db: Session, product_id: str) -> str:
    product = db.query(Product).filter(Product.product_id == product_id).first()
    return product.seller_username if product else "Unknown"


def checkout(
    db: Session,
    username: str,
    items: List[Any],
    shipping_address_id: Optional[str] = None,
    payment_method: Optional[str] = None,
    delivery_option: Optional[str] = None,
) -> List[Order]:
    lines = validate_checkout_items(items)

    if shipping_address_id:
        address = (
            db.query(ShippingAddress)
            .filter(ShippingAddress.id == shipping_address_id, ShippingAddress.username == username)
            .first()
        )
        if address is None:
            raise ValidationError("Invalid shipping address")

    logger.info("orders: method=checkout username=%s item_count=%s", username, len(lines))
    orders: List[Order] = []
    missing: List[Dict[str, Any]] = []
    try:
        for line in lines:
            order = Order(
                username=username,
                seller_username=line["seller_username"] or _resolve_seller(db, line["product_id"]),
                product_id=line["product_id"],
                product_name=line["product_name"],
                price=line["price"],
                quantity=line["quantity"],
                total_amount=line["price"] * line["quantity"],
                status="pending",
                id_url=line["id_url"] or None,
                shipping_address_id=shipping_address_id,
                payment_method=payment_method,
                delivery_option=delivery_option,
            )
            db.add(order)
            orders.append(order)
        db.flush()

        # Only cart rows the request references are removed; direct-buy items
        # carry no cart id.
        for line in lines:
            if not line["cart_item_id"]:
                continue
            result = db.execute(
                delete(CartItem).where(
                    CartItem.username == username,
                    CartItem.id == str(line["cart_item_id"]),
                )
            )
            if result.rowcount == 0:
                missing.append({"cart_item_id": line["cart_item_id"], "product_id": line["product_id"]})

        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("orders: method=checkout username=%s result=error error=%s", username, e, exc_info=True)
        raise ApiError("Failed to create order", 500)

    for order in orders:
        db.refresh(order)
    order_ids = [order.id for order in orders]
    logger.info("orders: method=checkout username=%s result=success order_ids=%s", username, order_ids)

    if missing:
        record_failure(
            db,
            "checkout.cart_cleanup",
            username=username,
            reference_id=order_ids[0] if order_ids else None,
            detail={"order_ids": order_ids, "missing_cart_items": missing},
        )
    return orders


def list_buyer_orders(db: Session, username: str) -> List[Dict[str, Any]]:
    """Buyer history newest first; image falls back to the product's."""
    rows = (
        db.query(Order, Product.id_url)
        .outerjoin(Product, Product.product_id == Order.product_id)
        .filter(Order.username == username)
        .order_by(Order.created_at.desc())
        .all()
    )
    result = []
    for order, product_image in rows:
        data = order.to_dict()
        if not data.get("id_url"):
            data["id_url"] = product_image
        result.append(data)
    return result


def list_seller_orders(db: Session, seller_username: Optional[str], status: Optional[str] = None) -> List[Order]:
    query = db.query(Order)
    if seller_username:
        query = query.filter(Order.seller_username == seller_username)
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc()).all()


def can_transition(current: str, target: str) -> bool:
    return target == current or target in ORDER_TRANSITIONS.get(current, ())


def update_status(db: Session, order: Order, status: str, tracking_number: Optional[str] = None) -> Order:
    if status not in ORDER_TRANSITIONS:
        raise ValidationError("Invalid status")
    if not can_transition(order.status, status):
        raise ValidationError(f"Invalid status transition from {order.status} to {status}")
    if status == order.status:
        return order

    logger.info("orders: method=update_status order_id=%s from=%s to=%s", order.id, order.status, status)
    order.status = status
    if status == "shipped" and tracking_number:
        order.tracking_number = sanitize_string(tracking_number, 200)
    if status == "cancelled":
        order.cancelled_at = utcnow()
    db.commit()
    db.refresh(order)
    return order


def cancel_order(db: Session, username: str, order_id: str, reason: Optional[str] = None) -> Order:
    order = db.query(Order).filter(Order.id == order_id, Order.username == username).first()
    if order is None:
        raise NotFoundError("Order not found. Please check the order ID and try again.")
    if order.status != "pending":
        raise ValidationError(
            "Cannot cancel this order. Only pending orders can be cancelled. "
            f"This order is currently {order.status}."
        )
    order.status = "cancelled"
    order.cancelled_at = utcnow()
    order.cancellation_reason = sanitize_string(reason, 500) or "Cancelled by user"
    db.commit()
    db.refresh(order)
    logger.info("orders: method=cancel_order order_id=%s username=%s result=success", order.id, username)
    return order
