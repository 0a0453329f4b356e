"""
Order endpoints: checkout, buyer history, seller fulfilment and cancellation.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront import orders
from storefront.auth import AuthenticatedPrincipal, ensure_owner, require_auth, require_role
from storefront.database import get_db
from storefront.models import ORDER_STATUSES, Order
from storefront.responses import AuthorizationError, NotFoundError, ValidationError, create_success_response
from storefront.schemas import CheckoutRequest, OrderCancelRequest, OrderStatusUpdateRequest
from storefront.validation import sanitize_string

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/checkout")
def checkout(
    body: CheckoutRequest,
    principal: AuthenticatedPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    username = sanitize_string(body.username or principal.username, 100)
    if not username or not body.items:
        raise ValidationError("Username and items are required")
    ensure_owner(principal, username, "Forbidden: You can only checkout your own cart")

    created = orders.checkout(
        db,
        username,
        body.items,
        shipping_address_id=sanitize_string(body.shipping_address_id, 36) or None,
        payment_method=sanitize_string(body.payment_method, 50) or None,
        delivery_option=sanitize_string(body.delivery_option, 50) or None,
    )
    return create_success_response(
        {"orders": [order.to_dict() for order in created]},
        message="Order created successfully",
    )


@router.get("/get-orders")
def get_orders(
    username: Optional[str] = Query(None),
    principal: AuthenticatedPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    username = sanitize_string(username, 100)
    if not username:
        raise ValidationError("Validation failed", errors=["Username is required"])
    if username == principal.email:
        username = principal.username
    if username != principal.username and not principal.is_admin:
        raise AuthorizationError("Forbidden", error="You do not have permission to access this resource")

    history = orders.list_buyer_orders(db, username)
    return create_success_response({"orders": history, "count": len(history)})


@router.get("/seller-orders")
def seller_orders(
    seller_username: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    principal: AuthenticatedPrincipal = Depends(require_role("seller", "admin")),
    db: Session = Depends(get_db),
):
    seller_username = sanitize_string(seller_username, 100) or None
    if not principal.is_admin:
        if seller_username and seller_username != principal.username:
            raise AuthorizationError("Forbidden: You can only view your own orders")
        seller_username = principal.username
    if status and status not in ORDER_STATUSES:
        raise ValidationError("Invalid status")

    rows = [order.to_dict() for order in orders.list_seller_orders(db, seller_username, status or None)]
    return create_success_response({"orders": rows, "count": len(rows)})


@router.patch("/update-status")
def update_status(
    body: OrderStatusUpdateRequest,
    principal: AuthenticatedPrincipal = Depends(require_role("seller", "admin")),
    db: Session = Depends(get_db),
):
    order_id = sanitize_string(body.order_id, 36)
    status = sanitize_string(body.status, 20)
    if not order_id or not status:
        raise ValidationError("Order ID and status are required")

    order = db.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    ensure_owner(principal, order.seller_username, "Forbidden: You can only update your own orders")

    order = orders.update_status(db, order, status, body.tracking_number)
    return create_success_response({"order": order.to_dict()}, message="Order status updated")


@router.post("/cancel")
def cancel(
    body: OrderCancelRequest,
    principal: AuthenticatedPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    order_id = sanitize_string(body.order_id, 100)
    username = sanitize_string(body.username or principal.username, 100)
    if not order_id:
        raise ValidationError("Order ID is required to cancel an order")
    ensure_owner(principal, username, "Forbidden: You can only cancel your own orders")

    order = orders.cancel_order(db, username, order_id, body.cancellation_reason)
    return create_success_response({"order": order.to_dict()}, message="Order cancelled successfully")
