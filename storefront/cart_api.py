"""
Cart endpoints. Every route acts on the caller's own cart unless the caller
is an admin.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront import cart
from storefront.auth import AuthenticatedPrincipal, ensure_owner, require_auth
from storefront.database import get_db
from storefront.responses import AuthorizationError, NotFoundError, ValidationError, create_success_response
from storefront.schemas import CartAddRequest
from storefront.validation import (
    is_valid_image_url, is_valid_price, is_valid_quantity, parse_quantity,
    sanitize_string, validate_length,
)

router = APIRouter(prefix="/cart", tags=["cart"])


def _ensure_reader(principal: AuthenticatedPrincipal, username: str) -> None:
    # Reads also accept the caller's email in place of the username
    if principal.is_admin or username in (principal.username, principal.email):
        return
    raise AuthorizationError("Forbidden", error="You do not have permission to access this resource")


@router.post("/add-to-cart")
def add_to_cart(
    body: CartAddRequest,
    principal: AuthenticatedPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    username = sanitize_string(body.username or principal.username, 100)
    product_id = sanitize_string(body.product_id, 100)
    product_name = sanitize_string(body.product_name, 200)
    description = sanitize_string(body.description, 1000)
    id_url = sanitize_string(body.id_url, 500)
    quantity = body.quantity if body.quantity is not None else 1

    ensure_owner(principal, username, "Forbidden: You can only add items to your own cart")

    if not username or not product_id or not product_name or not description or body.price is None or not id_url:
        raise ValidationError("All fields are required")
    if not validate_length(product_id, 1, 100):
        raise ValidationError("Product ID must be between 1 and 100 characters")
    if not validate_length(product_name, 1, 200):
        raise ValidationError("Product name must be between 1 and 200 characters")
    if not validate_length(description, 1, 1000):
        raise ValidationError("Description must be between 1 and 1000 characters")
    if not is_valid_price(body.price):
        raise ValidationError("Invalid price format")
    if not is_valid_image_url(id_url):
        raise ValidationError("Invalid image URL format")
    if not is_valid_quantity(quantity):
        raise ValidationError("Quantity must be a positive integer")

    result = cart.add_item(
        db,
        username=username,
        product_id=product_id,
        product_name=product_name,
        description=description,
        price=str(body.price).strip(),
        id_url=id_url,
        quantity=parse_quantity(quantity),
    )
    if result.merged:
        return create_success_response(
            {"updated": True, "quantity": result.item.quantity},
            message="Product quantity updated in cart!",
        )
    return create_success_response(
        {"cartItem": result.item.to_dict()},
        message="Product added to cart successfully!",
    )


@router.delete("/remove-from-cart")
def remove_from_cart(
    id: Optional[str] = Query(None),
    username: Optional[str] = Query(None),
    principal: AuthenticatedPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    item_id = sanitize_string(id, 100)
    username = sanitize_string(username or principal.username, 100)
    if not item_id or not username:
        raise ValidationError("Missing id or username")
    ensure_owner(principal, username, "Forbidden: You can only remove items from your own cart")

    item = cart.get_item(db, item_id)
    if item is None:
        raise NotFoundError("Item not found")
    ensure_owner(principal, item.username, "Forbidden: You do not have permission to remove this cart item")

    cart.remove_item(db, item)
    return create_success_response(message="Item removed successfully")


@router.patch("/update-cart-quantity")
def update_cart_quantity(
    id: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    username: Optional[str] = Query(None),
    principal: AuthenticatedPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    item_id = sanitize_string(id, 100)
    action = sanitize_string(action, 20)
    username = sanitize_string(username or principal.username, 100)
    if not item_id or not action or not username:
        raise ValidationError("Missing required parameters")
    if action not in ("increase", "decrease"):
        raise ValidationError("Invalid action. Must be 'increase' or 'decrease'")
    ensure_owner(principal, username, "Forbidden: You can only modify your own cart")

    item = cart.get_item(db, item_id)
    if item is None or (item.username != username and not principal.is_admin):
        raise NotFoundError("Cart item not found")
    ensure_owner(principal, item.username, "Forbidden: You do not have permission to modify this cart item")

    if action == "increase":
        updated = cart.increase_quantity(db, item_id)
    else:
        updated = cart.decrease_quantity(db, item_id)
        if updated is None:
            return create_success_response({"removed": True}, message="Item removed from cart")
    return create_success_response({"cartItem": updated.to_dict()}, message="Quantity updated successfully")


@router.get("/get-cart")
def get_cart(
    username: Optional[str] = Query(None),
    principal: AuthenticatedPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    username = sanitize_string(username, 100)
    if not username:
        raise ValidationError("Validation failed", errors=["Username is required"])
    _ensure_reader(principal, username)
    if username == principal.email:
        username = principal.username

    items = cart.list_items(db, username)
    return create_success_response({"cart": items, "count": len(items)})


@router.get("/get-cart-count")
def get_cart_count(
    username: Optional[str] = Query(None),
    principal: AuthenticatedPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    username = sanitize_string(username, 100)
    if not username:
        return create_success_response({"count": 0})
    _ensure_reader(principal, username)
    if username == principal.email:
        username = principal.username
    return create_success_response({"count": cart.count_items(db, username)})
