"""
Product endpoints. Listings are public; writes need an approved seller or
an admin, and sellers only touch their own products.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront import products
from storefront.auth import AuthenticatedPrincipal, ensure_owner, require_auth, require_role
from storefront.database import get_db
from storefront.responses import AuthorizationError, NotFoundError, ValidationError, create_success_response
from storefront.schemas import ProductRequest
from storefront.validation import sanitize_string, to_canonical_category

router = APIRouter(prefix="/products", tags=["products"])

require_seller_or_admin = require_role("seller", "admin")


def _ensure_approved(principal: AuthenticatedPrincipal) -> None:
    if principal.role == "seller" and principal.seller_status != "approved":
        raise AuthorizationError("Forbidden: Seller account is not approved")


@router.post("/add-product", status_code=201)
def add_product(
    body: ProductRequest,
    principal: AuthenticatedPrincipal = Depends(require_seller_or_admin),
    db: Session = Depends(get_db),
):
    _ensure_approved(principal)
    username = sanitize_string(body.username or principal.username, 100)
    ensure_owner(principal, username, "Forbidden: You can only add products to your own account")

    fields = products.clean_product(body.model_dump(), require_image=True)
    product = products.create_product(db, username, fields)
    return create_success_response(
        {"productId": product.product_id},
        message="Product added successfully!",
        status=201,
    )


@router.put("/update-product")
def update_product(
    body: ProductRequest,
    principal: AuthenticatedPrincipal = Depends(require_seller_or_admin),
    db: Session = Depends(get_db),
):
    _ensure_approved(principal)
    product_id = sanitize_string(body.product_id, 100)
    if not product_id:
        raise ValidationError("All fields are required")
    if body.username and principal.role == "seller" and body.username != principal.username:
        raise AuthorizationError("Forbidden: You can only edit your own products")

    fields = products.clean_product(body.model_dump(), require_image=False)
    product = products.find_product(db, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    ensure_owner(principal, product.seller_username, "Forbidden: You can only edit your own products")

    product = products.update_product(db, product, fields)
    return create_success_response(
        {"product": products.serialize_product(product)},
        message="Product updated successfully!",
    )


@router.delete("/delete-product")
def delete_product(
    id: Optional[str] = Query(None),
    username: Optional[str] = Query(None),
    principal: AuthenticatedPrincipal = Depends(require_seller_or_admin),
    db: Session = Depends(get_db),
):
    product_id = sanitize_string(id, 100)
    username = sanitize_string(username or principal.username, 100)
    if not product_id:
        raise ValidationError("Validation failed", errors=["Missing id or username"])

    product = products.find_product(db, product_id)
    if product is None:
        raise NotFoundError("Item not found")
    if principal.role == "seller" and (product.seller_username != principal.username or username != principal.username):
        raise AuthorizationError("Forbidden", error="You can only delete your own products")

    products.delete_product(db, product)
    return create_success_response(message="Item removed successfully")


@router.get("/get-products")
def get_products(db: Session = Depends(get_db)):
    items = products.list_products(db)
    return create_success_response({"products": items, "count": len(items)})


@router.get("/get-products-by-category")
def get_products_by_category(
    category: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    if not category:
        raise ValidationError("Category parameter is required")
    # Unknown labels match nothing rather than erroring
    canonical = to_canonical_category(category) or sanitize_string(category, 50)
    items = products.list_products(db, category=canonical)
    return create_success_response({"products": items, "count": len(items)})


@router.get("/get-seller-products")
def get_seller_products(
    username: Optional[str] = Query(None),
    principal: AuthenticatedPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    username = sanitize_string(username, 100) or principal.username
    ensure_owner(principal, username, "Forbidden: You can only view your own products")
    items = products.list_products(db, seller_username=username)
    return create_success_response({"products": items, "count": len(items)})
