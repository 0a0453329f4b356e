"""
Catalog writes and listings.
"""
from __future__ import annotations

import secrets
import string
import time
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.logger import get_logger
from storefront.models import Product
from storefront.responses import ConflictError, ValidationError
from storefront.validation import (
    is_valid_image_url, is_valid_price, sanitize_string, to_canonical_category, validate_length,
)

logger = get_logger("products")

_ID_ALPHABET = string.digits + string.ascii_uppercase


def generate_product_id(db: Session) -> str:
    """
    Ask the database's generate_product_id() function, on a connection of
    its own so a failure cannot poison the caller's transaction. Falls back
    to PROD-<epoch ms>-<9 random base36 chars>.
    """
    try:
        with db.get_bind().connect() as conn:
            value = conn.execute(text("SELECT generate_product_id()")).scalar()
        if value:
            return str(value)
    except SQLAlchemyError as e:
        logger.debug("products: generate_product_id unavailable error=%s", e)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"PROD-{int(time.time() * 1000)}-{suffix}"


def clean_product(payload: Dict[str, Any], require_image: bool = True) -> Dict[str, Any]:
    """Sanitize and validate product fields; raises ValidationError."""
    price = payload.get("price")
    if (
        not payload.get("product_name")
        or not payload.get("description")
        or price is None
        or price == ""
        or not payload.get("category")
        or (require_image and not payload.get("id_url"))
    ):
        raise ValidationError("All fields are required")

    product_name = sanitize_string(payload["product_name"], 200)
    description = sanitize_string(payload["description"], 1000)
    if not validate_length(product_name, 2, 200):
        raise ValidationError("Product name must be between 2 and 200 characters")
    if not validate_length(description, 10, 1000):
        raise ValidationError("Description must be between 10 and 1000 characters")
    if not is_valid_price(price):
        raise ValidationError("Invalid price format")
    id_url = payload.get("id_url")
    if id_url and not is_valid_image_url(id_url):
        raise ValidationError("Invalid image URL format")
    category = to_canonical_category(payload["category"])
    if category is None:
        raise ValidationError("Invalid category")

    fields = {
        "product_name": product_name,
        "description": description,
        "price": str(price).strip(),
        "category": category,
    }
    if id_url:
        fields["id_url"] = id_url
    return fields


def _commit_or_conflict(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("products: result=conflict error=%s", e)
        raise ConflictError("Product name already taken")


def create_product(db: Session, seller_username: str, fields: Dict[str, Any]) -> Product:
    product = Product(
        product_id=generate_product_id(db),
        seller_username=seller_username,
        **fields,
    )
    db.add(product)
    _commit_or_conflict(db)
    db.refresh(product)
    logger.info("products: method=create seller=%s product_id=%s", seller_username, product.product_id)
    return product


def find_product(db: Session, product_id: str) -> Optional[Product]:
    """Look a product up by its public product_id or its row id."""
    return (
        db.query(Product)
        .filter((Product.product_id == product_id) | (Product.id == product_id))
        .first()
    )


def update_product(db: Session, product: Product, fields: Dict[str, Any]) -> Product:
    for name, value in fields.items():
        setattr(product, name, value)
    _commit_or_conflict(db)
    db.refresh(product)
    logger.info("products: method=update product_id=%s", product.product_id)
    return product


def delete_product(db: Session, product: Product) -> None:
    logger.info("products: method=delete product_id=%s seller=%s", product.product_id, product.seller_username)
    db.delete(product)
    db.commit()


def serialize_product(product: Product) -> Dict[str, Any]:
    data = product.to_dict()
    data.update({
        "productId": product.product_id,
        "productName": product.product_name,
        "idUrl": product.id_url,
        "sellerUsername": product.seller_username,
        "createdAt": product.created_at,
        "updatedAt": product.updated_at,
    })
    return data


def list_products(
    db: Session,
    category: Optional[str] = None,
    seller_username: Optional[str] = None,
) -> List[Dict[str, Any]]:
    query = db.query(Product)
    if category is not None:
        query = query.filter(Product.category == category)
    if seller_username is not None:
        query = query.filter(Product.seller_username == seller_username)
    return [serialize_product(p) for p in query.order_by(Product.created_at.desc()).all()]
