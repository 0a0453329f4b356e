"""
Shipping addresses.

At most one default address per username. Clearing the other defaults and
writing the target row happen in one transaction, and the partial unique
index uq_shipping_addresses_one_default rejects whatever a concurrent
writer slips in.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.logger import get_logger
from storefront.models import ShippingAddress
from storefront.responses import ConflictError, ValidationError
from storefront.validation import is_valid_phone, is_valid_postal_code, sanitize_string, validate_length

logger = get_logger("shipping")

ADDRESS_FIELDS = (
    "full_name", "phone_number", "address_line1", "address_line2",
    "city", "province", "postal_code", "country", "is_default",
)


def parse_is_default(value: Any) -> bool:
    return value is True or value == "true"


def clean_address(payload: Dict[str, Any], default_country: str) -> Dict[str, Any]:
    """Sanitize and validate an address body; raises ValidationError."""
    fields = {
        "full_name": sanitize_string(payload.get("full_name"), 100),
        "phone_number": sanitize_string(payload.get("phone_number"), 20),
        "address_line1": sanitize_string(payload.get("address_line1"), 200),
        "address_line2": sanitize_string(payload.get("address_line2"), 200) or None,
        "city": sanitize_string(payload.get("city"), 100),
        "province": sanitize_string(payload.get("province"), 100),
        "postal_code": sanitize_string(payload.get("postal_code"), 20),
        "country": sanitize_string(payload.get("country") or default_country, 100),
        "is_default": parse_is_default(payload.get("is_default")),
    }
    required = ("full_name", "phone_number", "address_line1", "city", "province", "postal_code")
    if not all(fields[name] for name in required):
        raise ValidationError("Missing required fields")
    if not validate_length(fields["full_name"], 2, 100):
        raise ValidationError("Full name must be between 2 and 100 characters")
    if not is_valid_phone(fields["phone_number"]):
        raise ValidationError("Invalid phone number format")
    if not validate_length(fields["address_line1"], 5, 200):
        raise ValidationError("Address line 1 must be between 5 and 200 characters")
    if not validate_length(fields["city"], 2, 100):
        raise ValidationError("City must be between 2 and 100 characters")
    if not validate_length(fields["province"], 2, 100):
        raise ValidationError("Province must be between 2 and 100 characters")
    if not is_valid_postal_code(fields["postal_code"]):
        raise ValidationError("Invalid postal code format")
    return fields


def list_addresses(db: Session, username: str) -> List[ShippingAddress]:
    return (
        db.query(ShippingAddress)
        .filter(ShippingAddress.username == username)
        .order_by(ShippingAddress.is_default.desc(), ShippingAddress.created_at.desc())
        .all()
    )


def _clear_other_defaults(db: Session, username: str, keep_id: Optional[str] = None) -> None:
    stmt = update(ShippingAddress).where(
        ShippingAddress.username == username,
        ShippingAddress.is_default.is_(True),
    )
    if keep_id:
        stmt = stmt.where(ShippingAddress.id != keep_id)
    db.execute(stmt.values(is_default=False))


def _commit_or_conflict(db: Session, username: str) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("shipping: username=%s result=conflict error=%s", username, e)
        raise ConflictError("Another default address was set concurrently. Please try again.")


def create_address(db: Session, username: str, fields: Dict[str, Any]) -> ShippingAddress:
    if fields["is_default"]:
        _clear_other_defaults(db, username)
    address = ShippingAddress(username=username, **fields)
    db.add(address)
    _commit_or_conflict(db, username)
    db.refresh(address)
    logger.info("shipping: method=create username=%s address_id=%s is_default=%s", username, address.id, address.is_default)
    return address


def get_address(db: Session, address_id: str, username: str) -> Optional[ShippingAddress]:
    return (
        db.query(ShippingAddress)
        .filter(ShippingAddress.id == address_id, ShippingAddress.username == username)
        .first()
    )


def update_address(db: Session, address: ShippingAddress, fields: Dict[str, Any]) -> ShippingAddress:
    username = address.username
    if fields["is_default"]:
        _clear_other_defaults(db, username, keep_id=address.id)
    for name in ADDRESS_FIELDS:
        setattr(address, name, fields[name])
    _commit_or_conflict(db, username)
    db.refresh(address)
    logger.info("shipping: method=update username=%s address_id=%s is_default=%s", username, address.id, address.is_default)
    return address


def delete_address(db: Session, address: ShippingAddress) -> None:
    logger.info("shipping: method=delete username=%s address_id=%s", address.username, address.id)
    db.delete(address)
    db.commit()
