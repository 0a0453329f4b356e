"""
Shipping address CRUD on a single path, dispatched by HTTP method.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront import shipping
from storefront.auth import AuthenticatedPrincipal, ensure_owner, require_auth
from storefront.config import get_config
from storefront.database import get_db
from storefront.responses import MethodNotAllowedError, NotFoundError, ValidationError, create_success_response
from storefront.schemas import ShippingAddressRequest
from storefront.validation import sanitize_string

router = APIRouter(prefix="/shipping", tags=["shipping"])

ADDRESSES_PATH = "/shipping-addresses"


@router.get(ADDRESSES_PATH)
def list_addresses(
    username: Optional[str] = Query(None),
    principal: AuthenticatedPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    username = sanitize_string(username or principal.username, 100)
    ensure_owner(principal, username, "Forbidden: You can only access your own addresses")
    addresses = [a.to_dict() for a in shipping.list_addresses(db, username)]
    return create_success_response({"addresses": addresses})


@router.post(ADDRESSES_PATH, status_code=201)
def create_address(
    body: ShippingAddressRequest,
    principal: AuthenticatedPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    username = sanitize_string(body.username or principal.username, 100)
    ensure_owner(principal, username, "Forbidden: You can only add addresses to your own account")

    fields = shipping.clean_address(body.model_dump(), get_config().default_country)
    address = shipping.create_address(db, username, fields)
    return create_success_response(
        {"address": address.to_dict()},
        message="Shipping address added successfully",
        status=201,
    )


@router.put(ADDRESSES_PATH)
def update_address(
    body: ShippingAddressRequest,
    principal: AuthenticatedPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    username = sanitize_string(body.username or principal.username, 100)
    ensure_owner(principal, username, "Forbidden: You can only update your own addresses")
    if not body.id:
        raise ValidationError("Missing required fields")

    fields = shipping.clean_address(body.model_dump(), get_config().default_country)
    address = shipping.get_address(db, body.id, username)
    if address is None:
        raise NotFoundError("Address not found")

    address = shipping.update_address(db, address, fields)
    return create_success_response(
        {"address": address.to_dict()},
        message="Shipping address updated successfully",
    )


@router.delete(ADDRESSES_PATH)
def delete_address(
    id: Optional[str] = Query(None),
    username: Optional[str] = Query(None),
    principal: AuthenticatedPrincipal = Depends(require_auth),
    db: Session = Depends(get_db),
):
    username = sanitize_string(username or principal.username, 100)
    ensure_owner(principal, username, "Forbidden: You can only delete your own addresses")
    if not id:
        raise ValidationError("Address ID is required")

    address = shipping.get_address(db, id, username)
    if address is None:
        raise NotFoundError("Address not found")
    shipping.delete_address(db, address)
    return create_success_response(message="Shipping address deleted successfully")


@router.api_route(ADDRESSES_PATH, methods=["PATCH"], include_in_schema=False)
def method_not_allowed():
    raise MethodNotAllowedError("Method not allowed")
