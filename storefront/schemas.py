"""
Pydantic v2 request schemas.

Bodies arrive from a JavaScript front end, so most fields accept both the
camelCase and snake_case spelling. Fields are loosely typed on purpose:
format checks live in storefront.validation so that every handler answers
with the same user-facing messages.
"""

from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def _alias(*names: str, default: Any = None):
    return Field(default=default, validation_alias=AliasChoices(*names))


class RequestModel(BaseModel):
    """Unknown fields are ignored: clients send display-only extras."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class StrictRequestModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


#
# Auth
#

class LoginRequest(RequestModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RegisterRequest(RequestModel):
    display_name: Optional[str] = _alias("displayName", "display_name", "username")
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    contact: Optional[str] = None
    id_url: Optional[str] = _alias("idUrl", "id_url")


class PasswordResetRequest(RequestModel):
    email: Optional[str] = None


#
# Cart and checkout
#

class CartAddRequest(RequestModel):
    username: Optional[str] = None
    product_id: Optional[str] = _alias("productId", "product_id")
    product_name: Optional[str] = _alias("productName", "product_name")
    description: Optional[str] = None
    price: Any = None
    id_url: Optional[str] = _alias("idUrl", "id_url")
    quantity: Any = None


class CheckoutRequest(RequestModel):
    username: Optional[str] = None
    # Items are checked one by one so a bad entry yields "Invalid item data"
    items: Optional[List[Any]] = None
    shipping_address_id: Optional[str] = _alias("shippingAddressId", "shipping_address_id")
    payment_method: Optional[str] = _alias("paymentMethod", "payment_method")
    delivery_option: Optional[str] = _alias("deliveryOption", "delivery_option")


#
# Orders
#

class OrderStatusUpdateRequest(StrictRequestModel):
    order_id: Optional[str] = _alias("orderId", "order_id")
    status: Optional[str] = None
    tracking_number: Optional[str] = _alias("trackingNumber", "tracking_number")


class OrderCancelRequest(RequestModel):
    order_id: Optional[str] = _alias("orderId", "order_id")
    cancellation_reason: Optional[str] = _alias("cancellationReason", "cancellation_reason", "reason")
    username: Optional[str] = None


#
# Products
#

class ProductRequest(RequestModel):
    product_id: Optional[str] = _alias("productId", "product_id")
    product_name: Optional[str] = _alias("productName", "product_name")
    description: Optional[str] = None
    price: Any = None
    category: Optional[str] = None
    id_url: Optional[str] = _alias("idUrl", "id_url")
    username: Optional[str] = _alias("username", "sellerUsername", "seller_username")


#
# Shipping
#

class ShippingAddressRequest(RequestModel):
    id: Optional[str] = None
    username: Optional[str] = None
    full_name: Optional[str] = _alias("fullName", "full_name")
    phone_number: Optional[str] = _alias("phoneNumber", "phone_number")
    address_line1: Optional[str] = _alias("addressLine1", "address_line1")
    address_line2: Optional[str] = _alias("addressLine2", "address_line2")
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = _alias("postalCode", "postal_code")
    country: Optional[str] = None
    is_default: Any = _alias("isDefault", "is_default", default=False)


#
# Admin
#

class SellerApprovalRequest(StrictRequestModel):
    seller_id: Optional[str] = _alias("sellerId", "seller_id")
    action: Optional[str] = None


class ResolveFailureRequest(StrictRequestModel):
    id: int


#
# Utilities
#

class TrackVisitRequest(RequestModel):
    page_path: Optional[str] = _alias("pagePath", "page_path")
    visitor_id: Optional[str] = _alias("visitorId", "visitor_id")
    user_agent: Optional[str] = _alias("userAgent", "user_agent")
    ip_address: Optional[str] = _alias("ipAddress", "ip_address")
