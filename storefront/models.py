"""
SQLAlchemy database models.

Tables mirror the Supabase schema used by the storefront:
- users, products, cart_items, orders, shipping_addresses (application data)
- auth_identities (credentials for the local auth provider)
- operational_failures (queryable record of non-fatal inconsistencies)
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Index, Integer, JSON, Numeric,
    String, Text, UniqueConstraint, text,
)
from sqlalchemy.sql import func

from storefront.database import Base

ROLES = ("user", "seller", "admin")
SELLER_STATUSES = ("pending", "approved", "rejected")
ORDER_STATUSES = ("pending", "confirmed", "ready_to_ship", "shipped", "delivered", "cancelled")


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SerializerMixin:
    """Plain-dict view of a row, keyed by column name."""

    def to_dict(self):
        return {c.key: getattr(self, c.key) for c in self.__table__.columns}


class User(SerializerMixin, Base):
    """
    Application user row. Keyed by email; the auth provider identity is a
    separate record joined on that email.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    username = Column(String(100), unique=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(20), nullable=False, default="user")
    seller_status = Column(String(20), nullable=True)  # only meaningful for sellers
    contact = Column(String(20), nullable=True)
    id_url = Column(Text, nullable=True)  # verification document
    password_changed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class Product(SerializerMixin, Base):
    """Catalog entry owned by one seller (weak reference by username)."""
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("seller_username", "product_name", name="uq_products_seller_name"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    product_id = Column(String(100), unique=True, index=True, nullable=False)
    seller_username = Column(String(100), index=True, nullable=False)
    product_name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    price = Column(String(32), nullable=False)  # decimal-compatible string
    category = Column(String(50), index=True, nullable=False)
    id_url = Column(Text, nullable=True)  # image
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class CartItem(SerializerMixin, Base):
    """
    One row per (username, product_id). Product fields are a snapshot taken
    at add time and are not re-synced with the catalog.
    """
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("username", "product_id", name="uq_cart_items_username_product"),
        CheckConstraint("quantity > 0", name="ck_cart_items_quantity_positive"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    username = Column(String(100), index=True, nullable=False)
    product_id = Column(String(100), nullable=False)
    product_name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(String(32), nullable=False)
    id_url = Column(Text, nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class Order(SerializerMixin, Base):
    """One order per checked-out cart line."""
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_new_id)
    username = Column(String(100), index=True, nullable=False)  # buyer
    seller_username = Column(String(100), index=True, nullable=False)
    product_id = Column(String(100), nullable=False)
    product_name = Column(String(200), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)  # price * quantity at creation
    status = Column(String(20), index=True, nullable=False, default="pending")
    id_url = Column(Text, nullable=True)
    shipping_address_id = Column(String(36), nullable=True)
    payment_method = Column(String(50), nullable=True)
    delivery_option = Column(String(50), nullable=True)
    tracking_number = Column(String(200), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class ShippingAddress(SerializerMixin, Base):
    """
    Shipping address owned by one username. At most one default per user,
    backed by a partial unique index.
    """
    __tablename__ = "shipping_addresses"
    __table_args__ = (
        Index(
            "uq_shipping_addresses_one_default",
            "username",
            unique=True,
            postgresql_where=text("is_default"),
            sqlite_where=text("is_default = 1"),
        ),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    username = Column(String(100), index=True, nullable=False)
    full_name = Column(String(100), nullable=False)
    phone_number = Column(String(20), nullable=False)
    address_line1 = Column(String(200), nullable=False)
    address_line2 = Column(String(200), nullable=True)
    city = Column(String(100), nullable=False)
    province = Column(String(100), nullable=False)
    postal_code = Column(String(20), nullable=False)
    country = Column(String(100), nullable=False)
    is_default = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class AuthIdentity(Base):
    """Credential record for the local auth provider (never serialized)."""
    __tablename__ = "auth_identities"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    user_metadata = Column(JSON, nullable=True)
    email_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class OperationalFailure(SerializerMixin, Base):
    """
    Append-only record of a non-fatal failure (e.g. stale cart rows after
    checkout) so operators can reconcile it out-of-band.
    """
    __tablename__ = "operational_failures"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    operation = Column(String(100), index=True, nullable=False)
    username = Column(String(100), nullable=True)
    reference_id = Column(String(100), nullable=True)
    detail = Column(JSON, nullable=True)
    resolved = Column(Boolean, nullable=False, default=False)


class WebsiteVisit(Base):
    """Anonymous page view; admin pages and admin visitors are never stored."""
    __tablename__ = "website_visits"

    id = Column(String(36), primary_key=True, default=_new_id)
    page_path = Column(Text, nullable=False)
    visitor_id = Column(String(100), nullable=True)
    user_agent = Column(String(500), nullable=True)
    ip_address = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)
