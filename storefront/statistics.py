"""
Admin dashboard statistics.

Prefers the get_admin_statistics() database function (one round trip) and
degrades to individual count queries when it is not installed. Both paths
produce the same keys.
"""
from typing import Any, Dict, Optional

from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.logger import get_logger
from storefront.models import Order, Product, User

logger = get_logger("statistics")


def _from_database_function(db: Session) -> Optional[Dict[str, Any]]:
    try:
        with db.get_bind().connect() as conn:
            row = conn.execute(text("SELECT * FROM get_admin_statistics()")).mappings().first()
    except SQLAlchemyError as e:
        logger.info("statistics: source=function result=unavailable error=%s", e)
        return None
    if row is None:
        return None
    return {
        "totalUsers": int(row.get("total_users") or 0),
        "totalSellers": int(row.get("total_sellers") or 0),
        "totalProducts": int(row.get("total_products") or 0),
        "totalOrders": int(row.get("total_orders") or 0),
        "pendingSellers": int(row.get("pending_sellers") or 0),
        "totalRevenue": float(row.get("total_revenue") or 0),
    }


def _from_queries(db: Session) -> Dict[str, Any]:
    def count_users(*criteria):
        return db.query(func.count(User.id)).filter(*criteria).scalar() or 0

    revenue = (
        db.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.status == "delivered")
        .scalar()
    )
    return {
        "totalUsers": count_users(User.role == "user"),
        "totalSellers": count_users(User.role == "seller", User.seller_status == "approved"),
        "totalProducts": db.query(func.count(Product.id)).scalar() or 0,
        "totalOrders": db.query(func.count(Order.id)).scalar() or 0,
        "pendingSellers": count_users(User.role == "seller", User.seller_status == "pending"),
        "totalRevenue": float(revenue or 0),
    }


def get_statistics(db: Session) -> Dict[str, Any]:
    stats = _from_database_function(db)
    if stats is None:
        stats = _from_queries(db)
    return stats
