"""
Admin endpoints: dashboard statistics, user and seller listings, seller
approval and the operational failure queue.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront import statistics
from storefront.auth import AuthenticatedPrincipal, require_role
from storefront.database import get_db
from storefront.event_logger import list_failures, resolve_failure
from storefront.logger import get_logger
from storefront.models import User
from storefront.responses import NotFoundError, ValidationError, create_success_response
from storefront.schemas import ResolveFailureRequest, SellerApprovalRequest

logger = get_logger("admin_api")

router = APIRouter(prefix="/admin", tags=["admin"])

require_admin = require_role("admin")


def _public_user(user: User, *fields: str):
    return {name: getattr(user, name) for name in fields}


@router.get("/statistics")
def get_statistics(
    principal: AuthenticatedPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return create_success_response({"statistics": statistics.get_statistics(db)})


@router.get("/users")
def list_users(
    principal: AuthenticatedPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    users = (
        db.query(User)
        .filter(User.role == "user")
        .order_by(User.created_at.desc())
        .all()
    )
    return create_success_response({
        "users": [_public_user(u, "id", "username", "email", "contact", "created_at") for u in users],
    })


@router.get("/sellers")
def list_sellers(
    principal: AuthenticatedPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    sellers = (
        db.query(User)
        .filter(User.role == "seller")
        .order_by(User.created_at.desc())
        .all()
    )
    fields = ("id", "username", "email", "contact", "id_url", "seller_status", "created_at")
    return create_success_response({"sellers": [_public_user(s, *fields) for s in sellers]})


@router.get("/pending-sellers")
def list_pending_sellers(
    principal: AuthenticatedPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    sellers = (
        db.query(User)
        .filter(User.role == "seller", User.seller_status == "pending")
        .order_by(User.created_at.desc())
        .all()
    )
    fields = ("id", "username", "email", "contact", "id_url", "created_at")
    return create_success_response({"pendingSellers": [_public_user(s, *fields) for s in sellers]})


@router.post("/approve-seller")
def approve_seller(
    body: SellerApprovalRequest,
    principal: AuthenticatedPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not body.seller_id or not body.action:
        raise ValidationError("Validation failed", errors=["sellerId and action are required"])
    if body.action not in ("approve", "reject"):
        raise ValidationError("Validation failed", errors=["action must be 'approve' or 'reject'"])

    seller = db.query(User).filter(User.id == body.seller_id, User.role == "seller").first()
    if seller is None:
        raise NotFoundError("Seller not found")

    seller.seller_status = "approved" if body.action == "approve" else "rejected"
    db.commit()
    db.refresh(seller)
    logger.info("admin_api: method=approve_seller seller_id=%s status=%s by=%s", seller.id, seller.seller_status, principal.id)
    fields = ("id", "username", "email", "contact", "id_url", "role", "seller_status", "created_at")
    return create_success_response(
        {"seller": _public_user(seller, *fields)},
        message=f"Seller {seller.seller_status} successfully",
    )


@router.get("/failures")
def get_failures(
    principal: AuthenticatedPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    failures = [f.to_dict() for f in list_failures(db)]
    return create_success_response({"failures": failures, "count": len(failures)})


@router.post("/failures/resolve")
def resolve(
    body: ResolveFailureRequest,
    principal: AuthenticatedPrincipal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    record = resolve_failure(db, body.id)
    if record is None:
        raise NotFoundError("Failure record not found")
    logger.info("admin_api: method=resolve_failure failure_id=%s by=%s", record.id, principal.id)
    return create_success_response({"failure": record.to_dict()}, message="Failure marked as resolved")
