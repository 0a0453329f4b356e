"""
Utility endpoints: anonymous page-visit tracking.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.auth import get_authenticated_user, get_user_data
from storefront.auth_provider import AuthProvider, get_auth_provider
from storefront.database import get_db
from storefront.logger import get_logger
from storefront.models import User, WebsiteVisit
from storefront.responses import ApiError, ValidationError, create_success_response
from storefront.schemas import TrackVisitRequest
from storefront.validation import sanitize_string, validate_length

logger = get_logger("utils_api")

router = APIRouter(prefix="/utils", tags=["utils"])


def _optional(value: Optional[str], max_length: int) -> Optional[str]:
    return sanitize_string(value, max_length) or None


def _is_admin_visitor(request: Request, db: Session, provider: AuthProvider) -> bool:
    """A bearer token is optional here; a bad one just means an anonymous visit."""
    if not request.headers.get("authorization"):
        return False
    identity, _ = get_authenticated_user(request, provider)
    if identity is None:
        return False

    user = get_user_data(db, identity.email) if identity.email else None
    username = identity.metadata.get("display_name") or identity.metadata.get("username")
    if user is None and username:
        user = db.query(User).filter(User.username == username).first()
    return user is not None and user.role == "admin"


@router.post("/track-visit")
def track_visit(
    body: TrackVisitRequest,
    request: Request,
    db: Session = Depends(get_db),
    provider: AuthProvider = Depends(get_auth_provider),
):
    if not body.page_path:
        raise ValidationError("Validation failed", errors=["pagePath is required"])

    page_path = sanitize_string(body.page_path, 500)
    if not validate_length(page_path, 1, 500):
        raise ValidationError("Validation failed", errors=["Invalid page path"])

    if page_path.startswith("/admin"):
        return create_success_response(message="Admin pages are not tracked")
    if _is_admin_visitor(request, db, provider):
        return create_success_response(message="Admin visits are not tracked")

    visit = WebsiteVisit(
        page_path=page_path,
        visitor_id=_optional(body.visitor_id, 100),
        user_agent=_optional(body.user_agent, 500),
        ip_address=_optional(body.ip_address, 50),
    )
    db.add(visit)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("utils_api: method=track_visit result=error error=%s", e)
        raise ApiError("Visit tracking failed", 500)

    logger.debug("utils_api: method=track_visit visit_id=%s", visit.id)
    return create_success_response(message="Visit tracked successfully")
