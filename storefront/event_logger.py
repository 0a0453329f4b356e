"""
Operational failure records.
Append-only log of non-fatal inconsistencies for out-of-band reconciliation.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.logger import get_logger
from storefront.models import OperationalFailure

logger = get_logger("event_logger")

SENSITIVE_KEYS = [
    'password', 'token', 'api_key', 'secret', 'address', 'postal_code',
    'phone', 'email', 'contact',
]


def redact_sensitive_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Redact sensitive data from a payload before it is persisted.
    Removes: credentials, addresses, contact details.
    """
    redacted = {}
    for key, value in data.items():
        key_lower = str(key).lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
            redacted[key] = '[REDACTED]'
        elif isinstance(value, dict):
            redacted[key] = redact_sensitive_data(value)
        elif isinstance(value, list):
            redacted[key] = [
                redact_sensitive_data(item) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            redacted[key] = value
    return redacted


def record_failure(
    db: Session,
    operation: str,
    username: Optional[str] = None,
    reference_id: Optional[str] = None,
    detail: Optional[Dict[str, Any]] = None,
) -> Optional[OperationalFailure]:
    """
    Persist one failure record in its own commit.

    Never raises: a failure to record is logged and None is returned, so
    callers on a success path are not turned into errors.
    """
    logger.warning(
        "failure: operation=%s username=%s reference_id=%s", operation, username, reference_id
    )
    try:
        record = OperationalFailure(
            operation=operation,
            username=username,
            reference_id=reference_id,
            detail=redact_sensitive_data(detail or {}),
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        return record
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("failure: operation=%s result=not_recorded error=%s", operation, e)
        return None


def list_failures(db: Session, include_resolved: bool = False) -> List[OperationalFailure]:
    query = db.query(OperationalFailure)
    if not include_resolved:
        query = query.filter(OperationalFailure.resolved.is_(False))
    return query.order_by(OperationalFailure.created_at.desc(), OperationalFailure.id.desc()).all()


def resolve_failure(db: Session, failure_id: int) -> Optional[OperationalFailure]:
    record = db.get(OperationalFailure, failure_id)
    if record is None:
        return None
    record.resolved = True
    db.commit()
    db.refresh(record)
    return record
