import json
import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ingres.models.audit import AuditLog

logger = logging.getLogger(__name__)


def log_audit(db: Session, action: str, details: Optional[Any] = None, user_hint: Optional[str] = None) -> None:
    """Best-effort: an audit failure never fails the request."""
    try:
        db.add(AuditLog(
            action=action,
            details=json.dumps(details, default=str) if details is not None else None,
            user_hint=user_hint,
        ))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning("Audit log failed for %s: %s", action, e)
