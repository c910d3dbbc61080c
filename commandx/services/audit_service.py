import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models import User
from ..models_audit import AuditLog

logger = logging.getLogger(__name__)


def record_audit(
    db: Session,
    user: Optional[User],
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    details: Optional[dict] = None,
) -> AuditLog:
    """Add an audit log row to the session. Committed with the change it describes."""
    entry = AuditLog(
        user_id=user.id if user else None,
        user_email=user.email if user else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )
    db.add(entry)
    logger.debug(f"📝 Audit: {action} {entity_type}#{entity_id}")
    return entry
