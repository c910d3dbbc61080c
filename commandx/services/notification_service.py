"""
Admin Notification Service
In-app notifications for office staff. Notifications are company-wide; each
user's preferences decide which categories show up in their feed.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models import User
from ..models_messaging import AdminNotification

logger = logging.getLogger(__name__)

# notification_type -> User preference column
PREFERENCE_BY_TYPE = {
    "auto_clock_out": "notify_auto_clock_out",
    "missed_clock_in": "notify_missed_clock_in",
    "late_clock_in": "notify_missed_clock_in",
    "personnel_registration": "notify_onboarding",
    "onboarding_completed": "notify_onboarding",
    "onboarding_link_resent": "notify_onboarding",
    "onboarding_resend_failed": "notify_onboarding",
    "vendor_onboarding_submitted": "notify_onboarding",
    "application_approved": "notify_onboarding",
    "application_rejected": "notify_onboarding",
    "sms_reply": "notify_sms_replies",
}

PREFERENCE_FIELDS = (
    "notify_auto_clock_out",
    "notify_missed_clock_in",
    "notify_onboarding",
    "notify_sms_replies",
)


def create_admin_notification(
    db: Session,
    notification_type: str,
    title: str,
    message: Optional[str] = None,
    link: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    extra_data: Optional[dict] = None,
) -> AdminNotification:
    """Add a notification to the session. The caller owns the commit."""
    notification = AdminNotification(
        notification_type=notification_type,
        title=title,
        message=message,
        link=link,
        entity_type=entity_type,
        entity_id=entity_id,
        extra_data=extra_data,
    )
    db.add(notification)
    logger.info(f"🔔 Admin notification: [{notification_type}] {title}")
    return notification


def muted_types(user: User) -> list[str]:
    """Notification types the user has switched off"""
    return [
        notification_type
        for notification_type, preference in PREFERENCE_BY_TYPE.items()
        if not getattr(user, preference, True)
    ]


def get_preferences(user: User) -> dict:
    return {field: getattr(user, field) for field in PREFERENCE_FIELDS}
