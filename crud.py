"""Database operations for the notification scheduler.

Read-only queries used by the scheduler cycle, the relationship resolver and
the notification writes used by the notification service.
IMPORTANT: query functions return pydantic projections, never ORM objects, so
nothing tracked by the session leaks out of a cycle.
"""

from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime, timezone

from database import (
    DailyActivity, Notification, NotificationPreference, NotificationType,
    Relationship, Reminder
)
from schemas import CelebrationItem, DailyActivityItem, RelationshipRef, ReminderItem
from logger_config import setup_logger

logger = setup_logger(__name__, 'crud.log')


def get_upcoming_reminders(db: Session, now: datetime, window_end: datetime) -> List[ReminderItem]:
    """Get reminders due within ``(now, window_end]``.

    Only reminders that are active, not completed and not soft-deleted.

    Args:
        db: Database session
        now: Start of the window (exclusive)
        window_end: End of the window (inclusive)

    Returns:
        List[ReminderItem]: Eligible reminders ordered by due date
    """
    rows = db.query(Reminder).filter(
        Reminder.deleted_at.is_(None),
        Reminder.is_active.is_(True),
        Reminder.is_completed.is_(False),
        Reminder.reminder_date > now,
        Reminder.reminder_date <= window_end
    ).order_by(Reminder.reminder_date, Reminder.id).all()

    return [ReminderItem.model_validate(row) for row in rows]


def get_pending_daily_activities(db: Session) -> List[DailyActivityItem]:
    """Get activities that still need a lead-time reminder check.

    Only activities that are not completed, not soft-deleted and that have
    ``reminder_minutes`` configured. The window is applied by the caller,
    since the notification instant is derived from date and lead-time.
    """
    rows = db.query(
        DailyActivity.id,
        DailyActivity.user_id,
        DailyActivity.title,
        DailyActivity.activity_date,
        DailyActivity.reminder_minutes
    ).filter(
        DailyActivity.is_completed.is_(False),
        DailyActivity.deleted_at.is_(None),
        DailyActivity.reminder_minutes.isnot(None)
    ).order_by(DailyActivity.id).all()

    return [DailyActivityItem.model_validate(row) for row in rows]


def get_celebration_relationships(db: Session) -> List[CelebrationItem]:
    """Get active, non-deleted relationships that have a start date."""
    rows = db.query(
        Relationship.id,
        Relationship.user1_id,
        Relationship.user2_id,
        Relationship.relationship_start_date,
        Relationship.celebration_type
    ).filter(
        Relationship.is_active.is_(True),
        Relationship.deleted_at.is_(None),
        Relationship.relationship_start_date.isnot(None)
    ).order_by(Relationship.id).all()

    return [CelebrationItem.model_validate(row) for row in rows]


def get_active_relationship_for_user(db: Session, user_id: int) -> Optional[RelationshipRef]:
    """Resolve the user's active relationship.

    Args:
        db: Database session
        user_id: Either member of the relationship

    Returns:
        Optional[RelationshipRef]: The active, non-deleted relationship, None if there is none
    """
    row = db.query(
        Relationship.id,
        Relationship.user1_id,
        Relationship.user2_id
    ).filter(
        or_(Relationship.user1_id == user_id, Relationship.user2_id == user_id),
        Relationship.is_active.is_(True),
        Relationship.deleted_at.is_(None)
    ).order_by(Relationship.id).first()

    if row is None:
        logger.debug(f"No active relationship for user {user_id}")
        return None
    return RelationshipRef.model_validate(row)


def resolve_relationship_id(db: Session, user_id: int, relationship_id: Optional[int] = None) -> Optional[int]:
    """Return ``relationship_id`` if set, otherwise the user's active relationship id."""
    if relationship_id is not None:
        return relationship_id

    relationship = get_active_relationship_for_user(db, user_id)
    return relationship.id if relationship else None


def is_notification_enabled(db: Session, user_id: int, notification_type: NotificationType) -> bool:
    """Check the user's preference for a notification type.

    A missing preference means enabled.
    """
    preference = db.query(NotificationPreference).filter(
        NotificationPreference.user_id == user_id,
        NotificationPreference.notification_type == notification_type
    ).first()

    return preference is None or preference.is_enabled


def create_notification(
    db: Session,
    user_id: int,
    relationship_id: int,
    title: str,
    content: str,
    notification_type: NotificationType
) -> Notification:
    """Create a new notification in the database.

    Returns:
        Notification: Created notification, refreshed after commit

    Raises:
        SQLAlchemyError: On database errors
    """
    notification = Notification(
        user_id=user_id,
        relationship_id=relationship_id,
        title=title,
        content=content,
        notification_type=notification_type,
        is_read=False,
        sent_at=datetime.now(timezone.utc)
    )

    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification

