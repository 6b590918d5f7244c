"""Database module for the notification scheduler.

This module defines the SQLAlchemy models the scheduler reads (relationships,
reminders, daily activities) and the ones the notification service writes
(notifications, notification preferences), plus session management.
IMPORTANT: instants are stored as UTC DateTime objects, calendar days as Date.
"""

from sqlalchemy import (
    create_engine, Column, Integer, String, Boolean, Date, DateTime,
    ForeignKey, Enum as SQLEnum, Index
)
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime, timezone
import enum

from config import settings

# SQLAlchemy Base
Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CelebrationType(enum.Enum):
    """Recurrence class of a relationship celebration"""
    ANNUAL = "Annual"
    MONTHLY = "Monthly"


class NotificationType(enum.Enum):
    """Category tag carried by every notification"""
    REMINDER = "Reminder"
    ACTIVITY = "Activity"
    ANNIVERSARY = "Anniversary"


class Relationship(Base):
    """A couple: two member users and how their celebrations recur."""

    __tablename__ = "relationships"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user1_id = Column(Integer, nullable=False, index=True, doc="First member")
    user2_id = Column(Integer, nullable=False, index=True, doc="Second member")

    met_date = Column(Date, nullable=True)
    met_location = Column(String, nullable=True)

    # Anchor date for anniversaries / monthly celebrations
    relationship_start_date = Column(Date, nullable=True)
    celebration_type = Column(
        SQLEnum(CelebrationType),
        nullable=False,
        default=CelebrationType.ANNUAL,
        doc="Annual or Monthly celebrations"
    )

    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True, doc="Soft-delete marker")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_relationship_active', 'is_active', 'deleted_at'),
    )

    def __repr__(self):
        return (
            f"<Relationship(id={self.id}, users=({self.user1_id}, {self.user2_id}), "
            f"start={self.relationship_start_date}, celebration={self.celebration_type})>"
        )


class Reminder(Base):
    """A one-off reminder due at an absolute instant."""

    __tablename__ = "reminders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True, doc="Owner")
    relationship_id = Column(
        Integer,
        ForeignKey("relationships.id"),
        nullable=True,
        doc="Denormalized relationship reference, may be missing"
    )

    title = Column(String, nullable=False)
    description = Column(String, nullable=True)

    # CRITICAL: DateTime object in UTC, NOT string!
    reminder_date = Column(DateTime(timezone=True), nullable=False)

    is_recurring = Column(Boolean, nullable=False, default=False)
    recurrence_pattern = Column(String, nullable=True, doc="daily, weekly, monthly or yearly")

    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True, doc="Soft-delete marker")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_reminder_date', 'reminder_date'),
        Index('idx_reminder_user_active', 'user_id', 'is_active'),
    )

    def __repr__(self):
        return (
            f"<Reminder(id={self.id}, user={self.user_id}, "
            f"title={self.title}, due={self.reminder_date})>"
        )


class DailyActivity(Base):
    """An activity planned for a calendar day, optionally reminded ahead of time."""

    __tablename__ = "daily_activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True, doc="Owner")

    title = Column(String, nullable=False)
    description = Column(String, nullable=True)

    activity_date = Column(Date, nullable=False, doc="Day of the activity, no time-of-day")
    reminder_minutes = Column(Integer, nullable=True, doc="Lead-time before the activity date")

    is_completed = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True, doc="Soft-delete marker")

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return (
            f"<DailyActivity(id={self.id}, user={self.user_id}, "
            f"date={self.activity_date}, lead={self.reminder_minutes})>"
        )


class Notification(Base):
    """A notification created for a user within a relationship."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    relationship_id = Column(Integer, ForeignKey("relationships.id"), nullable=False)

    title = Column(String, nullable=False)
    content = Column(String, nullable=False)
    notification_type = Column(SQLEnum(NotificationType), nullable=False)

    is_read = Column(Boolean, nullable=False, default=False)
    sent_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    read_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('idx_notification_user_read', 'user_id', 'is_read'),
    )

    def __repr__(self):
        return (
            f"<Notification(id={self.id}, user={self.user_id}, "
            f"type={self.notification_type.value}, title={self.title})>"
        )


class NotificationPreference(Base):
    """Per-user opt-out switch for one notification category."""

    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    notification_type = Column(SQLEnum(NotificationType), nullable=False)
    is_enabled = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index('idx_preference_user_type', 'user_id', 'notification_type', unique=True),
    )


# Database Engine Setup
engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if "sqlite" in settings.DATABASE_URL else {},
    echo=False  # Set to True for SQL debugging
)

# Session Factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=None):
    """Create all tables on ``bind`` (the module engine by default)."""
    Base.metadata.create_all(bind=bind or engine)
