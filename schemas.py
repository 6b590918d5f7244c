"""Pydantic schemas for the notification scheduler.

The scheduler never holds ORM objects across a cycle: the query layer turns
rows into these read-only projections before the session closes.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import Dict, List, Optional

from database import CelebrationType, NotificationType


class ReminderItem(BaseModel):
    """Reminder fields the reminder processor needs."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    user_id: int
    relationship_id: Optional[int] = None
    title: str
    reminder_date: datetime


class DailyActivityItem(BaseModel):
    """Daily activity fields the activity processor needs."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    user_id: int
    title: str
    activity_date: date
    reminder_minutes: int = Field(..., description="Lead-time in minutes before the activity date")


class CelebrationItem(BaseModel):
    """Relationship fields the celebration processor needs."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    user1_id: int
    user2_id: int
    relationship_start_date: date
    celebration_type: CelebrationType


class RelationshipRef(BaseModel):
    """Result of resolving a user's active relationship."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    user1_id: int
    user2_id: int


class NotificationResponse(BaseModel):
    """Notification payload pushed to the realtime gateway.

    datetime fields are serialized to ISO strings with ``model_dump(mode="json")``.
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    content: str
    notification_type: NotificationType
    is_read: bool
    sent_at: datetime
    read_at: Optional[datetime] = None


class CycleSummary(BaseModel):
    """Notifications sent by one scheduler cycle, per category."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    reminders: int = 0
    activities: int = 0
    celebrations: int = 0
    failed_categories: List[str] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.reminders + self.activities + self.celebrations


class SchedulerStatus(BaseModel):
    """Scheduler state reported by the health endpoint."""

    state: str
    interval_seconds: int
    window_minutes: int
    cycles_completed: int
    last_cycle: Optional[Dict] = None
