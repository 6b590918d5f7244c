"""Shared pytest fixtures: in-memory database, record builders, fake dispatcher."""

from dataclasses import dataclass
from datetime import date, datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import database
from database import CelebrationType, DailyActivity, NotificationType, Relationship, Reminder

NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    database.init_db(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_relationship(db):
    def _make(user1_id=1, user2_id=2, start=date(2023, 1, 15), celebration_type=CelebrationType.ANNUAL, **fields):
        relationship = Relationship(
            user1_id=user1_id,
            user2_id=user2_id,
            relationship_start_date=start,
            celebration_type=celebration_type,
            **fields
        )
        db.add(relationship)
        db.commit()
        return relationship
    return _make


@pytest.fixture
def make_reminder(db):
    def _make(user_id=1, reminder_date=None, title="Comprar flores", **fields):
        reminder = Reminder(
            user_id=user_id,
            title=title,
            reminder_date=reminder_date or NOW,
            **fields
        )
        db.add(reminder)
        db.commit()
        return reminder
    return _make


@pytest.fixture
def make_activity(db):
    def _make(user_id=1, activity_date=date(2025, 1, 16), reminder_minutes=60, title="Jantar", **fields):
        activity = DailyActivity(
            user_id=user_id,
            title=title,
            activity_date=activity_date,
            reminder_minutes=reminder_minutes,
            **fields
        )
        db.add(activity)
        db.commit()
        return activity
    return _make


@dataclass
class SentNotification:
    user_id: int
    relationship_id: int
    title: str
    content: str
    notification_type: NotificationType


class FakeDispatcher:
    """Records every dispatch attempt; raises for users listed in ``fail_for_users``."""

    def __init__(self, fail_for_users=()):
        self.attempts = []
        self.fail_for_users = set(fail_for_users)

    async def create_and_send_notification(self, user_id, relationship_id, title, content, notification_type):
        self.attempts.append(SentNotification(user_id, relationship_id, title, content, notification_type))
        if user_id in self.fail_for_users:
            raise RuntimeError(f"dispatch failed for user {user_id}")

    @property
    def delivered(self):
        return [a for a in self.attempts if a.user_id not in self.fail_for_users]


@pytest.fixture
def dispatcher():
    return FakeDispatcher()
