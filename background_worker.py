"""Background notification scheduler.

This module implements the background worker that, once per cycle, scans the
database for upcoming time-bound facts and notifies the users concerned.

Each cycle:
- Captures one reference instant ``now`` shared by every check in the cycle
- Notifies owners of reminders due within the lookahead window
- Notifies owners of daily activities whose lead-time falls within the window
- Notifies both members of relationships whose anniversary or monthly
  celebration falls within the window
- Isolates failures: a failing record is logged and skipped, a failing
  category is logged and the next category still runs, a failing cycle is
  logged and the loop goes on

Delivery is at most once per eligible cycle and never retried. An item that
stays inside a later window is picked up again, otherwise it is missed for
that occurrence.
"""

import asyncio
import enum
import signal
import sys
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

import crud
import database
from config import settings
from database import CelebrationType, NotificationType
from logger_config import setup_logger
from notifier import NotificationDispatcher, NotificationService
from occurrences import activity_notification_utc, is_within_window, next_celebration_utc
from schemas import CycleSummary, SchedulerStatus

logger = setup_logger(__name__, 'worker.log')

REMINDER_TITLE = "Lembrete em breve"
ACTIVITY_TITLE = "Atividade se aproximando"
CELEBRATION_TITLE = "Celebração do relacionamento"
CELEBRATION_NAMES = {
    CelebrationType.ANNUAL: "aniversário",
    CelebrationType.MONTHLY: "mêsversário",
}


class SchedulerState(str, enum.Enum):
    """Lifecycle of the scheduler loop"""
    IDLE = "idle"
    RUNNING = "running"
    CYCLE_EXECUTING = "cycle_executing"
    WAITING = "waiting"
    STOPPED = "stopped"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationScheduler:
    """Periodic driver for reminder, activity and celebration notifications.

    Args:
        dispatcher: Creates and delivers notifications
        session_factory: Callable returning a new SQLAlchemy session for reads
        interval_seconds: Pause between two cycles
        window_minutes: Lookahead window from ``now``
        clock: Returns the current UTC instant
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        session_factory: Callable[[], Session] = database.SessionLocal,
        interval_seconds: Optional[float] = None,
        window_minutes: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.dispatcher = dispatcher
        self.session_factory = session_factory
        self.interval_seconds = settings.SCHEDULER_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        self.window = timedelta(
            minutes=settings.NOTIFICATION_WINDOW_MINUTES if window_minutes is None else window_minutes
        )
        self.clock = clock

        self.state = SchedulerState.IDLE
        self.cycles_completed = 0
        self.last_cycle: Optional[CycleSummary] = None
        self._stop_event = asyncio.Event()

    def stop(self):
        """Request shutdown. Takes effect at the next wait or loop check."""
        logger.info("Scheduler stop requested")
        self._stop_event.set()

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            state=self.state.value,
            interval_seconds=int(self.interval_seconds),
            window_minutes=int(self.window.total_seconds() // 60),
            cycles_completed=self.cycles_completed,
            last_cycle=self.last_cycle.model_dump(mode="json") if self.last_cycle else None,
        )

    async def run(self):
        """Run cycles until ``stop`` is called.

        Never raises because of a cycle; only cancellation of the task ends
        the loop early.
        """
        logger.info("Notification scheduler started")
        logger.info(f"Cycle interval: {self.interval_seconds} seconds")
        logger.info(f"Notification window: {self.window}")

        self.state = SchedulerState.RUNNING
        try:
            while not self._stop_event.is_set():
                try:
                    await self.run_cycle()
                except Exception as e:
                    logger.error(f"Error in scheduler cycle: {str(e)}", exc_info=True)

                self.state = SchedulerState.WAITING
                await self._wait()
                if not self._stop_event.is_set():
                    self.state = SchedulerState.RUNNING
        finally:
            self.state = SchedulerState.STOPPED
            logger.info("Notification scheduler stopped")

    async def _wait(self):
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
        except asyncio.TimeoutError:
            pass

    async def run_cycle(self, now: Optional[datetime] = None) -> CycleSummary:
        """Run one full cycle against a single reference instant.

        Args:
            now: Reference instant, defaults to the clock

        Returns:
            CycleSummary: Notifications sent per category
        """
        now = now or self.clock()
        window_end = now + self.window
        summary = CycleSummary(started_at=now)
        previous_state = self.state
        self.state = SchedulerState.CYCLE_EXECUTING
        logger.debug(f"Cycle started, window ({now.isoformat()}, {window_end.isoformat()}]")

        categories = (
            ("reminders", lambda db: self.process_reminders(db, now, window_end)),
            ("activities", lambda db: self.process_daily_activities(db, now)),
            ("celebrations", lambda db: self.process_celebrations(db, now)),
        )

        db = self.session_factory()
        try:
            for name, processor in categories:
                try:
                    setattr(summary, name, await processor(db))
                except Exception as e:
                    logger.error(f"Error processing {name}: {str(e)}", exc_info=True)
                    summary.failed_categories.append(name)
                    db.rollback()
        finally:
            db.close()
            self.state = previous_state

        summary.finished_at = self.clock()
        self.last_cycle = summary
        self.cycles_completed += 1

        if summary.total or summary.failed_categories:
            logger.info(
                f"Cycle finished: {summary.reminders} reminder(s), {summary.activities} activity(ies), "
                f"{summary.celebrations} celebration notification(s)"
                + (f", failed: {', '.join(summary.failed_categories)}" if summary.failed_categories else "")
            )
        return summary

    async def process_reminders(self, db: Session, now: datetime, window_end: datetime) -> int:
        """Notify owners of reminders due within the window."""
        reminders = crud.get_upcoming_reminders(db, now, window_end)
        if not reminders:
            logger.debug("No upcoming reminders in this window")
            return 0

        logger.info(f"Found {len(reminders)} upcoming reminder(s)")
        sent = 0
        for reminder in reminders:
            try:
                relationship_id = crud.resolve_relationship_id(db, reminder.user_id, reminder.relationship_id)
                if relationship_id is None:
                    continue

                await self.dispatcher.create_and_send_notification(
                    reminder.user_id,
                    relationship_id,
                    REMINDER_TITLE,
                    f"Não esqueça: {reminder.title}",
                    NotificationType.REMINDER,
                )
                sent += 1
                logger.info(f"Reminder notification sent: reminder {reminder.id}, user {reminder.user_id}")
            except Exception as e:
                logger.warning(f"Failed to notify reminder {reminder.id}: {str(e)}", exc_info=True)
        return sent

    async def process_daily_activities(self, db: Session, now: datetime) -> int:
        """Notify owners of activities whose lead-time instant falls within the window."""
        sent = 0
        for activity in crud.get_pending_daily_activities(db):
            try:
                notify_at = activity_notification_utc(activity.activity_date, activity.reminder_minutes)
                if not is_within_window(now, notify_at, self.window):
                    continue

                relationship = crud.get_active_relationship_for_user(db, activity.user_id)
                if relationship is None:
                    continue

                await self.dispatcher.create_and_send_notification(
                    activity.user_id,
                    relationship.id,
                    ACTIVITY_TITLE,
                    f"Sua atividade \"{activity.title}\" está chegando.",
                    NotificationType.ACTIVITY,
                )
                sent += 1
                logger.info(f"Activity notification sent: activity {activity.id}, user {activity.user_id}")
            except Exception as e:
                logger.warning(f"Failed to notify activity {activity.id}: {str(e)}", exc_info=True)
        return sent

    async def process_celebrations(self, db: Session, now: datetime) -> int:
        """Notify both members of relationships celebrating within the window."""
        sent = 0
        for relationship in crud.get_celebration_relationships(db):
            try:
                celebration_at = next_celebration_utc(
                    relationship.relationship_start_date, relationship.celebration_type, now
                )
            except (OverflowError, ValueError) as e:
                logger.warning(f"Skipping relationship {relationship.id}, invalid celebration date: {str(e)}")
                continue

            if celebration_at is None or not is_within_window(now, celebration_at, self.window):
                continue

            name = CELEBRATION_NAMES[relationship.celebration_type]
            content = f"Hoje é o {name} de vocês. Que tal planejar algo especial?"

            for user_id in (relationship.user1_id, relationship.user2_id):
                if await self._send_celebration(user_id, relationship.id, content):
                    sent += 1
        return sent

    async def _send_celebration(self, user_id: int, relationship_id: int, content: str) -> bool:
        try:
            await self.dispatcher.create_and_send_notification(
                user_id,
                relationship_id,
                CELEBRATION_TITLE,
                content,
                NotificationType.ANNIVERSARY,
            )
        except Exception as e:
            logger.warning(f"Failed to send celebration notification to user {user_id}: {str(e)}", exc_info=True)
            return False

        logger.info(f"Celebration notification sent: relationship {relationship_id}, user {user_id}")
        return True


async def worker_loop(scheduler: Optional[NotificationScheduler] = None):
    """Run the scheduler until SIGINT/SIGTERM."""
    if not settings.SCHEDULER_ENABLED:
        logger.warning("Scheduler is disabled in configuration. Exiting.")
        return

    database.init_db()
    scheduler = scheduler or NotificationScheduler(NotificationService())

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, scheduler.stop)

    await scheduler.run()


def main():
    """Main entry point for the standalone background worker."""
    logger.info("=" * 60)
    logger.info("Heloilo - Notification Scheduler")
    logger.info("=" * 60)

    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Fatal error in background worker: {str(e)}", exc_info=True)
        sys.exit(1)

    logger.info("Background worker stopped")


if __name__ == "__main__":
    main()
