"""Notification dispatch for the scheduler.

The scheduler only knows the ``NotificationDispatcher`` protocol. The concrete
``NotificationService`` honours the user's notification preferences, stores
the notification and pushes it to the realtime gateway, which fans it out to
the user's connected clients.

Push is best effort: a stored notification whose push fails is still
delivered the next time the client fetches its notifications.
"""

from typing import Callable, Optional, Protocol

import httpx
from sqlalchemy.orm import Session

import crud
import database
from config import settings
from database import NotificationType
from logger_config import setup_logger
from schemas import NotificationResponse

logger = setup_logger(__name__, 'notifications.log')

PUSH_EVENT = "NotificationReceived"


class NotificationDispatcher(Protocol):
    """Create-and-send capability the scheduler depends on."""

    async def create_and_send_notification(
        self,
        user_id: int,
        relationship_id: int,
        title: str,
        content: str,
        notification_type: NotificationType,
    ) -> None:
        ...


class NotificationService:
    """Stores notifications and pushes them to the realtime gateway.

    Args:
        session_factory: Callable returning a new SQLAlchemy session
        gateway_url: Base URL of the realtime gateway, empty to disable push
        timeout: Push request timeout in seconds
        transport: Optional httpx transport, used to stub the gateway in tests
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = database.SessionLocal,
        gateway_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session_factory = session_factory
        self.gateway_url = (settings.REALTIME_GATEWAY_URL if gateway_url is None else gateway_url).rstrip('/')
        self.timeout = settings.REALTIME_PUSH_TIMEOUT if timeout is None else timeout
        self.transport = transport

    async def create_and_send_notification(
        self,
        user_id: int,
        relationship_id: int,
        title: str,
        content: str,
        notification_type: NotificationType,
    ) -> None:
        """Store a notification for ``user_id`` and push it in realtime.

        Does nothing when the user disabled this notification type.

        Raises:
            SQLAlchemyError: When the notification cannot be stored
        """
        db = self.session_factory()
        try:
            if not crud.is_notification_enabled(db, user_id, notification_type):
                logger.info(
                    f"{notification_type.value} notifications disabled for user {user_id}, skipping"
                )
                return

            notification = crud.create_notification(
                db, user_id, relationship_id, title, content, notification_type
            )
            payload = NotificationResponse.model_validate(notification).model_dump(mode="json")
        finally:
            db.close()

        await self.push(user_id, payload)

    async def push(self, user_id: int, payload: dict) -> bool:
        """Push a stored notification to the user's realtime group.

        Returns:
            bool: True if the gateway accepted the push, False otherwise
        """
        if not self.gateway_url:
            logger.debug(f"Realtime gateway not configured, notification {payload.get('id')} stored only")
            return False

        body = {
            "group": f"user:{user_id}",
            "event": PUSH_EVENT,
            "notification": payload,
        }
        api_url = f"{self.gateway_url}/api/notifications/push"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(api_url, json=body)

            if response.is_success:
                return True

            logger.warning(
                f"Realtime push rejected for notification {payload.get('id')}. "
                f"Status: {response.status_code}, Response: {response.text}"
            )
            return False

        except httpx.TimeoutException:
            logger.warning(f"Timeout while pushing notification {payload.get('id')} to user {user_id}")
            return False
        except httpx.RequestError as e:
            logger.warning(f"Network error while pushing notification {payload.get('id')}: {str(e)}")
            return False
