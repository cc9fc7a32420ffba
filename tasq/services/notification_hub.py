import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastapi import WebSocket
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from tasq.core.config import settings
from tasq.core.constants import EVENT_ALERT, EVENT_PERMISSION, EVENT_TASK_UPDATED
from tasq.core.exceptions import SessionNotFoundError, UserNotFoundError
from tasq.repositories.task_repository import TaskRepository
from tasq.repositories.user_repository import UserRepository
from tasq.schemas.common import PermissionState
from tasq.schemas.notification import RealtimeEvent
from tasq.schemas.task import TaskSnapshot
from tasq.schemas.user import UserSnapshot
from tasq.services.email_dispatcher import EmailDispatcher
from tasq.services.notification_ledger import NotificationLedger
from tasq.services.notification_session import NotificationSession
from tasq.services.realtime import AlertChannel

logger = logging.getLogger(__name__)

SessionFactory = Callable[[str], Awaitable[NotificationSession]]


class NotificationHub:
    """Registry of live notification sessions plus the real-time channel.

    One session per user id.  ``emit`` is the single entry point for
    server-side events: the frame goes to every open socket of the user
    and the user's session (if any) prepends it to its alert list.
    """

    def __init__(
        self,
        channel: AlertChannel,
        session_factory: SessionFactory,
        idle_grace_seconds: Optional[float] = None,
    ) -> None:
        self.channel = channel
        self._session_factory = session_factory
        self._sessions: Dict[str, NotificationSession] = {}
        self._open_lock = asyncio.Lock()
        self._idle_grace = (
            settings.NOTIFICATION_INTERVAL_SECONDS
            if idle_grace_seconds is None
            else idle_grace_seconds
        )
        self._idle_closers: Dict[str, asyncio.Task] = {}

    def get(self, user_id: str) -> Optional[NotificationSession]:
        return self._sessions.get(str(user_id))

    def require(self, user_id: str) -> NotificationSession:
        session = self.get(user_id)
        if session is None:
            raise SessionNotFoundError(f"No notification session for user {user_id}")
        return session

    @property
    def user_ids(self) -> List[str]:
        return list(self._sessions)

    async def open(
        self,
        user_id: str,
        *,
        permission: Optional[PermissionState] = None,
        websocket: Optional[WebSocket] = None,
    ) -> NotificationSession:
        """Return the user's session, creating and starting it if needed.

        *permission* is the browser's current notification permission and
        *websocket* a socket to join to the user's channel; both are
        applied before the first cycle runs, so that cycle can already
        show local notifications.
        """
        user_id = str(user_id)
        async with self._open_lock:
            session = self._sessions.get(user_id)
            if session is None:
                session = await self._session_factory(user_id)
                self._sessions[user_id] = session
        self._cancel_idle_close(user_id)
        if permission is not None:
            await session.notifier.resolve_permission(permission)
        if websocket is not None:
            await self.channel.connect(session.user.id, websocket)
        await session.start()
        return session

    async def release(self, user_id: str, websocket: WebSocket) -> None:
        """Detach a socket; the session closes if no socket returns in time."""
        user_id = str(user_id)
        self.channel.disconnect(user_id, websocket)
        if self.channel.connection_count(user_id) or user_id not in self._sessions:
            return
        self._cancel_idle_close(user_id)
        self._idle_closers[user_id] = asyncio.create_task(
            self._close_when_idle(user_id), name=f"idle-close:{user_id}"
        )

    async def _close_when_idle(self, user_id: str) -> None:
        await asyncio.sleep(self._idle_grace)
        self._idle_closers.pop(user_id, None)
        if self.channel.connection_count(user_id) or user_id not in self._sessions:
            return
        logger.info("Closing idle notification session for user %s", user_id)
        await self.close(user_id)

    def _cancel_idle_close(self, user_id: str) -> None:
        closer = self._idle_closers.pop(user_id, None)
        if closer is not None and closer is not asyncio.current_task():
            closer.cancel()

    async def close(self, user_id: str) -> None:
        user_id = str(user_id)
        self._cancel_idle_close(user_id)
        session = self._sessions.pop(user_id, None)
        if session is None:
            raise SessionNotFoundError(f"No notification session for user {user_id}")
        await session.stop()

    async def close_all(self) -> None:
        for user_id in list(self._idle_closers):
            self._cancel_idle_close(user_id)
        for user_id in list(self._sessions):
            session = self._sessions.pop(user_id)
            try:
                await session.stop()
            except Exception:
                logger.warning("Failed to stop session for user %s", user_id, exc_info=True)

    async def emit(self, user_id: str, event: RealtimeEvent) -> int:
        """Push *event* to a user. Returns the number of sockets reached."""
        user_id = str(user_id)
        frame = {"event": EVENT_ALERT, **event.model_dump(by_alias=True)}
        delivered = await self.channel.send(user_id, frame)
        session = self._sessions.get(user_id)
        if session is not None:
            await session.receive_event(event)
        elif not delivered:
            logger.debug("Event for user %s dropped: no session or socket", user_id)
        return delivered

    async def handle_client_frame(self, user_id: str, frame: Any) -> None:
        """Apply a frame the browser sent over the channel.

        Unknown or malformed frames are logged and ignored.
        """
        if not isinstance(frame, dict):
            logger.warning("Ignoring non-object frame from user %s", user_id)
            return

        kind = frame.get("event")
        if kind == EVENT_PERMISSION:
            session = self.get(user_id)
            if session is None:
                return
            try:
                state = PermissionState(frame.get("state"))
            except ValueError:
                logger.warning("Ignoring bad permission state from user %s", user_id)
                return
            await session.notifier.resolve_permission(state)
        elif kind == EVENT_TASK_UPDATED:
            title = str(frame.get("taskTitle") or "").strip()
            action = str(frame.get("action") or "updated").strip()
            if not title:
                logger.warning("Ignoring task_updated without title from user %s", user_id)
                return
            try:
                event = RealtimeEvent(message=f'Task "{title}" {action}', task_title=title)
            except ValidationError:
                return
            await self.emit(user_id, event)
        else:
            logger.warning("Ignoring unknown frame %r from user %s", kind, user_id)


def build_session_factory(
    session_factory: Callable[..., AsyncSession],
    *,
    ledger: NotificationLedger,
    channel: AlertChannel,
    email: EmailDispatcher,
) -> SessionFactory:
    """Return a coroutine that builds a ``NotificationSession`` for a user id.

    Parameters:
        session_factory: An async context-manager callable that yields
            an ``AsyncSession`` (e.g. ``AsyncSessionLocal``).  A fresh
            database session is opened for every task refresh.

    Raises ``UserNotFoundError`` if the user does not exist.
    """

    async def create(user_id: str) -> NotificationSession:
        try:
            numeric_id = int(user_id)
        except ValueError:
            raise UserNotFoundError(f"User {user_id} not found")

        async with session_factory() as db:
            user = await UserRepository(db).get_by_id(numeric_id)
            if user is None:
                raise UserNotFoundError(f"User {user_id} not found")
            snapshot = UserSnapshot.model_validate(user)

        async def load_tasks() -> List[TaskSnapshot]:
            async with session_factory() as db:
                rows = await TaskRepository(db).list_open_for_user(numeric_id)
                return [TaskSnapshot.model_validate(row) for row in rows]

        async def persist_reminders(task_ids: List[str]) -> None:
            async with session_factory() as db:
                repo = TaskRepository(db)
                await repo.mark_reminders_sent([int(t) for t in task_ids])
                await repo.commit()

        return NotificationSession(
            snapshot,
            load_tasks,
            ledger=ledger,
            channel=channel,
            email=email,
            on_reminder_sent=persist_reminders,
        )

    return create
