import logging
from datetime import date, datetime
from typing import Awaitable, Callable, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from tasq.core.config import settings
from tasq.schemas.notification import DeadlineAlert, RealtimeEvent
from tasq.schemas.task import TaskSnapshot
from tasq.schemas.user import UserSnapshot
from tasq.services.alert_store import AlertStore
from tasq.services.deadline_scanner import DeadlineWindowScanner
from tasq.services.email_dispatcher import EmailDispatcher
from tasq.services.notification_ledger import NotificationLedger
from tasq.services.notifier import ChannelNotifier
from tasq.services.periodic import PeriodicTask
from tasq.services.realtime import AlertChannel
from tasq.services.reminder_evaluator import evaluate_reminders

logger = logging.getLogger(__name__)

TaskSource = Callable[[], Awaitable[Sequence[TaskSnapshot]]]
ReminderSink = Callable[[List[str]], Awaitable[None]]


def local_now() -> datetime:
    """Naive wall-clock time in ``settings.TIMEZONE``."""
    return datetime.now(ZoneInfo(settings.TIMEZONE)).replace(tzinfo=None)


class NotificationSession:
    """All notification state for one signed-in user.

    Owns the task snapshot, the in-app alert list and the notifier, and
    drives the reminder evaluator and the deadline scanner from a
    repeating timer.  ``start`` runs one cycle immediately; ``stop``
    cancels the timer and closes the user's channel sockets.

    Local notifications raised before the browser reports its permission
    are held by the notifier and shown once permission is granted.
    """

    def __init__(
        self,
        user: UserSnapshot,
        task_source: TaskSource,
        *,
        ledger: NotificationLedger,
        channel: AlertChannel,
        email: EmailDispatcher,
        on_reminder_sent: Optional[ReminderSink] = None,
        interval_seconds: Optional[float] = None,
        lookahead_days: Optional[int] = None,
        default_due_time: Optional[str] = None,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self.user = user
        self._task_source = task_source
        self._ledger = ledger
        self._channel = channel
        self._on_reminder_sent = on_reminder_sent
        self._default_due_time = default_due_time or settings.DEFAULT_DUE_TIME
        self._clock = clock

        self._alerts = AlertStore()
        self._tasks: Dict[str, TaskSnapshot] = {}
        self.notifier = ChannelNotifier(channel, user.id)
        self._scanner = DeadlineWindowScanner(
            ledger=ledger,
            notifier=self.notifier,
            email=email,
            alerts=self._alerts,
            lookahead_days=lookahead_days,
        )
        self._timer = PeriodicTask(
            self.tick,
            interval_seconds or settings.NOTIFICATION_INTERVAL_SECONDS,
            name=f"notifications:{user.id}",
            run_immediately=False,
        )
        self._started = False

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------

    @property
    def alerts(self) -> List[str]:
        return self._alerts.snapshot()

    @property
    def tasks(self) -> List[TaskSnapshot]:
        return list(self._tasks.values())

    @property
    def is_running(self) -> bool:
        return self._timer.is_running

    def remove_alert(self, index: int) -> str:
        return self._alerts.remove(index)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        logger.info("Notification session started for user %s", self.user.id)
        await self.tick()
        self._timer.start()

    async def stop(self) -> None:
        await self._timer.stop()
        await self._channel.close_user(self.user.id)
        self._started = False
        logger.info("Notification session stopped for user %s", self.user.id)

    # ------------------------------------------------------------------
    # One evaluation cycle
    # ------------------------------------------------------------------

    async def tick(self, now: Optional[datetime] = None) -> List[DeadlineAlert]:
        """Refresh tasks, fire reminders and scan the deadline window.

        Never raises; each stage logs its own failure so one bad cycle
        does not stop the timer.
        """
        now = now or self._clock()
        today: date = now.date()

        await self.refresh_tasks()
        tasks = self.tasks

        try:
            fired = await evaluate_reminders(
                tasks, now, self.notifier, default_due_time=self._default_due_time
            )
        except Exception:
            logger.error("Reminder evaluation failed for user %s", self.user.id, exc_info=True)
            fired = []

        if fired and self._on_reminder_sent is not None:
            try:
                await self._on_reminder_sent([t.id for t in fired])
            except Exception:
                logger.warning(
                    "Could not persist reminder flags for user %s",
                    self.user.id,
                    exc_info=True,
                )

        try:
            await self._ledger.prune(self.user.id, today)
        except Exception:
            logger.warning("Ledger prune failed for user %s", self.user.id, exc_info=True)

        try:
            return await self._scanner.scan(tasks, self.user, today)
        except Exception:
            logger.error("Deadline scan failed for user %s", self.user.id, exc_info=True)
            return []

    async def refresh_tasks(self) -> None:
        """Reload the task collection, keeping local reminder flags.

        A reminder already sent locally stays sent as long as the task's
        due date and time are unchanged; a rescheduled task takes the
        refreshed flag.  On failure the previous snapshot is kept.
        """
        try:
            fresh = await self._task_source()
        except Exception:
            logger.warning(
                "Task refresh failed for user %s; keeping previous snapshot",
                self.user.id,
                exc_info=True,
            )
            return

        merged: Dict[str, TaskSnapshot] = {}
        for task in fresh:
            previous = self._tasks.get(task.id)
            if (
                previous is not None
                and previous.reminder_sent
                and not task.reminder_sent
                and previous.due_date == task.due_date
                and previous.due_time == task.due_time
            ):
                task = task.model_copy(update={"reminder_sent": True})
            merged[task.id] = task
        self._tasks = merged

    # ------------------------------------------------------------------
    # Pushed events
    # ------------------------------------------------------------------

    async def receive_event(self, event: RealtimeEvent) -> None:
        """Put a pushed event at the top of the alert list and notify."""
        self._alerts.prepend(event.message)
        try:
            await self.notifier.notify(event.task_title or "tasq", event.message)
        except Exception:
            logger.warning("Local notification failed for pushed event", exc_info=True)
