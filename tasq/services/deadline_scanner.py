import logging
from datetime import date
from typing import Iterable, List, Optional

from tasq.core.config import settings
from tasq.core.constants import DEADLINE_NOTIFICATION_TITLE
from tasq.schemas.notification import DeadlineAlert
from tasq.schemas.task import TaskSnapshot
from tasq.schemas.user import UserSnapshot
from tasq.services.alert_store import AlertStore
from tasq.services.email_dispatcher import EmailDispatcher
from tasq.services.notification_ledger import NotificationLedger
from tasq.services.notifier import Notifier

logger = logging.getLogger(__name__)


def days_until_due(due: date, today: date) -> int:
    """Calendar-day difference; negative once the due date has passed."""
    return (due - today).days


def day_phrase(days: int) -> str:
    if days == 0:
        return "today"
    return f"in {days} day{'' if days == 1 else 's'}"


def format_due_date(due: date) -> str:
    """Short month and day without padding, e.g. ``Oct 8``."""
    return f"{due:%b} {due.day}"


def build_deadline_message(title: str, due: date, days: int) -> str:
    return (
        f'Upcoming Deadline: "{title}" is due on '
        f"{format_due_date(due)} ({day_phrase(days)})."
    )


class DeadlineWindowScanner:
    """Alerts once per task per day for deadlines inside the lookahead window.

    For every open task not yet in the user's ledger for *today* whose
    due date is 0..lookahead days away, one scan:

    1. appends the message to the session's alert list,
    2. records the task id in the ledger,
    3. asks the notifier for a local notification (permission-gated),
    4. dispatches one email without waiting for it.

    Steps 1 and 2 are complete when ``scan`` returns.  Email failures are
    only logged and never undo the ledger entry.
    """

    def __init__(
        self,
        ledger: NotificationLedger,
        notifier: Notifier,
        email: EmailDispatcher,
        alerts: AlertStore,
        lookahead_days: Optional[int] = None,
    ) -> None:
        self._ledger = ledger
        self._notifier = notifier
        self._email = email
        self._alerts = alerts
        self._lookahead_days = (
            settings.DEADLINE_LOOKAHEAD_DAYS if lookahead_days is None else lookahead_days
        )

    async def scan(
        self,
        tasks: Iterable[TaskSnapshot],
        user: UserSnapshot,
        today: date,
    ) -> List[DeadlineAlert]:
        already_notified = await self._ledger.notified(user.id, today)
        raised: List[DeadlineAlert] = []

        for task in tasks:
            if task.is_closed or task.id in already_notified:
                continue
            if task.due_date is None:
                logger.debug("Skipping task %s: no due date", task.id)
                continue

            days = days_until_due(task.due_date, today)
            if days < 0 or days > self._lookahead_days:
                continue

            alert = DeadlineAlert(
                message=build_deadline_message(task.title, task.due_date, days),
                task_id=task.id,
                task_title=task.title,
                days_until_due=days,
            )
            raised.append(alert)
            already_notified.add(task.id)
            self._alerts.append(alert.message)

        if not raised:
            return raised

        await self._ledger.add_all(user.id, today, [a.task_id for a in raised])
        logger.info(
            "Raised %d deadline alert(s) for user %s on %s",
            len(raised),
            user.id,
            today.isoformat(),
        )

        for alert in raised:
            try:
                await self._notifier.notify(DEADLINE_NOTIFICATION_TITLE, alert.message)
            except Exception:
                logger.warning(
                    "Local notification failed for task %s", alert.task_id, exc_info=True
                )
            self._send_email(user, alert)

        return raised

    def _send_email(self, user: UserSnapshot, alert: DeadlineAlert) -> None:
        if not user.email:
            logger.debug("User %s has no email; skipping deadline email", user.id)
            return
        try:
            self._email.dispatch(
                to=user.email,
                subject=f'Upcoming Deadline: "{alert.task_title}"',
                body=alert.message,
                task_title=alert.task_title,
            )
        except Exception:
            logger.error(
                "Could not dispatch deadline email for task %s", alert.task_id, exc_info=True
            )
