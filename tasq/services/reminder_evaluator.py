import logging
from datetime import datetime, time, timedelta
from typing import Iterable, List, Optional

from tasq.core.config import settings
from tasq.core.constants import REMINDER_TITLE_PREFIX
from tasq.schemas.task import TaskSnapshot
from tasq.services.notifier import Notifier

logger = logging.getLogger(__name__)


def parse_due_time(raw: Optional[str]) -> Optional[time]:
    """Parse an ``HH:MM`` string; returns ``None`` when malformed."""
    if raw is None:
        return None
    try:
        hours, minutes = str(raw).strip().split(":")[:2]
        return time(int(hours), int(minutes))
    except (TypeError, ValueError):
        return None


def due_moment(task: TaskSnapshot, default_due_time: str) -> Optional[datetime]:
    """Combine the task's due date with its due time (or the default).

    Returns ``None`` when the task has no due date or the time string
    cannot be parsed.
    """
    if task.due_date is None:
        return None
    due_time = parse_due_time(task.due_time or default_due_time)
    if due_time is None:
        return None
    return datetime.combine(task.due_date, due_time)


def reminder_body(due: datetime, now: datetime) -> str:
    hhmm = due.strftime("%H:%M")
    if due.date() == now.date():
        return f"Due today at {hhmm}."
    return f"Due {due:%b} {due.day} at {hhmm}."


async def evaluate_reminders(
    tasks: Iterable[TaskSnapshot],
    now: datetime,
    notifier: Notifier,
    default_due_time: Optional[str] = None,
) -> List[TaskSnapshot]:
    """Fire lead-time reminders that fall due at *now*.

    A task fires when it has a positive ``reminder_minutes``, has not
    fired yet and is not closed, and *now* lies in
    ``[due - reminder_minutes, due)``.  Firing sets ``reminder_sent`` on
    the snapshot before the notification goes out, so a second call
    inside the window is a no-op.  A window that passes without any call
    is never backfilled.

    Returns the tasks that fired on this call.
    """
    if default_due_time is None:
        default_due_time = settings.DEFAULT_DUE_TIME

    fired: List[TaskSnapshot] = []
    for task in tasks:
        if not task.reminder_minutes or task.reminder_minutes <= 0:
            continue
        if task.reminder_sent or task.is_closed:
            continue

        due = due_moment(task, default_due_time)
        if due is None:
            logger.debug("Skipping reminder for task %s: no usable due moment", task.id)
            continue

        remind_at = due - timedelta(minutes=task.reminder_minutes)
        if not (remind_at <= now < due):
            continue

        task.reminder_sent = True
        fired.append(task)
        logger.info("Reminder fired for task %s (due %s)", task.id, due.isoformat())
        try:
            await notifier.notify(
                f"{REMINDER_TITLE_PREFIX}{task.title}", reminder_body(due, now)
            )
        except Exception:
            logger.warning(
                "Reminder notification failed for task %s", task.id, exc_info=True
            )

    return fired
