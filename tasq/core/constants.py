from typing import FrozenSet

from tasq.schemas.common import TaskStatus

# Statuses that never produce reminders or deadline alerts
CLOSED_STATUSES: FrozenSet[str] = frozenset(
    {TaskStatus.done.value, TaskStatus.cancelled.value}
)

# Redis / in-process key prefix for the per-day notification ledger
LEDGER_KEY_PREFIX = "notified_upcoming"

# Real-time channel event names
EVENT_ALERT = "neural_alert"
EVENT_NOTIFICATION = "notification"
EVENT_PERMISSION_REQUEST = "permission_request"
EVENT_PERMISSION = "permission"
EVENT_TASK_UPDATED = "task_updated"

# Local notification titles
REMINDER_TITLE_PREFIX = "Reminder: "
DEADLINE_NOTIFICATION_TITLE = "Task Deadline Approaching"
