from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select, update, or_

from tasq.core.constants import CLOSED_STATUSES
from tasq.models.task import Task
from tasq.repositories.base import BaseRepository


class TaskRepository(BaseRepository):
    """Encapsulates queries against the ``tasks`` table."""

    async def get_by_id(self, task_id: int) -> Optional[Task]:
        result = await self._db.execute(select(Task).where(Task.id == task_id))
        return result.scalar_one_or_none()

    async def list_open_for_user(self, user_id: int) -> List[Task]:
        """Return open tasks the user owns or is assigned to, soonest first.

        Tasks without a due date are included; the notification engine
        skips them itself.
        """
        query = (
            select(Task)
            .where(
                or_(Task.user_id == user_id, Task.assigned_to == user_id),
                Task.status.notin_(list(CLOSED_STATUSES)),
            )
            .order_by(Task.due_date.asc().nulls_last(), Task.id.asc())
        )
        result = await self._db.execute(query)
        return list(result.scalars().all())

    async def mark_reminders_sent(self, task_ids: Iterable[int]) -> int:
        """Persist ``reminder_sent = true`` for the given tasks.

        Returns the number of updated rows.
        """
        ids = list(task_ids)
        if not ids:
            return 0
        result = await self._db.execute(
            update(Task)
            .where(Task.id.in_(ids), Task.reminder_sent.is_(False))
            .values(reminder_sent=True)
        )
        return result.rowcount or 0

    async def assign(self, task: Task, user_id: int) -> Task:
        """Point *task* at a new assignee (caller commits)."""
        task.assigned_to = user_id
        task.assigned_at = datetime.now(timezone.utc)
        return task
