import logging
from typing import Any, Dict

from tasq.core.exceptions import TaskNotFoundError, UserNotFoundError
from tasq.repositories.task_repository import TaskRepository
from tasq.repositories.user_repository import UserRepository
from tasq.schemas.notification import RealtimeEvent
from tasq.services.notification_hub import NotificationHub

logger = logging.getLogger(__name__)


class TaskAssignmentService:
    """Assigns a task to a user and tells that user in real time."""

    def __init__(self, hub: NotificationHub) -> None:
        self._hub = hub

    async def assign(
        self,
        task_id: int,
        user_id: int,
        task_repo: TaskRepository,
        user_repo: UserRepository,
    ) -> Dict[str, Any]:
        task = await task_repo.get_by_id(task_id)
        if task is None:
            raise TaskNotFoundError(f"Task {task_id} not found")
        user = await user_repo.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")

        await task_repo.assign(task, user_id)
        await task_repo.commit()
        logger.info("Task %s assigned to user %s", task_id, user_id)

        message = f'A new task "{task.title}" has been assigned to you'
        # Notification is best-effort; the assignment is already committed
        try:
            await self._hub.emit(str(user_id), RealtimeEvent(message=message, task_title=task.title))
        except Exception:
            logger.warning(
                "Assignment alert for task %s could not be pushed", task_id, exc_info=True
            )

        return {
            "task_id": str(task_id),
            "assigned_to": str(user_id),
            "message": message,
        }
