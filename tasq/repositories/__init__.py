from tasq.repositories.base import BaseRepository
from tasq.repositories.task_repository import TaskRepository
from tasq.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "TaskRepository",
    "UserRepository",
]
