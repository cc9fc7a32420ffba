from tasq.models.base import Base
from tasq.models.user import User
from tasq.models.task import Task

__all__ = [
    "Base",
    "User",
    "Task",
]
