from enum import Enum
from pydantic import BaseModel


class TaskStatus(str, Enum):
    todo = "todo"
    in_progress = "in_progress"
    review = "review"
    done = "done"
    cancelled = "cancelled"


class Priority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class PermissionState(str, Enum):
    """Browser notification permission, as reported over the channel."""

    default = "default"
    granted = "granted"
    denied = "denied"


class SuccessResponse(BaseModel):
    """Generic success response base."""

    success: bool = True
