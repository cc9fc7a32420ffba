"""Pydantic schemas package – re-exports for convenience."""

# Common enums
from tasq.schemas.common import (
    TaskStatus as TaskStatus,
    Priority as Priority,
    PermissionState as PermissionState,
    SuccessResponse as SuccessResponse,
)

# Snapshots of CRUD-layer records
from tasq.schemas.task import TaskSnapshot as TaskSnapshot
from tasq.schemas.user import UserSnapshot as UserSnapshot

# Notification schemas
from tasq.schemas.notification import (
    DeadlineAlert as DeadlineAlert,
    RealtimeEvent as RealtimeEvent,
    EmailRequest as EmailRequest,
    EmailResult as EmailResult,
    AlertListResponse as AlertListResponse,
    SessionResponse as SessionResponse,
    TaskAssignmentResponse as TaskAssignmentResponse,
)
