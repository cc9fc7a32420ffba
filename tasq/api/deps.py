"""API-layer dependency functions.

Re-exports all dependency factories from ``tasq.dependencies`` so that
endpoint modules only need to import from ``tasq.api.deps``.
"""

from tasq.dependencies import (
    # Repository factories
    get_task_repo,
    get_user_repo,
    # Application-scoped services
    get_notification_hub,
    get_email_dispatcher,
    get_task_assignment_service,
    # Redis
    get_redis_client,
)

__all__ = [
    "get_task_repo",
    "get_user_repo",
    "get_notification_hub",
    "get_email_dispatcher",
    "get_task_assignment_service",
    "get_redis_client",
]
