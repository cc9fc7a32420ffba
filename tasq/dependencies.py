import logging
from typing import Optional

from fastapi import Depends, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from tasq.core.config import settings
from tasq.core.database import get_db
from tasq.services.email_dispatcher import EmailDispatcher
from tasq.services.notification_hub import NotificationHub
from tasq.services.task_assignment import TaskAssignmentService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Redis client factory
# ---------------------------------------------------------------------------


async def get_redis_client() -> Optional[Redis]:
    """Get an async Redis client instance using connection pooling."""
    try:
        client = Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
        await client.ping()
        return client
    except Exception:
        logger.warning("Redis unavailable at %s", settings.REDIS_URL)
        return None


# ---------------------------------------------------------------------------
# Repository factory functions (one per repository, each gets the shared db)
# ---------------------------------------------------------------------------


async def get_task_repo(
    db: AsyncSession = Depends(get_db),
):
    from tasq.repositories.task_repository import TaskRepository

    return TaskRepository(db)


async def get_user_repo(
    db: AsyncSession = Depends(get_db),
):
    from tasq.repositories.user_repository import UserRepository

    return UserRepository(db)


# ---------------------------------------------------------------------------
# Application-scoped services (built in the lifespan, kept on app.state)
# ---------------------------------------------------------------------------


def get_notification_hub(request: Request) -> NotificationHub:
    return request.app.state.notification_hub


def get_email_dispatcher(request: Request) -> EmailDispatcher:
    return request.app.state.email_dispatcher


def get_task_assignment_service(
    hub: NotificationHub = Depends(get_notification_hub),
) -> TaskAssignmentService:
    return TaskAssignmentService(hub)
