from datetime import date
from typing import TYPE_CHECKING, AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock

if TYPE_CHECKING:
    from tasq.core.cache import CacheService

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tasq.main import app
from tasq.schemas.task import TaskSnapshot
from tasq.schemas.user import UserSnapshot
from tasq.services.alert_store import AlertStore
from tasq.services.email_dispatcher import EmailDispatcher
from tasq.services.notification_ledger import InMemoryLedgerStore, NotificationLedger
from tests.fakes import RecordingNotifier


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Yield an ``httpx.AsyncClient`` wired to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Return an ``AsyncMock`` that behaves like ``redis.asyncio.Redis``."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.setex = AsyncMock()
    redis.delete = AsyncMock()
    redis.ping = AsyncMock()
    return redis


@pytest.fixture
def mock_cache(mock_redis) -> "CacheService":
    """Return a ``CacheService`` backed by the mock Redis client."""
    from tasq.core.cache import CacheService

    return CacheService(redis_client=mock_redis)


@pytest.fixture
def make_task() -> Callable[..., TaskSnapshot]:
    """Factory for ``TaskSnapshot`` objects with sensible defaults."""

    def _make(**overrides) -> TaskSnapshot:
        defaults = {
            "id": "1",
            "title": "Ship release",
            "status": "todo",
            "priority": "high",
            "due_date": date(2024, 10, 28),
        }
        defaults.update(overrides)
        return TaskSnapshot(**defaults)

    return _make


@pytest.fixture
def user() -> UserSnapshot:
    return UserSnapshot(id="42", name="Sara Khan", email="sara@example.com")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def ledger() -> NotificationLedger:
    return NotificationLedger(InMemoryLedgerStore(), lookahead_days=4)


@pytest.fixture
def alerts() -> AlertStore:
    return AlertStore()


@pytest.fixture
def email() -> MagicMock:
    """An ``EmailDispatcher`` whose fire-and-forget dispatch is a mock."""
    dispatcher = MagicMock(spec=EmailDispatcher)
    dispatcher.dispatch = MagicMock()
    return dispatcher
