from datetime import date, datetime
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from tasq.schemas.common import PermissionState
from tasq.schemas.notification import RealtimeEvent
from tasq.services.notification_ledger import InMemoryLedgerStore, NotificationLedger
from tasq.services.notification_session import NotificationSession
from tasq.services.realtime import AlertChannel
from tests.fakes import FakeWebSocket

NOW = datetime(2024, 10, 24, 8, 0)


class TaskFeed:
    """Task source returning fresh snapshots built from keyword overrides."""

    def __init__(self, make_task, *rows):
        self._make_task = make_task
        self.rows = list(rows)
        self.calls = 0
        self.error = None

    async def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [self._make_task(**row) for row in self.rows]


@pytest.fixture
def channel() -> AlertChannel:
    return AlertChannel()


@pytest_asyncio.fixture
async def socket(channel, user) -> FakeWebSocket:
    ws = FakeWebSocket()
    await channel.connect(user.id, ws)
    return ws


@pytest.fixture
def build_session(user, ledger, channel, email):
    sessions = []

    def _build(feed, **kwargs):
        session = NotificationSession(
            user,
            feed,
            ledger=ledger,
            channel=channel,
            email=email,
            interval_seconds=60,
            lookahead_days=4,
            default_due_time="09:00",
            clock=lambda: NOW,
            **kwargs,
        )
        sessions.append(session)
        return session

    return _build


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_runs_first_cycle_immediately(self, build_session, make_task, socket):
        feed = TaskFeed(make_task, {})
        session = build_session(feed)

        await session.start()
        try:
            assert feed.calls == 1
            assert session.is_running
            assert session.alerts == [
                'Upcoming Deadline: "Ship release" is due on Oct 28 (in 4 days).'
            ]
            # permission not reported yet: the local notification is held
            assert socket.frames == []
            assert session.notifier.held_count == 1
        finally:
            await session.stop()

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, build_session, make_task):
        feed = TaskFeed(make_task, {})
        session = build_session(feed)

        await session.start()
        await session.start()
        try:
            assert feed.calls == 1
        finally:
            await session.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_timer_and_closes_sockets(
        self, build_session, make_task, socket, channel, user
    ):
        session = build_session(TaskFeed(make_task))
        await session.start()

        await session.stop()

        assert not session.is_running
        assert socket.closed_with == 1000
        assert channel.connection_count(user.id) == 0


class TestTick:
    @pytest.mark.asyncio
    async def test_rerun_same_day_does_not_duplicate(self, build_session, make_task, email):
        session = build_session(TaskFeed(make_task, {}))

        first = await session.tick(NOW)
        second = await session.tick(NOW)

        assert len(first) == 1
        assert second == []
        assert len(session.alerts) == 1
        email.dispatch.assert_called_once()

    @pytest.mark.asyncio
    async def test_new_day_alerts_again(self, build_session, make_task):
        session = build_session(TaskFeed(make_task, {}))

        await session.tick(NOW)
        await session.tick(datetime(2024, 10, 25, 8, 0))

        assert session.alerts[1].endswith("(in 3 days).")

    @pytest.mark.asyncio
    async def test_reminder_fires_once_and_is_persisted(
        self, build_session, make_task, socket
    ):
        sink = AsyncMock()
        feed = TaskFeed(
            make_task,
            {"id": "5", "due_date": date(2024, 10, 28), "due_time": "10:00", "reminder_minutes": 30},
        )
        session = build_session(feed, on_reminder_sent=sink)
        session.notifier.set_permission(PermissionState.granted)
        now = datetime(2024, 10, 28, 9, 45)

        await session.tick(now)
        await session.tick(datetime(2024, 10, 28, 9, 50))

        sink.assert_awaited_once_with(["5"])
        reminders = [f for f in socket.frames if f.get("title") == "Reminder: Ship release"]
        assert reminders == [
            {"event": "notification", "title": "Reminder: Ship release", "body": "Due today at 10:00."}
        ]
        assert session.tasks[0].reminder_sent is True

    @pytest.mark.asyncio
    async def test_rescheduled_task_takes_refreshed_flag(self, build_session, make_task):
        feed = TaskFeed(
            make_task,
            {"id": "5", "due_time": "10:00", "reminder_minutes": 30},
        )
        session = build_session(feed)
        await session.tick(datetime(2024, 10, 28, 9, 45))
        assert session.tasks[0].reminder_sent is True

        feed.rows = [{"id": "5", "due_time": "16:00", "reminder_minutes": 30}]
        await session.refresh_tasks()

        assert session.tasks[0].reminder_sent is False

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_snapshot(self, build_session, make_task):
        feed = TaskFeed(make_task, {"id": "1"}, {"id": "2", "title": "Write notes"})
        session = build_session(feed)
        await session.refresh_tasks()

        feed.error = ConnectionError("db down")
        await session.refresh_tasks()

        assert [t.id for t in session.tasks] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_stop_scan(self, build_session, make_task):
        sink = AsyncMock(side_effect=RuntimeError("db down"))
        feed = TaskFeed(make_task, {"id": "5", "due_time": "10:00", "reminder_minutes": 30})
        session = build_session(feed, on_reminder_sent=sink)

        raised = await session.tick(datetime(2024, 10, 28, 9, 45))

        assert len(raised) == 1

    @pytest.mark.asyncio
    async def test_ledger_failure_is_contained(self, user, channel, email, make_task):
        store = InMemoryLedgerStore()
        store.get = AsyncMock(side_effect=RuntimeError("store down"))
        session = NotificationSession(
            user,
            TaskFeed(make_task, {}),
            ledger=NotificationLedger(store, lookahead_days=4),
            channel=channel,
            email=email,
            clock=lambda: NOW,
        )

        assert await session.tick() == []

    @pytest.mark.asyncio
    async def test_prunes_old_ledger_days(self, build_session, make_task, ledger, user):
        await ledger.add_all(user.id, date(2024, 10, 1), ["1"])
        session = build_session(TaskFeed(make_task))

        await session.tick(NOW)

        assert await ledger.notified(user.id, date(2024, 10, 1)) == set()


class TestPushedEvents:
    @pytest.mark.asyncio
    async def test_event_goes_to_top_of_alerts(self, build_session, make_task, socket):
        session = build_session(TaskFeed(make_task, {}))
        session.notifier.set_permission(PermissionState.granted)
        await session.tick(NOW)

        await session.receive_event(
            RealtimeEvent(message='A new task "Audit" has been assigned to you', task_title="Audit")
        )

        assert session.alerts[0] == 'A new task "Audit" has been assigned to you'
        assert socket.frames[-1] == {
            "event": "notification",
            "title": "Audit",
            "body": 'A new task "Audit" has been assigned to you',
        }

    @pytest.mark.asyncio
    async def test_remove_alert_by_index(self, build_session, make_task):
        session = build_session(TaskFeed(make_task, {}))
        await session.tick(NOW)

        removed = session.remove_alert(0)

        assert removed.startswith("Upcoming Deadline")
        assert session.alerts == []


class TestPermissionTiming:
    DUE_TODAY = datetime(2024, 10, 28, 8, 0)

    @pytest.mark.asyncio
    async def test_grant_after_first_cycle_shows_held_notification(
        self, user, ledger, channel, email, make_task, socket
    ):
        session = NotificationSession(
            user,
            TaskFeed(make_task, {}),
            ledger=ledger,
            channel=channel,
            email=email,
            lookahead_days=4,
            clock=lambda: self.DUE_TODAY,
        )
        await session.start()
        try:
            shown = await session.notifier.resolve_permission(PermissionState.granted)
            await session.tick()

            assert shown == 1
            assert socket.frames == [
                {
                    "event": "notification",
                    "title": "Task Deadline Approaching",
                    "body": 'Upcoming Deadline: "Ship release" is due on Oct 28 (today).',
                }
            ]
        finally:
            await session.stop()

    @pytest.mark.asyncio
    async def test_denial_discards_held_notifications(
        self, user, ledger, channel, email, make_task, socket
    ):
        session = NotificationSession(
            user,
            TaskFeed(make_task, {}),
            ledger=ledger,
            channel=channel,
            email=email,
            lookahead_days=4,
            clock=lambda: self.DUE_TODAY,
        )
        await session.tick()

        await session.notifier.resolve_permission(PermissionState.denied)
        await session.notifier.resolve_permission(PermissionState.granted)

        assert session.notifier.held_count == 0
        assert socket.frames == []
