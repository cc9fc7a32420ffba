"""Hand-written fakes for the notification engine's ports."""

from typing import Any, Dict, List, Tuple

from tasq.schemas.common import PermissionState


class RecordingNotifier:
    """``Notifier`` that records what it would have shown."""

    def __init__(self, permission: PermissionState = PermissionState.granted) -> None:
        self._permission = permission
        self.requests = 0
        self.sent: List[Tuple[str, str]] = []

    @property
    def permission(self) -> PermissionState:
        return self._permission

    def set_permission(self, state: PermissionState) -> None:
        self._permission = state

    async def resolve_permission(self, state: PermissionState) -> int:
        self._permission = state
        return 0

    async def request(self) -> None:
        self.requests += 1

    async def notify(self, title: str, body: str) -> bool:
        if self._permission != PermissionState.granted:
            return False
        self.sent.append((title, body))
        return True


class FakeWebSocket:
    """Enough of ``starlette.websockets.WebSocket`` for ``AlertChannel``."""

    def __init__(self, fail_on_send: bool = False) -> None:
        self.accepted = False
        self.closed_with: Any = None
        self.frames: List[Dict[str, Any]] = []
        self._fail_on_send = fail_on_send

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, data: Dict[str, Any]) -> None:
        if self._fail_on_send:
            raise RuntimeError("socket is gone")
        self.frames.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code
