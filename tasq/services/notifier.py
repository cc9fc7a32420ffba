"""Local (OS-level) notification capability.

The browser owns the permission prompt and the actual notification.
The server side only knows what the browser last reported and asks it,
over the real-time channel, to show notifications.
"""

import logging
from collections import deque
from typing import Deque, Optional, Protocol, Tuple

from tasq.core.constants import (
    EVENT_NOTIFICATION,
    EVENT_PERMISSION_REQUEST,
)
from tasq.schemas.common import PermissionState
from tasq.services.realtime import AlertChannel

logger = logging.getLogger(__name__)

# Notifications held back while the browser has not answered the prompt
_MAX_HELD = 50


class Notifier(Protocol):
    """Permission-gated local notification port."""

    @property
    def permission(self) -> PermissionState: ...

    async def request(self) -> None: ...

    async def notify(self, title: str, body: str) -> bool: ...


class ChannelNotifier:
    """``Notifier`` that relays notifications to a user's browser tabs.

    Until the browser reports a permission state, notifications are held
    back rather than dropped: a grant shows them, a denial discards them.
    """

    def __init__(
        self,
        channel: AlertChannel,
        user_id: str,
        permission: Optional[PermissionState] = None,
    ) -> None:
        self._channel = channel
        self._user_id = user_id
        self._permission = permission or PermissionState.default
        self._held: Deque[Tuple[str, str]] = deque(maxlen=_MAX_HELD)

    @property
    def permission(self) -> PermissionState:
        return self._permission

    @property
    def is_granted(self) -> bool:
        return self._permission == PermissionState.granted

    @property
    def held_count(self) -> int:
        return len(self._held)

    def set_permission(self, state: PermissionState) -> None:
        if state != self._permission:
            logger.info(
                "Notification permission for user %s: %s",
                self._user_id,
                state.value,
            )
        self._permission = state
        if state == PermissionState.denied:
            self._held.clear()

    async def resolve_permission(self, state: PermissionState) -> int:
        """Apply the browser's answer and show anything held back on a grant.

        Returns the number of held notifications delivered.
        """
        self.set_permission(state)
        if not self.is_granted:
            return 0
        shown = 0
        while self._held:
            title, body = self._held.popleft()
            if await self.notify(title, body):
                shown += 1
        return shown

    async def request(self) -> None:
        """Ask the browser for permission unless it already answered."""
        if self._permission != PermissionState.default:
            return
        await self._channel.send(self._user_id, {"event": EVENT_PERMISSION_REQUEST})

    async def notify(self, title: str, body: str) -> bool:
        """Show a notification if permitted. Returns whether one was sent."""
        if self._permission == PermissionState.default:
            self._held.append((title, body))
            return False
        if not self.is_granted:
            logger.debug(
                "Notification suppressed for user %s (permission=%s)",
                self._user_id,
                self._permission.value,
            )
            return False
        delivered = await self._channel.send(
            self._user_id,
            {"event": EVENT_NOTIFICATION, "title": title, "body": body},
        )
        return delivered > 0
