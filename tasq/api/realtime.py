"""WebSocket endpoint for the real-time alert channel."""

import json
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from tasq.core.exceptions import UserNotFoundError
from tasq.schemas.common import PermissionState
from tasq.services.notification_hub import NotificationHub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])

# Application-defined close code for an unknown user
_CLOSE_UNKNOWN_USER = 4404


@router.websocket("/ws/notifications/{user_id}")
async def notifications_socket(
    websocket: WebSocket,
    user_id: str,
    permission: Optional[PermissionState] = None,
) -> None:
    """Join the user's alert channel.

    Attaches to the user's live session, starting one if none is open.
    The browser may pass its current notification ``permission`` so the
    first cycle can notify without waiting for the prompt round-trip.

    A dropped socket leaves the session running for one grace period so
    the browser can reconnect; events emitted while disconnected are not
    replayed.  With no socket back in time the session is closed.
    """
    hub: NotificationHub = websocket.app.state.notification_hub

    try:
        session = await hub.open(user_id, permission=permission, websocket=websocket)
    except UserNotFoundError:
        await websocket.close(code=_CLOSE_UNKNOWN_USER)
        return

    # Reconnecting to a session whose prompt is still unanswered
    await session.notifier.request()

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Ignoring non-JSON frame from user %s", user_id)
                continue
            await hub.handle_client_frame(session.user.id, frame)
    except WebSocketDisconnect:
        pass
    finally:
        await hub.release(session.user.id, websocket)
