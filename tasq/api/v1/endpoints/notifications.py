import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from tasq.core.exceptions import EmailDeliveryError
from tasq.core.rate_limit import limiter
from tasq.schemas.common import PermissionState
from tasq.schemas.notification import (
    AlertListResponse,
    EmailRequest,
    EmailResult,
    SessionResponse,
)
from tasq.services.email_dispatcher import EmailDispatcher
from tasq.services.notification_hub import NotificationHub
from tasq.api.deps import get_email_dispatcher, get_notification_hub

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


# ---------------------------------------------------------------------------
# Session lifecycle
# ---------------------------------------------------------------------------


@router.post("/sessions/{user_id}", response_model=SessionResponse, status_code=201)
async def start_session(
    user_id: str,
    permission: Optional[PermissionState] = None,
    hub: NotificationHub = Depends(get_notification_hub),
) -> SessionResponse:
    """Start (or return) the user's notification session.

    ``permission`` is the browser's current notification permission, if
    it already knows it.

    The first reminder/deadline cycle has already run when this returns,
    so ``alerts`` contains anything due today.
    """
    session = await hub.open(user_id, permission=permission)
    return SessionResponse(
        user_id=session.user.id,
        running=session.is_running,
        alerts=session.alerts,
    )


@router.delete("/sessions/{user_id}", response_model=SessionResponse)
async def end_session(
    user_id: str,
    hub: NotificationHub = Depends(get_notification_hub),
) -> SessionResponse:
    """Stop the timer and close the user's real-time channel."""
    await hub.close(user_id)
    return SessionResponse(user_id=user_id, running=False)


# ---------------------------------------------------------------------------
# In-app alert list
# ---------------------------------------------------------------------------


@router.get("/{user_id}/alerts", response_model=AlertListResponse)
async def list_alerts(
    user_id: str,
    hub: NotificationHub = Depends(get_notification_hub),
) -> AlertListResponse:
    session = hub.require(user_id)
    return AlertListResponse(user_id=user_id, alerts=session.alerts)


@router.delete("/{user_id}/alerts/{index}", response_model=AlertListResponse)
async def remove_alert(
    user_id: str,
    index: int,
    hub: NotificationHub = Depends(get_notification_hub),
) -> AlertListResponse:
    """Remove a single alert by its position in the list."""
    session = hub.require(user_id)
    session.remove_alert(index)
    return AlertListResponse(user_id=user_id, alerts=session.alerts)


# ---------------------------------------------------------------------------
# Outbound email
# ---------------------------------------------------------------------------


@router.post("/email", response_model=EmailResult)
@limiter.limit("10/minute")
async def send_email(
    request: Request,
    request_body: EmailRequest,
    dispatcher: EmailDispatcher = Depends(get_email_dispatcher),
):
    """Send a single notification email.

    Rate-limited to 10 requests/minute per IP.  Exactly one delivery
    attempt is made; SMTP failures return 500 without retrying.
    """
    if not request_body.to or not request_body.subject or not request_body.body:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Missing required fields"},
        )

    try:
        return await dispatcher.send_email(
            to=request_body.to,
            subject=request_body.subject,
            body=request_body.body,
            task_title=request_body.task_title,
        )
    except EmailDeliveryError as exc:
        logger.error("Email endpoint failed: %s", exc.detail)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Failed to send email",
                "error": exc.detail,
            },
        )
