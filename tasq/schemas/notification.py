"""Notification schemas: alerts, channel events, email and session payloads."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from tasq.schemas.common import SuccessResponse


class DeadlineAlert(BaseModel):
    """An alert raised by the deadline window scanner."""

    message: str
    task_id: str
    task_title: str
    days_until_due: int


class RealtimeEvent(BaseModel):
    """Payload pushed over the real-time channel.

    Serialised with the camelCase ``taskTitle`` key the web client reads.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1)
    task_title: Optional[str] = Field(None, alias="taskTitle")


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------


class EmailRequest(BaseModel):
    """Body of ``POST /notifications/email``.

    Fields are optional at the schema level so that a missing field
    yields the endpoint's own 400 response instead of a 422.
    """

    model_config = ConfigDict(populate_by_name=True)

    to: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    task_title: Optional[str] = Field(None, alias="taskTitle")


class EmailResult(SuccessResponse):
    message_id: Optional[str] = Field(None, serialization_alias="messageId")
    message: str = "Email sent successfully"


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class AlertListResponse(BaseModel):
    user_id: str
    alerts: List[str]


class SessionResponse(SuccessResponse):
    user_id: str
    running: bool
    alerts: List[str] = []


class TaskAssignmentResponse(SuccessResponse):
    task_id: str
    assigned_to: str
    message: str
