class TasqError(Exception):
    """Base class for all tasq domain exceptions.

    Every custom exception in this module inherits from here so that a
    single ``except TasqError`` clause can catch any domain error.
    """

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(detail)


class UserNotFoundError(TasqError):
    """Raised when a requested user does not exist."""

    def __init__(self, detail: str = "User not found"):
        super().__init__(detail)


class TaskNotFoundError(TasqError):
    """Raised when a requested task does not exist."""

    def __init__(self, detail: str = "Task not found"):
        super().__init__(detail)


class SessionNotFoundError(TasqError):
    """Raised when no notification session is open for a user."""

    def __init__(self, detail: str = "Notification session not found"):
        super().__init__(detail)


class AlertNotFoundError(TasqError):
    """Raised when an alert index is outside the session's alert list."""

    def __init__(self, detail: str = "Alert not found"):
        super().__init__(detail)


class EmailDeliveryError(TasqError):
    """Raised when the SMTP server rejects or times out an outbound email.

    The deadline scanner never lets this escape: dispatch is
    fire-and-forget and failures are only logged.  The HTTP email
    endpoint maps it to a 500 response.
    """

    def __init__(self, detail: str = "Failed to send email"):
        super().__init__(detail)
