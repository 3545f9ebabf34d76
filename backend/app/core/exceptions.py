"""Domain exceptions raised by services and mapped to HTTP responses by routers."""
from fastapi import status


class SessionError(Exception):
    """Base error for session lifecycle rule violations."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SessionValidationError(SessionError):
    status_code = status.HTTP_400_BAD_REQUEST


class SessionNotFoundError(SessionError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Session not found"):
        super().__init__(message)


class SessionForbiddenError(SessionError):
    status_code = status.HTTP_403_FORBIDDEN


class SessionStateError(SessionError):
    """Operation not allowed in the session's current state."""
    status_code = status.HTTP_400_BAD_REQUEST


class SessionFullError(SessionError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Session is full"):
        super().__init__(message)


class MessagingError(Exception):
    """Messaging platform request failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SagaError(Exception):
    """A saga step failed; carries the report of actions and compensations."""

    def __init__(self, message: str, report):
        super().__init__(message)
        self.report = report
