from __future__ import annotations


class StudyTrackerError(Exception):
    pass


class AuthenticationError(StudyTrackerError):
    pass


class ValidationError(StudyTrackerError, ValueError):
    pass


class ConflictError(StudyTrackerError):
    pass


class NotFoundError(StudyTrackerError):
    pass


class AiProxyError(StudyTrackerError):
    """Upstream AI failure normalized into a user-facing message."""

    def __init__(self, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code
