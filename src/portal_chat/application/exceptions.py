from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    retryable: bool = False

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class ForbiddenError(AppError):
    pass


class ConflictError(AppError):
    pass


class ValidationError(AppError):
    pass


class PersistenceTimeoutError(AppError):
    """The store did not answer in time; the client may resend."""

    retryable = True
