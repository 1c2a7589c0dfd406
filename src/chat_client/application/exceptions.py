from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NetworkError(AppError):
    """REST endpoint or push channel unreachable."""


class ApiError(AppError):
    """Server answered with a failure envelope or an unreadable body."""

    def __init__(self, detail: str = "", status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(detail)


class StaleAuthError(AppError):
    pass


class ValidationError(AppError):
    pass


class PushDecodeError(AppError):
    pass
