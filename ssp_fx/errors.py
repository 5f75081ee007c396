"""Errors surfaced by the HTTP layer as ``{"error": {"code", "message"}}``."""

from __future__ import annotations


class FxApiError(Exception):
    code = "INTERNAL"
    status = 500

    def __init__(
        self, message: str, code: str | None = None, status: int | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status is not None:
            self.status = status

    def to_dict(self) -> dict[str, dict[str, str]]:
        return {"error": {"code": self.code, "message": self.message}}


class InvalidParameterError(FxApiError):
    code = "INVALID_PARAMETER"
    status = 400


class UnauthorizedError(FxApiError):
    code = "UNAUTHORIZED"
    status = 401


class NoDataError(FxApiError):
    code = "NO_DATA"
    status = 404


class DatabaseError(FxApiError):
    code = "DB_ERROR"
    status = 500
