from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class ErrorCode(str, Enum):
    COOLDOWN_ACTIVE = "COOLDOWN_ACTIVE"
    INVALID_PHONE_FORMAT = "INVALID_PHONE_FORMAT"
    NO_ACTIVE_CODE = "NO_ACTIVE_CODE"
    MAX_ATTEMPTS_EXCEEDED = "MAX_ATTEMPTS_EXCEEDED"
    INVALID_CODE = "INVALID_CODE"
    INVALID_VERIFICATION = "INVALID_VERIFICATION"
    VERIFICATION_REQUIRED = "VERIFICATION_REQUIRED"
    INVALID_CODE_FORMAT = "INVALID_CODE_FORMAT"
    INVALID_API_KEY = "INVALID_API_KEY"
    RATE_LIMITED = "RATE_LIMITED"
    VERIFICATION_ERROR = "VERIFICATION_ERROR"


_STATUS_BY_CODE = {
    ErrorCode.COOLDOWN_ACTIVE: 429,
    ErrorCode.INVALID_PHONE_FORMAT: 400,
    ErrorCode.NO_ACTIVE_CODE: 404,
    ErrorCode.MAX_ATTEMPTS_EXCEEDED: 429,
    ErrorCode.INVALID_CODE: 400,
    ErrorCode.INVALID_VERIFICATION: 401,
    ErrorCode.VERIFICATION_REQUIRED: 401,
    ErrorCode.INVALID_CODE_FORMAT: 400,
    ErrorCode.INVALID_API_KEY: 401,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.VERIFICATION_ERROR: 500,
}


class VerificationError(Exception):
    """Typed, per-request failure with a machine readable code."""

    def __init__(self, code: ErrorCode, message: str, **extras: Any):
        super().__init__(message)
        self.code = code
        self.message = message
        self.extras = extras

    @property
    def status_code(self) -> int:
        return _STATUS_BY_CODE.get(self.code, 400)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": True, "code": self.code.value, "message": self.message}
        payload.update(self.extras)
        return payload


def error_response(exc: VerificationError) -> JSONResponse:
    headers = None
    retry_after = exc.extras.get("retry_after_seconds")
    if retry_after is not None:
        headers = {"Retry-After": str(int(retry_after))}
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(VerificationError)
    async def _verification_error_handler(request: Request, exc: VerificationError):
        return error_response(exc)
