from __future__ import annotations

import hmac
import logging
from datetime import datetime
from typing import Callable

from fastapi import FastAPI, Request
from starlette.concurrency import run_in_threadpool

from rottie_connect.core.config import VerificationConfig
from rottie_connect.core.errors import ErrorCode, VerificationError, error_response
from rottie_connect.models.common import as_utc, utcnow
from rottie_connect.services.phone import validate_phone
from rottie_connect.services.verification_store import SqlVerificationStore, VerificationStore

logger = logging.getLogger("rottie.access_gate")

PHONE_HEADER = "x-phone-number"
CODE_HEADER = "x-verification-code"
API_KEY_HEADER = "x-rottie-api-key"

EXEMPT_PATH_PREFIXES = (
    "/api/verify/",
    "/api/test-verification",
    "/api/status",
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
)


def is_exempt_path(path: str, prefixes: tuple[str, ...] = EXEMPT_PATH_PREFIXES) -> bool:
    return path == "/" or any(path.startswith(prefix) for prefix in prefixes)


class AccessGate:
    """Read-only check that a request carries a verified, unexpired phone+code pair."""

    def __init__(
        self,
        config: VerificationConfig,
        store: VerificationStore,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config
        self.store = store
        self.clock = clock

    def check(self, phone: str | None, code: str | None) -> str:
        phone_raw = str(phone or "").strip()
        code = str(code or "").strip()
        if not phone_raw or not code:
            raise VerificationError(
                ErrorCode.VERIFICATION_REQUIRED,
                "Two-step verification required. Please include x-phone-number and x-verification-code headers.",
            )

        validation = validate_phone(
            phone_raw,
            default_country_code=self.config.default_country_code,
            channel_prefixes=self.config.channel_prefixes,
        )
        if not validation.is_valid:
            raise VerificationError(ErrorCode.INVALID_PHONE_FORMAT, str(validation.error))

        phone_number = str(validation.phone)
        if len(code) == self.config.code_length and code.isascii() and code.isdigit():
            record = self.store.find_verified(phone_number, code, as_utc(self.clock()))
        else:
            record = None
        if record is None:
            raise VerificationError(ErrorCode.INVALID_VERIFICATION, "Invalid or expired verification code.")
        return phone_number

    def check_api_key(self, provided: str | None) -> None:
        expected = self.config.api_key
        if not expected:
            return
        if not provided or not hmac.compare_digest(str(provided).encode("utf-8"), expected.encode("utf-8")):
            raise VerificationError(ErrorCode.INVALID_API_KEY, "Invalid or missing ROTTIE API key")


def _gate_request(request: Request) -> str:
    state = request.app.state
    db = state.session_factory()
    try:
        gate = AccessGate(state.verification_config, SqlVerificationStore(db), clock=state.clock)
        gate.check_api_key(request.headers.get(API_KEY_HEADER))
        return gate.check(request.headers.get(PHONE_HEADER), request.headers.get(CODE_HEADER))
    finally:
        db.close()


def install_access_gate(app: FastAPI) -> None:
    @app.middleware("http")
    async def _access_gate_middleware(request: Request, call_next):
        config: VerificationConfig = request.app.state.verification_config
        if not config.gate_enabled or request.method == "OPTIONS" or is_exempt_path(request.url.path):
            return await call_next(request)
        try:
            request.state.verified_phone = await run_in_threadpool(_gate_request, request)
        except VerificationError as exc:
            return error_response(exc)
        except Exception:
            logger.exception("Access gate failed for %s %s", request.method, request.url.path)
            return error_response(
                VerificationError(ErrorCode.VERIFICATION_ERROR, "Error during verification process")
            )
        return await call_next(request)


def get_verified_phone(request: Request) -> str:
    phone = getattr(request.state, "verified_phone", None)
    if not phone:
        raise VerificationError(ErrorCode.VERIFICATION_REQUIRED, "Verified phone number is not available")
    return str(phone)
