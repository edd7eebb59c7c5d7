from __future__ import annotations

from datetime import datetime
from typing import Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from rottie_connect.api.router import router as api_router
from rottie_connect.core.config import Settings, VerificationConfig, settings
from rottie_connect.core.errors import install_error_handlers
from rottie_connect.core.http_hardening import install_http_hardening
from rottie_connect.db.session import build_engine, build_session_factory
from rottie_connect.models.common import utcnow
from rottie_connect.services.access_gate import install_access_gate
from rottie_connect.services.delivery import CodeSender, build_code_sender
from rottie_connect.services.phone_locks import PhoneLocks, build_phone_locks
from rottie_connect.services.rate_limit import EndpointLimits, RateLimiter, build_rate_limiter


def create_app(
    source: Settings = settings,
    *,
    verification_config: VerificationConfig | None = None,
    session_factory: sessionmaker[Session] | None = None,
    code_sender: CodeSender | None = None,
    phone_locks: PhoneLocks | None = None,
    rate_limiter: RateLimiter | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    """Build the API with every collaborator constructed here or injected by the caller."""
    config = verification_config or VerificationConfig.from_settings(source)

    app = FastAPI(title=source.APP_NAME, version="0.1.0")
    app.state.app_name = source.APP_NAME
    app.state.verification_config = config
    app.state.session_factory = session_factory or build_session_factory(build_engine(source.DATABASE_URL))
    app.state.code_sender = code_sender or build_code_sender(source)
    app.state.phone_locks = phone_locks or build_phone_locks(source.REDIS_URL, config.lock_timeout_seconds)
    app.state.rate_limiter = rate_limiter or build_rate_limiter(source.REDIS_URL)
    app.state.endpoint_limits = EndpointLimits(
        window_seconds=source.VERIFY_RATE_LIMIT_WINDOW_SECONDS,
        send_limit=source.VERIFY_SEND_RATE_LIMIT,
        check_limit=source.VERIFY_CHECK_RATE_LIMIT,
    )
    app.state.clock = clock

    # Registration order matters: the last middleware added runs first.
    install_access_gate(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=source.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_http_hardening(app)
    install_error_handlers(app)

    app.include_router(api_router, prefix="/api")

    @app.get("/", include_in_schema=False)
    def landing():
        return JSONResponse({"service": source.APP_NAME, "status": "ok"})

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
