from fastapi import Depends, Request
from sqlalchemy.orm import Session

from rottie_connect.db.session import get_db
from rottie_connect.services.rate_limit import enforce_rate_limit
from rottie_connect.services.verification import VerificationService
from rottie_connect.services.verification_store import SqlVerificationStore


def get_verification_service(request: Request, db: Session = Depends(get_db)) -> VerificationService:
    state = request.app.state
    return VerificationService(
        state.verification_config,
        SqlVerificationStore(db),
        state.code_sender,
        state.phone_locks,
        clock=state.clock,
    )


def client_ip(request: Request) -> str:
    xff = str(request.headers.get("x-forwarded-for") or "").strip()
    if xff:
        first = xff.split(",")[0].strip()
        if first:
            return first
    client = request.client
    return str(client.host if client else "unknown")


def limit_request(request: Request, action: str, *, phone_number: str | None) -> None:
    state = request.app.state
    enforce_rate_limit(
        state.rate_limiter,
        state.endpoint_limits,
        action,
        client_ip=client_ip(request),
        phone_number=phone_number,
    )
