from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from rottie_connect.core.deps import get_verification_service, limit_request
from rottie_connect.core.errors import ErrorCode, VerificationError
from rottie_connect.schemas.verification import (
    VerificationCheck,
    VerificationChecked,
    VerificationSend,
    VerificationSent,
)
from rottie_connect.services.verification import IssuedCode, VerificationService, phone_from_request

router = APIRouter()
test_router = APIRouter()


def _sent_payload(issued: IssuedCode, *, expose_code: bool) -> VerificationSent:
    return VerificationSent(
        phone_number=issued.phone_number,
        expires_at=issued.expires_at,
        delivered=issued.delivered,
        delivery_error=issued.delivery_error,
        debug_code=issued.code if expose_code else None,
    )


@router.post("/send", response_model=VerificationSent, response_model_exclude_none=True)
def send_code(
    payload: VerificationSend,
    request: Request,
    service: VerificationService = Depends(get_verification_service),
):
    phone_number = phone_from_request(payload.phone_number, service.config)
    limit_request(request, "send", phone_number=phone_number)
    issued = service.create_verification(phone_number)
    return _sent_payload(issued, expose_code=False)


@router.post("/check", response_model=VerificationChecked)
def check_code(
    payload: VerificationCheck,
    request: Request,
    service: VerificationService = Depends(get_verification_service),
):
    phone_number = phone_from_request(payload.phone_number, service.config)
    limit_request(request, "check", phone_number=phone_number)
    if not service.is_valid_code_format(payload.code):
        raise VerificationError(
            ErrorCode.INVALID_CODE_FORMAT,
            f"Verification code must be exactly {service.config.code_length} digits",
        )
    result = service.verify_code(phone_number, payload.code)
    return VerificationChecked(phone_number=result.phone_number)


@test_router.post("", response_model=VerificationSent, response_model_exclude_none=True)
def issue_test_code(
    payload: VerificationSend,
    service: VerificationService = Depends(get_verification_service),
):
    # Only mounted with a meaningful response when codes may be exposed (local and test profiles).
    if not service.config.expose_codes:
        raise HTTPException(status_code=404, detail="Not Found")
    issued = service.create_verification(payload.phone_number)
    return _sent_payload(issued, expose_code=True)
