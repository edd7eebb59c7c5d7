from fastapi import APIRouter, Depends

from rottie_connect.schemas.verification import VerifiedSession
from rottie_connect.services.access_gate import get_verified_phone

router = APIRouter()


@router.get("", response_model=VerifiedSession)
def current_session(phone_number: str = Depends(get_verified_phone)):
    return VerifiedSession(phone_number=phone_number)
