from fastapi import APIRouter
from rottie_connect.api import session, status, verification

router = APIRouter()
router.include_router(verification.router, prefix="/verify", tags=["Verification"])
router.include_router(verification.test_router, prefix="/test-verification", tags=["Verification"])
router.include_router(status.router, prefix="/status", tags=["System"])
router.include_router(session.router, prefix="/session", tags=["Session"])
