from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class VerificationSend(BaseModel):
    phone_number: str = Field(min_length=1, max_length=64)


class VerificationCheck(BaseModel):
    phone_number: str = Field(min_length=1, max_length=64)
    code: str = Field(max_length=32)


class VerificationSent(BaseModel):
    status: str = "sent"
    phone_number: str
    expires_at: datetime
    delivered: bool
    delivery_error: Optional[str] = None
    debug_code: Optional[str] = None


class VerificationChecked(BaseModel):
    status: str = "verified"
    phone_number: str


class VerifiedSession(BaseModel):
    phone_number: str
    verified: bool = True
