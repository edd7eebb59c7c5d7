from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from rottie_connect.db.session import Base
from rottie_connect.models.common import CreatedAtMixin, UUIDMixin


class VerificationCode(Base, UUIDMixin, CreatedAtMixin):
    __tablename__ = "verification_codes"
    __table_args__ = (Index("ix_verification_codes_phone_expires", "phone_number", "expires_at"),)

    phone_number: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(10), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_attempt_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def is_locked(self, max_attempts: int) -> bool:
        return int(self.attempts or 0) >= max_attempts

    def __repr__(self) -> str:
        return (
            f"<VerificationCode(phone_number={self.phone_number}, attempts={self.attempts}, "
            f"verified={self.verified}, expires_at={self.expires_at})>"
        )
