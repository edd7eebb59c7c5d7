from __future__ import annotations

import uuid
from datetime import datetime
from typing import Protocol

from sqlalchemy import update
from sqlalchemy.orm import Session

from rottie_connect.models.verification_code import VerificationCode


class VerificationStore(Protocol):
    def latest_active(self, phone_number: str, now: datetime) -> VerificationCode | None:
        ...

    def add(self, *, phone_number: str, code: str, created_at: datetime, expires_at: datetime) -> VerificationCode:
        ...

    def register_failed_attempt(self, record_id: uuid.UUID, *, now: datetime, max_attempts: int) -> int | None:
        ...

    def mark_verified(self, record_id: uuid.UUID) -> None:
        ...

    def find_verified(self, phone_number: str, code: str, now: datetime) -> VerificationCode | None:
        ...


class SqlVerificationStore:
    """SQLAlchemy-backed record store. Every mutation commits before returning."""

    def __init__(self, db: Session):
        self.db = db

    def latest_active(self, phone_number: str, now: datetime) -> VerificationCode | None:
        return (
            self.db.query(VerificationCode)
            .filter(VerificationCode.phone_number == phone_number, VerificationCode.expires_at > now)
            .order_by(VerificationCode.created_at.desc())
            .first()
        )

    def add(self, *, phone_number: str, code: str, created_at: datetime, expires_at: datetime) -> VerificationCode:
        row = VerificationCode(
            phone_number=phone_number,
            code=code,
            created_at=created_at,
            expires_at=expires_at,
            attempts=0,
            verified=False,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def register_failed_attempt(self, record_id: uuid.UUID, *, now: datetime, max_attempts: int) -> int | None:
        # Conditional increment: two concurrent misses cannot both pass the cap.
        result = self.db.execute(
            update(VerificationCode)
            .where(VerificationCode.id == record_id, VerificationCode.attempts < max_attempts)
            .values(attempts=VerificationCode.attempts + 1, last_attempt_at=now)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        if result.rowcount == 0:
            return None
        row = self.db.get(VerificationCode, record_id, populate_existing=True)
        return int(row.attempts) if row is not None else None

    def mark_verified(self, record_id: uuid.UUID) -> None:
        self.db.execute(
            update(VerificationCode)
            .where(VerificationCode.id == record_id)
            .values(verified=True)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()

    def find_verified(self, phone_number: str, code: str, now: datetime) -> VerificationCode | None:
        return (
            self.db.query(VerificationCode)
            .filter(
                VerificationCode.phone_number == phone_number,
                VerificationCode.code == code,
                VerificationCode.verified.is_(True),
                VerificationCode.expires_at > now,
            )
            .order_by(VerificationCode.created_at.desc())
            .first()
        )
