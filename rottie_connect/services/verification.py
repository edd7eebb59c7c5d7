from __future__ import annotations

import logging
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from rottie_connect.core.config import VerificationConfig
from rottie_connect.core.errors import ErrorCode, VerificationError
from rottie_connect.models.common import as_utc, utcnow
from rottie_connect.services.delivery import CodeDeliveryError, CodeSender
from rottie_connect.services.phone import InvalidPhoneFormat, mask_phone, normalize_phone
from rottie_connect.services.phone_locks import PhoneLockTimeout, PhoneLocks
from rottie_connect.services.verification_store import VerificationStore

logger = logging.getLogger("rottie.verification")

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class IssuedCode:
    phone_number: str
    code: str
    expires_at: datetime
    delivered: bool
    delivery_error: str | None = None


@dataclass(frozen=True)
class CheckResult:
    phone_number: str
    verified: bool
    attempts: int


def generate_code(length: int) -> str:
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def phone_from_request(raw: str | None, config: VerificationConfig) -> str:
    try:
        return normalize_phone(
            raw,
            default_country_code=config.default_country_code,
            channel_prefixes=config.channel_prefixes,
        )
    except InvalidPhoneFormat as exc:
        raise VerificationError(ErrorCode.INVALID_PHONE_FORMAT, str(exc)) from exc


class VerificationService:
    """Issues one-time codes and checks them against the record store.

    Issuance and checks for one phone number run under that number's lock, so
    the cooldown check and the attempts counter never race each other. The
    clock is read only after the lock is held.
    """

    def __init__(
        self,
        config: VerificationConfig,
        store: VerificationStore,
        sender: CodeSender,
        locks: PhoneLocks,
        clock: Clock = utcnow,
    ):
        self.config = config
        self.store = store
        self.sender = sender
        self.locks = locks
        self.clock = clock

    def is_valid_code_format(self, code: str | None) -> bool:
        value = str(code or "")
        return len(value) == self.config.code_length and value.isascii() and value.isdigit()

    def _now(self) -> datetime:
        return as_utc(self.clock())

    def create_verification(self, phone: str | None) -> IssuedCode:
        phone_number = phone_from_request(phone, self.config)
        try:
            with self.locks.hold(phone_number):
                now = self._now()
                self._ensure_cooldown_elapsed(phone_number, now)
                code = generate_code(self.config.code_length)
                expires_at = now + timedelta(minutes=self.config.code_expiry_minutes)
                self.store.add(phone_number=phone_number, code=code, created_at=now, expires_at=expires_at)
        except PhoneLockTimeout as exc:
            raise VerificationError(ErrorCode.VERIFICATION_ERROR, "Verification is busy, please retry") from exc

        logger.info("Verification code issued for %s expires_at=%s", mask_phone(phone_number), expires_at.isoformat())

        # The record is already committed; a failed delivery leaves the code checkable.
        try:
            self.sender.send(phone_number, code)
        except (CodeDeliveryError, OSError) as exc:
            logger.warning("Verification code delivery failed for %s: %s", mask_phone(phone_number), exc)
            return IssuedCode(phone_number, code, expires_at, delivered=False, delivery_error=str(exc))
        return IssuedCode(phone_number, code, expires_at, delivered=True)

    def _ensure_cooldown_elapsed(self, phone_number: str, now: datetime) -> None:
        existing = self.store.latest_active(phone_number, now)
        if existing is None:
            return
        cooldown_end = as_utc(existing.created_at) + timedelta(minutes=self.config.cooldown_minutes)
        if now < cooldown_end:
            remaining = math.ceil((cooldown_end - now).total_seconds() / 60)
            raise VerificationError(
                ErrorCode.COOLDOWN_ACTIVE,
                f"Please wait {remaining} minutes before requesting a new code",
                remaining_minutes=remaining,
            )

    def verify_code(self, phone: str | None, code: str | None) -> CheckResult:
        phone_number = phone_from_request(phone, self.config)
        code = str(code or "").strip()
        try:
            with self.locks.hold(phone_number):
                return self._verify_locked(phone_number, code)
        except PhoneLockTimeout as exc:
            raise VerificationError(ErrorCode.VERIFICATION_ERROR, "Verification is busy, please retry") from exc

    def _verify_locked(self, phone_number: str, code: str) -> CheckResult:
        now = self._now()
        max_attempts = self.config.max_attempts
        record = self.store.latest_active(phone_number, now)
        if record is None:
            raise VerificationError(
                ErrorCode.NO_ACTIVE_CODE,
                "No active verification code found. Please request a new code.",
            )

        if record.is_locked(max_attempts):
            raise VerificationError(
                ErrorCode.MAX_ATTEMPTS_EXCEEDED,
                f"Max attempts ({max_attempts}) exceeded. Please request a new code.",
                max_attempts=max_attempts,
            )

        if not secrets.compare_digest(record.code.encode("utf-8"), code.encode("utf-8")):
            attempts = self.store.register_failed_attempt(record.id, now=now, max_attempts=max_attempts)
            if attempts is None:
                raise VerificationError(
                    ErrorCode.MAX_ATTEMPTS_EXCEEDED,
                    f"Max attempts ({max_attempts}) exceeded. Please request a new code.",
                    max_attempts=max_attempts,
                )
            remaining = max_attempts - attempts
            if remaining == 0:
                logger.warning("Verification locked for %s after %s failed attempts", mask_phone(phone_number), attempts)
            raise VerificationError(
                ErrorCode.INVALID_CODE,
                f"Invalid code. {remaining} attempts remaining.",
                remaining_attempts=remaining,
                attempts=attempts,
            )

        if not record.verified:
            self.store.mark_verified(record.id)
            logger.info("Phone %s verified", mask_phone(phone_number))
        return CheckResult(phone_number=phone_number, verified=True, attempts=int(record.attempts or 0))
