from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

DEFAULT_COUNTRY_CODE = "52"
DEFAULT_CHANNEL_PREFIXES = ("whatsapp:",)
NATIONAL_NUMBER_LENGTH = 10
MIN_INTERNATIONAL_DIGITS = 12
MAX_INTERNATIONAL_DIGITS = 15


class InvalidPhoneFormat(ValueError):
    pass


@dataclass(frozen=True)
class PhoneValidation:
    is_valid: bool
    phone: str | None = None
    error: str | None = None


def _strip_channel_prefix(raw: str, prefixes: Iterable[str]) -> str:
    lowered = raw.lower()
    for prefix in prefixes:
        if prefix and lowered.startswith(prefix):
            return raw[len(prefix):]
    return raw


def _clean(raw: str) -> str:
    value = raw.strip()
    plus = value.startswith("+")
    digits = "".join(ch for ch in value if ch.isascii() and ch.isdigit())
    return f"+{digits}" if plus else digits


def normalize_phone(
    raw: str | None,
    *,
    default_country_code: str = DEFAULT_COUNTRY_CODE,
    channel_prefixes: Iterable[str] = DEFAULT_CHANNEL_PREFIXES,
) -> str:
    """Return the canonical ``+<digits>`` form used as the storage key.

    Accepted shapes, after the channel prefix and punctuation are removed:

    * 10 digits: a national number, the default country code is prepended;
    * 12 digits starting with the default country code;
    * ``+`` followed by 12 to 15 digits.

    Anything else raises :class:`InvalidPhoneFormat`. The canonical output is
    itself an accepted input and maps to itself.
    """
    value = _strip_channel_prefix(str(raw or "").strip(), channel_prefixes)
    cleaned = _clean(value)
    if not cleaned or cleaned == "+":
        raise InvalidPhoneFormat("Phone number is required")

    if cleaned.startswith("+"):
        digits = cleaned[1:]
        if MIN_INTERNATIONAL_DIGITS <= len(digits) <= MAX_INTERNATIONAL_DIGITS:
            return cleaned
    elif len(cleaned) == NATIONAL_NUMBER_LENGTH:
        return f"+{default_country_code}{cleaned}"
    elif len(cleaned) == NATIONAL_NUMBER_LENGTH + len(default_country_code) and cleaned.startswith(
        default_country_code
    ):
        return f"+{cleaned}"

    raise InvalidPhoneFormat(
        "Invalid phone number format. Use a 10-digit national number, "
        f"{default_country_code} followed by 10 digits, or +<country code><number>"
    )


def validate_phone(
    raw: str | None,
    *,
    default_country_code: str = DEFAULT_COUNTRY_CODE,
    channel_prefixes: Iterable[str] = DEFAULT_CHANNEL_PREFIXES,
) -> PhoneValidation:
    try:
        phone = normalize_phone(raw, default_country_code=default_country_code, channel_prefixes=channel_prefixes)
    except InvalidPhoneFormat as exc:
        return PhoneValidation(is_valid=False, error=str(exc))
    return PhoneValidation(is_valid=True, phone=phone)


def mask_phone(phone: str | None) -> str:
    value = str(phone or "")
    if len(value) <= 4:
        return "***"
    return f"***{value[-4:]}"
