from __future__ import annotations

from dataclasses import dataclass
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "rottie-connect"

    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    DATABASE_URL: str
    REDIS_URL: str

    VERIFICATION_CODE_LENGTH: int = 6
    VERIFICATION_CODE_EXPIRY_MINUTES: int = 5
    VERIFICATION_COOLDOWN_MINUTES: int = 1  # 15 on the public WhatsApp profile
    VERIFICATION_MAX_ATTEMPTS: int = 3
    VERIFICATION_DEFAULT_COUNTRY_CODE: str = "52"
    VERIFICATION_CHANNEL_PREFIXES: str = "whatsapp:"
    VERIFICATION_GATE_ENABLED: bool = True
    VERIFICATION_EXPOSE_CODES: bool = False
    VERIFICATION_RETENTION_HOURS: int = 24
    VERIFICATION_LOCK_TIMEOUT_SECONDS: float = 5.0
    ROTTIE_API_KEY: str = ""

    DELIVERY_PROVIDER: str = "dummy"  # dummy | twilio
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_MESSAGING_SERVICE_SID: str = ""
    TWILIO_API_BASE_URL: str = "https://api.twilio.com"
    TWILIO_TIMEOUT_SECONDS: float = 10.0
    VERIFICATION_MESSAGE_TEMPLATE: str = (
        "Your RottieConnect verification code is: {code}\n\nThis code will expire in {expiry_minutes} minutes."
    )

    VERIFY_RATE_LIMIT_WINDOW_SECONDS: int = 300
    VERIFY_SEND_RATE_LIMIT: int = 10
    VERIFY_CHECK_RATE_LIMIT: int = 30

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def channel_prefixes_list(self) -> List[str]:
        return [p.strip().lower() for p in self.VERIFICATION_CHANNEL_PREFIXES.split(",") if p.strip()]


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class VerificationConfig:
    """Verification knobs shared by the service and the access gate.

    Built once at startup and passed by reference; operation code never reads
    ``settings`` directly.
    """

    code_length: int = 6
    code_expiry_minutes: int = 5
    cooldown_minutes: int = 1
    max_attempts: int = 3
    default_country_code: str = "52"
    channel_prefixes: tuple[str, ...] = ("whatsapp:",)
    gate_enabled: bool = True
    expose_codes: bool = False
    api_key: str = ""
    lock_timeout_seconds: float = 5.0

    def __post_init__(self) -> None:
        if self.code_length < 4 or self.code_length > 10:
            raise ConfigError(f"code_length must be between 4 and 10, got {self.code_length}")
        if self.code_expiry_minutes < 1:
            raise ConfigError("code_expiry_minutes must be positive")
        # A zero cooldown lets two records share created_at, so "newest" stops being well defined.
        if self.cooldown_minutes < 1:
            raise ConfigError("cooldown_minutes must be at least 1")
        if self.max_attempts < 1:
            raise ConfigError("max_attempts must be positive")
        if not self.default_country_code.isdigit() or not 1 <= len(self.default_country_code) <= 3:
            raise ConfigError(f"default_country_code must be 1-3 digits, got {self.default_country_code!r}")
        if self.lock_timeout_seconds <= 0:
            raise ConfigError("lock_timeout_seconds must be positive")

    @classmethod
    def from_settings(cls, source: Settings) -> "VerificationConfig":
        return cls(
            code_length=int(source.VERIFICATION_CODE_LENGTH),
            code_expiry_minutes=int(source.VERIFICATION_CODE_EXPIRY_MINUTES),
            cooldown_minutes=int(source.VERIFICATION_COOLDOWN_MINUTES),
            max_attempts=int(source.VERIFICATION_MAX_ATTEMPTS),
            default_country_code=str(source.VERIFICATION_DEFAULT_COUNTRY_CODE or "").strip().lstrip("+"),
            channel_prefixes=tuple(source.channel_prefixes_list),
            gate_enabled=bool(source.VERIFICATION_GATE_ENABLED),
            expose_codes=bool(source.VERIFICATION_EXPOSE_CODES),
            api_key=str(source.ROTTIE_API_KEY or "").strip(),
            lock_timeout_seconds=float(source.VERIFICATION_LOCK_TIMEOUT_SECONDS),
        )


settings = Settings()
