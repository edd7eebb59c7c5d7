from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from rottie_connect.core.config import Settings
from rottie_connect.services.phone import mask_phone

logger = logging.getLogger("rottie.delivery")

DEFAULT_MESSAGE_TEMPLATE = "Your verification code is: {code}"


class CodeDeliveryError(Exception):
    pass


class CodeSender(Protocol):
    """Delivery capability for issued codes.

    Implementations report transport failures as ``CodeDeliveryError``; raw
    socket errors (``OSError``) are tolerated too. Either one leaves the issued
    code valid.
    """

    provider: str

    def send(self, phone_number: str, code: str) -> dict[str, Any]:
        ...

    def health(self) -> dict[str, Any]:
        ...


def render_message(template: str, *, code: str, expiry_minutes: int) -> str:
    template = str(template or "").strip() or DEFAULT_MESSAGE_TEMPLATE
    try:
        return template.format(code=code, expiry_minutes=expiry_minutes)
    except (KeyError, IndexError, ValueError):
        return DEFAULT_MESSAGE_TEMPLATE.format(code=code)


class LoggingCodeSender:
    """Development sender: writes the code to the log instead of delivering it."""

    provider = "dummy"

    def send(self, phone_number: str, code: str) -> dict[str, Any]:
        logger.warning("[CODE MOCK] phone=%s code=%s", phone_number, code)
        return {
            "provider": "mock",
            "status": "accepted",
            "sent": False,
            "mocked": True,
        }

    def health(self) -> dict[str, Any]:
        return {"provider": self.provider, "status": "ok", "mode": "mock", "can_send": True, "issues": []}


class TwilioWhatsAppSender:
    """Delivers codes as WhatsApp messages through the Twilio Messages API."""

    provider = "twilio"

    def __init__(
        self,
        *,
        account_sid: str,
        auth_token: str,
        messaging_service_sid: str,
        message_template: str,
        expiry_minutes: int,
        base_url: str = "https://api.twilio.com",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.messaging_service_sid = messaging_service_sid
        self.message_template = message_template
        self.expiry_minutes = expiry_minutes
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/2010-04-01/Accounts/{self.account_sid}/Messages.json"

    @staticmethod
    def whatsapp_address(phone_number: str) -> str:
        return f"whatsapp:+{phone_number.lstrip('+')}"

    def _missing_credentials(self) -> list[str]:
        missing = []
        if not self.account_sid:
            missing.append("TWILIO_ACCOUNT_SID")
        if not self.auth_token:
            missing.append("TWILIO_AUTH_TOKEN")
        if not self.messaging_service_sid:
            missing.append("TWILIO_MESSAGING_SERVICE_SID")
        return missing

    def send(self, phone_number: str, code: str) -> dict[str, Any]:
        missing = self._missing_credentials()
        if missing:
            raise CodeDeliveryError(f"Twilio is not configured: {', '.join(missing)}")

        body = render_message(self.message_template, code=code, expiry_minutes=self.expiry_minutes)
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(
                    self.messages_url,
                    auth=(self.account_sid, self.auth_token),
                    data={
                        "MessagingServiceSid": self.messaging_service_sid,
                        "To": self.whatsapp_address(phone_number),
                        "Body": body,
                    },
                )
        except httpx.HTTPError as exc:
            raise CodeDeliveryError(f"Twilio request failed: {exc}") from exc

        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {}
        if response.status_code >= 400:
            detail = data.get("message") or response.text[:200]
            raise CodeDeliveryError(f"Twilio rejected message (status={response.status_code}): {detail}")

        logger.info("Verification code sent to %s sid=%s", mask_phone(phone_number), data.get("sid"))
        return {
            "provider": self.provider,
            "status": str(data.get("status") or "accepted"),
            "sent": True,
            "sid": data.get("sid"),
        }

    def health(self) -> dict[str, Any]:
        missing = self._missing_credentials()
        return {
            "provider": self.provider,
            "status": "ok" if not missing else "degraded",
            "mode": "real",
            "can_send": not missing,
            "issues": [f"{name} is not set" for name in missing],
        }


def build_code_sender(source: Settings) -> CodeSender:
    provider = str(source.DELIVERY_PROVIDER or "dummy").strip().lower()
    if provider in {"", "dummy", "mock", "console"}:
        return LoggingCodeSender()
    if provider in {"twilio", "whatsapp"}:
        return TwilioWhatsAppSender(
            account_sid=str(source.TWILIO_ACCOUNT_SID or "").strip(),
            auth_token=str(source.TWILIO_AUTH_TOKEN or "").strip(),
            messaging_service_sid=str(source.TWILIO_MESSAGING_SERVICE_SID or "").strip(),
            message_template=source.VERIFICATION_MESSAGE_TEMPLATE,
            expiry_minutes=int(source.VERIFICATION_CODE_EXPIRY_MINUTES),
            base_url=source.TWILIO_API_BASE_URL,
            timeout=float(source.TWILIO_TIMEOUT_SECONDS),
        )
    raise ValueError(f"Unknown DELIVERY_PROVIDER: {provider}")
