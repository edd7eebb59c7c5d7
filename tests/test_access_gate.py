from unittest.mock import patch

from tests.base import PHONE, VerificationTestBase

from rottie_connect.core.config import VerificationConfig
from rottie_connect.core.errors import ErrorCode, VerificationError
from rottie_connect.models.common import as_utc
from rottie_connect.services.access_gate import AccessGate, is_exempt_path
from rottie_connect.services.verification_store import SqlVerificationStore


class AccessGateTests(VerificationTestBase):
    def setUp(self):
        super().setUp()
        self.gate = AccessGate(self.config, SqlVerificationStore(self.db), clock=self.clock)

    def _issue(self, code: str = "482193", verify: bool = True) -> None:
        service = self.make_service()
        with patch("rottie_connect.services.verification.generate_code", return_value=code):
            service.create_verification(PHONE)
        if verify:
            service.verify_code(PHONE, code)

    def assertDenied(self, code: ErrorCode, phone, claimed_code) -> None:
        with self.assertRaises(VerificationError) as ctx:
            self.gate.check(phone, claimed_code)
        self.assertEqual(ctx.exception.code, code)

    def test_missing_credentials_require_verification(self):
        self.assertDenied(ErrorCode.VERIFICATION_REQUIRED, None, "482193")
        self.assertDenied(ErrorCode.VERIFICATION_REQUIRED, PHONE, "")
        self.assertDenied(ErrorCode.VERIFICATION_REQUIRED, "  ", None)

    def test_malformed_phone_is_rejected(self):
        self.assertDenied(ErrorCode.INVALID_PHONE_FORMAT, "12-34", "482193")

    def test_unverified_record_does_not_open_the_gate(self):
        self._issue(verify=False)
        self.assertDenied(ErrorCode.INVALID_VERIFICATION, PHONE, "482193")

    def test_verified_record_allows_with_canonical_phone(self):
        self._issue()
        self.assertEqual(self.gate.check(PHONE, "482193"), PHONE)
        self.assertEqual(self.gate.check("whatsapp:+52 1 55 1234 5678", "482193"), PHONE)

    def test_wrong_or_malformed_code_is_denied(self):
        self._issue()
        self.assertDenied(ErrorCode.INVALID_VERIFICATION, PHONE, "000000")
        self.assertDenied(ErrorCode.INVALID_VERIFICATION, PHONE, "48219")
        self.assertEqual(self.records()[0].attempts, 0)

    def test_verified_code_is_reusable_until_expiry(self):
        self._issue()
        self.assertEqual(self.gate.check(PHONE, "482193"), PHONE)
        self.clock.advance(minutes=4, seconds=59)
        self.assertEqual(self.gate.check(PHONE, "482193"), PHONE)

        self.clock.advance(seconds=2)
        self.assertDenied(ErrorCode.INVALID_VERIFICATION, PHONE, "482193")

    def test_gate_checks_never_mutate_the_record(self):
        self._issue()
        (before,) = self.records()

        for _ in range(100):
            self.gate.check(PHONE, "482193")

        (after,) = self.records()
        self.assertEqual(after.attempts, before.attempts)
        self.assertEqual(as_utc(after.expires_at), as_utc(before.expires_at))
        self.assertEqual(after.last_attempt_at, before.last_attempt_at)
        self.assertTrue(after.verified)

    def test_api_key_is_enforced_only_when_configured(self):
        self.gate.check_api_key(None)

        gate = AccessGate(VerificationConfig(api_key="secret"), SqlVerificationStore(self.db), clock=self.clock)
        gate.check_api_key("secret")
        for provided in [None, "", "wrong"]:
            with self.subTest(provided=provided):
                with self.assertRaises(VerificationError) as ctx:
                    gate.check_api_key(provided)
                self.assertEqual(ctx.exception.code, ErrorCode.INVALID_API_KEY)

    def test_exempt_paths(self):
        for path in ["/", "/health", "/api/status", "/api/verify/send", "/api/verify/check", "/api/test-verification"]:
            with self.subTest(path=path):
                self.assertTrue(is_exempt_path(path))
        for path in ["/api/session", "/api/messages", "/api/verify"]:
            with self.subTest(path=path):
                self.assertFalse(is_exempt_path(path))
