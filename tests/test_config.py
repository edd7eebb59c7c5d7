import os
import unittest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

from rottie_connect.core.config import ConfigError, Settings, VerificationConfig


class VerificationConfigTests(unittest.TestCase):
    def test_defaults(self):
        config = VerificationConfig()
        self.assertEqual(
            (config.code_length, config.code_expiry_minutes, config.cooldown_minutes, config.max_attempts),
            (6, 5, 1, 3),
        )

    def test_built_from_settings(self):
        source = Settings(
            DATABASE_URL="sqlite+pysqlite:///:memory:",
            REDIS_URL="redis://localhost:6379/0",
            VERIFICATION_COOLDOWN_MINUTES=15,
            VERIFICATION_DEFAULT_COUNTRY_CODE="+1",
            VERIFICATION_CHANNEL_PREFIXES="WhatsApp:, sms:",
            ROTTIE_API_KEY=" key ",
        )
        config = VerificationConfig.from_settings(source)
        self.assertEqual(config.cooldown_minutes, 15)
        self.assertEqual(config.default_country_code, "1")
        self.assertEqual(config.channel_prefixes, ("whatsapp:", "sms:"))
        self.assertEqual(config.api_key, "key")

    def test_invalid_values_fail_at_startup(self):
        for kwargs in [
            {"code_length": 2},
            {"code_expiry_minutes": 0},
            {"cooldown_minutes": -1},
            {"cooldown_minutes": 0},
            {"max_attempts": 0},
            {"default_country_code": "5a"},
            {"lock_timeout_seconds": 0},
        ]:
            with self.subTest(kwargs=kwargs):
                with self.assertRaises(ConfigError):
                    VerificationConfig(**kwargs)
