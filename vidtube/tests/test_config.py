import unittest

from pydantic import ValidationError

from vidtube.config import (
    DEV_ACCESS_TOKEN_SECRET,
    DEV_REFRESH_TOKEN_SECRET,
    MIN_SECRET_BYTES,
    Settings,
)


class SettingsTests(unittest.TestCase):
    def test_database_requires_signing_secrets(self):
        with self.assertRaises(ValidationError):
            Settings(
                database_url="sqlite+pysqlite:///:memory:",
                use_in_memory_backends=False,
                access_token_secret=DEV_ACCESS_TOKEN_SECRET,
                refresh_token_secret=DEV_REFRESH_TOKEN_SECRET,
            )

    def test_database_rejects_short_signing_secrets(self):
        for secret in ("", "short"):
            with self.assertRaises(ValidationError):
                Settings(
                    database_url="sqlite+pysqlite:///:memory:",
                    use_in_memory_backends=False,
                    access_token_secret=secret,
                    refresh_token_secret="r" * 40,
                )

    def test_database_with_signing_secrets(self):
        settings = Settings(
            database_url="sqlite+pysqlite:///:memory:",
            use_in_memory_backends=False,
            access_token_secret="a" * 40,
            refresh_token_secret="r" * 40,
        )
        self.assertEqual(settings.access_token_secret, "a" * 40)

    def test_in_memory_backends_allow_dev_secrets(self):
        settings = Settings(
            database_url="sqlite+pysqlite:///:memory:",
            use_in_memory_backends=True,
            access_token_secret=DEV_ACCESS_TOKEN_SECRET,
            refresh_token_secret=DEV_REFRESH_TOKEN_SECRET,
        )
        self.assertTrue(settings.use_in_memory_backends)

    def test_dev_secrets_meet_hmac_key_length(self):
        self.assertGreaterEqual(len(DEV_ACCESS_TOKEN_SECRET.encode()), MIN_SECRET_BYTES)
        self.assertGreaterEqual(len(DEV_REFRESH_TOKEN_SECRET.encode()), MIN_SECRET_BYTES)


if __name__ == "__main__":
    unittest.main()
