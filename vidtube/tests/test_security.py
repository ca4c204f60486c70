import unittest

from vidtube.config import Settings
from vidtube.db import UserRecord
from vidtube.security import (
    TokenError,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    hash_password,
    password_too_long,
    verify_password,
)

ACCESS_SECRET = "test-access-secret-0123456789abcdef"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"


def _user():
    return UserRecord(
        user_id="u1",
        username="alice",
        email="alice@example.com",
        full_name="Alice",
        avatar="a",
        password_hash="",
    )


class PasswordTests(unittest.TestCase):
    def test_hash_and_verify(self):
        hashed = hash_password("hunter2")
        self.assertNotEqual(hashed, "hunter2")
        self.assertTrue(verify_password("hunter2", hashed))
        self.assertFalse(verify_password("hunter3", hashed))

    def test_verify_rejects_non_bcrypt_hash(self):
        self.assertFalse(verify_password("hunter2", "plain-text"))
        self.assertFalse(verify_password("", hash_password("x")))

    def test_password_length_limit(self):
        self.assertFalse(password_too_long("a" * 72))
        self.assertTrue(password_too_long("a" * 73))


class TokenTests(unittest.TestCase):
    def setUp(self):
        self.settings = Settings(
            access_token_secret=ACCESS_SECRET, refresh_token_secret=REFRESH_SECRET
        )

    def test_access_token_claims(self):
        claims = decode_access_token(create_access_token(_user(), self.settings), self.settings)
        self.assertEqual(claims["_id"], "u1")
        self.assertEqual(claims["username"], "alice")
        self.assertEqual(claims["fullName"], "Alice")

    def test_tokens_are_unique(self):
        first = create_refresh_token(_user(), self.settings)
        second = create_refresh_token(_user(), self.settings)
        self.assertNotEqual(first, second)

    def test_secrets_are_not_interchangeable(self):
        refresh_token = create_refresh_token(_user(), self.settings)
        self.assertEqual(decode_refresh_token(refresh_token, self.settings)["_id"], "u1")
        with self.assertRaises(TokenError):
            decode_access_token(refresh_token, self.settings)

    def test_expired_token(self):
        expired = Settings(
            access_token_secret=ACCESS_SECRET,
            refresh_token_secret=REFRESH_SECRET,
            refresh_token_expiry_minutes=-1,
        )
        token = create_refresh_token(_user(), expired)
        with self.assertRaises(TokenError):
            decode_refresh_token(token, expired)


if __name__ == "__main__":
    unittest.main()
