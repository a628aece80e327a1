"""
Test suite for typearena.auth.service JWT authentication
Run: pytest tests/test_auth.py -v
"""

import importlib
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import jwt

from typearena.errors import Unauthorized


def load_service(env: dict | None = None):
    """Reload auth.service with optional env overrides so constants pick up new values."""
    import typearena.auth.service as svc

    if env is None:
        importlib.reload(svc)
        return svc
    with patch.dict("os.environ", env, clear=False):
        importlib.reload(svc)
    return svc


def _minutes_left(token: str) -> float:
    decoded = jwt.decode(token, options={"verify_signature": False})
    return (decoded["exp"] - datetime.now(timezone.utc).timestamp()) / 60


class AccessTokenTest(unittest.TestCase):
    def tearDown(self):
        load_service()

    def test_create_access_token_claims(self):
        service = load_service()
        token = service.create_access_token(username="admin", role="admin", expires_minutes=30)

        decoded = jwt.decode(token, options={"verify_signature": False})
        self.assertEqual(decoded["sub"], "admin")
        self.assertEqual(decoded["role"], "admin")
        self.assertGreater(_minutes_left(token), 25)
        self.assertLess(_minutes_left(token), 35)

    def test_default_expiry_from_env(self):
        service = load_service({"ACCESS_TOKEN_EXPIRES_MIN": "45"})
        token = service.create_access_token(username="user")
        self.assertGreater(_minutes_left(token), 40)
        self.assertLess(_minutes_left(token), 50)


class SessionCredentialTest(unittest.TestCase):
    def tearDown(self):
        load_service()

    def test_participant_claims(self):
        service = load_service()
        token = service.create_session_credential(
            invite_code_id=7, name="Ana", class_name="9A", event_id=3
        )
        identity = service.participant_identity(service.decode_token(token))
        self.assertEqual(
            identity, {"invite_code_id": 7, "name": "Ana", "class_name": "9A", "event_id": 3}
        )

    def test_default_ttl_is_short(self):
        service = load_service({"SESSION_TOKEN_EXPIRES_MIN": "120"})
        token = service.create_session_credential(
            invite_code_id=1, name="Ana", class_name="9A", event_id=1
        )
        self.assertGreater(_minutes_left(token), 115)
        self.assertLess(_minutes_left(token), 125)

    def test_admin_token_is_not_a_participant(self):
        service = load_service()
        claims = service.decode_token(service.create_access_token(username="admin"))
        with self.assertRaises(Unauthorized) as context:
            service.participant_identity(claims)
        self.assertEqual(context.exception.detail, "participant_token_required")


class DecodeTokenTest(unittest.TestCase):
    def tearDown(self):
        load_service()

    def test_decode_token_expired(self):
        service = load_service()
        token = service.create_session_credential(
            invite_code_id=1, name="Ana", class_name="9A", event_id=1, expires_minutes=-1
        )
        with self.assertRaises(Unauthorized) as context:
            service.decode_token(token)
        self.assertEqual(context.exception.status_code, 401)
        self.assertEqual(context.exception.detail, "token_expired")

    def test_decode_token_invalid_signature(self):
        service = load_service({"JWT_SECRET": "real-secret"})
        payload = {
            "sub": "1",
            "role": "participant",
            "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
        }
        forged = jwt.encode(payload, "wrong-secret", algorithm="HS256")
        with self.assertRaises(Unauthorized) as context:
            service.decode_token(forged)
        self.assertEqual(context.exception.detail, "invalid_token")

    def test_secret_key_from_environment(self):
        service = load_service({"JWT_SECRET": "test_secret_key_123"})
        token = service.create_access_token(username="envuser")
        decoded = jwt.decode(token, "test_secret_key_123", algorithms=["HS256"])
        self.assertEqual(decoded["sub"], "envuser")


class PasswordHashTest(unittest.TestCase):
    def test_hash_and_verify(self):
        service = load_service()
        hashed = service.hash_password("s3cret")
        self.assertTrue(service.verify_password("s3cret", hashed))
        self.assertFalse(service.verify_password("wrong", hashed))

    def test_malformed_hash(self):
        service = load_service()
        self.assertFalse(service.verify_password("s3cret", ""))


if __name__ == "__main__":
    unittest.main()
