"""
Auth primitives used across the API (password hashing + JWT encode/decode).

Two kinds of tokens are signed with the same secret:
- admin access tokens (`create_access_token`), issued by `/api/auth/login`
- participant session credentials (`create_session_credential`), issued when an
  invite code is redeemed; short-lived and bound to one event

Claims:
- `sub`: admin username, or the invite code id (as a string) for participants
- `role`: "admin" | "participant"
- `name`, `class`, `eventId`: participant identity (participant tokens only)
- `exp`: expiry timestamp (UTC)
"""

# -------------------- Standard library imports --------------------
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

# -------------------- Third-party imports --------------------
import jwt
from passlib.hash import pbkdf2_sha256

# -------------------- Local application imports --------------------
from typearena.errors import Unauthorized

# Secret and TTLs are configurable via env; dev defaults are provided for local runs/tests.
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRES_MIN = int(os.getenv("ACCESS_TOKEN_EXPIRES_MIN", "60"))
SESSION_TOKEN_EXPIRES_MIN = int(os.getenv("SESSION_TOKEN_EXPIRES_MIN", "120"))

PARTICIPANT_ROLE = "participant"


def hash_password(raw_password: str) -> str:
    """Hash a raw password for storage."""
    return pbkdf2_sha256.hash(raw_password)


def verify_password(raw_password: str, password_hash: str) -> bool:
    """Verify a raw password against the stored hash."""
    try:
        return pbkdf2_sha256.verify(raw_password, password_hash)
    except ValueError:
        # Malformed/empty stored hash.
        return False


def _encode(payload: Dict[str, Any], expires_minutes: int) -> str:
    payload = dict(payload)
    payload["exp"] = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def create_access_token(
    *,
    username: str,
    role: str = "admin",
    expires_minutes: int | None = None,
) -> str:
    """Create a signed admin JWT access token."""
    return _encode(
        {"sub": username, "role": role},
        expires_minutes if expires_minutes is not None else ACCESS_TOKEN_EXPIRES_MIN,
    )


def create_session_credential(
    *,
    invite_code_id: int,
    name: str,
    class_name: str,
    event_id: int,
    expires_minutes: int | None = None,
) -> str:
    """
    Mint the participant bearer credential returned on code redemption.

    `expires_minutes` overrides the default TTL (negative values are used by tests to
    mint already-expired credentials).
    """
    return _encode(
        {
            "sub": str(invite_code_id),
            "role": PARTICIPANT_ROLE,
            "name": name,
            "class": class_name,
            "eventId": int(event_id),
        },
        expires_minutes if expires_minutes is not None else SESSION_TOKEN_EXPIRES_MIN,
    )


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode/validate a JWT and return claims.

    Raises:
    - Unauthorized("token_expired"): signature is valid but token is past `exp`
    - Unauthorized("invalid_token"): signature/format is invalid
    """
    try:
        return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("token_expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("invalid_token")


def participant_identity(claims: Dict[str, Any]) -> Dict[str, Any]:
    """Extract the participant identity from decoded claims (raises if not a participant token)."""
    if claims.get("role") != PARTICIPANT_ROLE:
        raise Unauthorized("participant_token_required")
    try:
        return {
            "invite_code_id": int(claims["sub"]),
            "name": str(claims.get("name") or ""),
            "class_name": str(claims.get("class") or ""),
            "event_id": int(claims["eventId"]),
        }
    except (KeyError, TypeError, ValueError):
        raise Unauthorized("invalid_token")
