"""
Authentication/authorization dependencies for FastAPI routes.

- Extract JWT from the Authorization header (participants, scripts) or the httpOnly
  admin cookie
- Decode/validate JWT and expose its claims to route handlers
- Enforce the admin role, or a participant credential bound to an event
"""

# -------------------- Standard library imports --------------------
from typing import Any, Dict, Iterable, Optional

# -------------------- Third-party imports --------------------
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

# -------------------- Local application imports --------------------
from typearena.auth.service import decode_token, participant_identity
from typearena.errors import Forbidden, Unauthorized

# Cookie name must match api/auth.py
COOKIE_NAME = "typearena_token"

# `auto_error=False` so cookie auth can be used as a fallback without FastAPI raising
# its own 401 before our logic runs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


async def get_token_from_request(
    request: Request,
    header_token: Optional[str] = Depends(oauth2_scheme),
) -> str:
    """
    Extract JWT token from:
    1. Authorization header (Bearer token)
    2. httpOnly cookie (admin UI)
    """
    if header_token:
        return header_token

    cookie_token = request.cookies.get(COOKIE_NAME)
    if cookie_token:
        return cookie_token

    raise Unauthorized("not_authenticated")


async def get_current_claims(token: str = Depends(get_token_from_request)) -> Dict[str, Any]:
    """Decode the JWT; `Unauthorized` propagates for invalid/expired tokens."""
    return decode_token(token)


def require_role(allowed: Iterable[str]):
    """
    Dependency factory: enforce that the current token has one of the allowed roles.

    Usage:
        @router.get(...)
        async def endpoint(claims=Depends(require_role(["admin"]))):
            ...
    """
    allowed = set(allowed)

    async def checker(claims: Dict[str, Any] = Depends(get_current_claims)) -> Dict[str, Any]:
        if claims.get("role") not in allowed:
            raise Forbidden("forbidden_role")
        return claims

    return checker


require_admin = require_role(["admin"])


async def require_participant(
    claims: Dict[str, Any] = Depends(get_current_claims),
) -> Dict[str, Any]:
    """Return the participant identity bound to the credential."""
    return participant_identity(claims)


async def require_event_participant(
    event_id: int,
    identity: Dict[str, Any] = Depends(require_participant),
) -> Dict[str, Any]:
    """Participant credential that must belong to the `event_id` path parameter."""
    if identity["event_id"] != int(event_id):
        raise Forbidden("forbidden_event")
    return identity
