import logging
import os
import unicodedata

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from typearena.auth.deps import COOKIE_NAME, get_current_claims
from typearena.auth.service import ACCESS_TOKEN_EXPIRES_MIN, create_access_token, verify_password
from typearena.errors import Unauthorized
from typearena.storage import get_users_with_default_admin

logger = logging.getLogger(__name__)

router = APIRouter()

COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() in ("true", "1", "yes")
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")  # "strict", "lax", or "none"


def _canonical_username(username: str) -> str:
    # NFKC + collapsed whitespace, so pasted usernames still match
    s = unicodedata.normalize("NFKC", username or "")
    s = "".join(ch for ch in s if unicodedata.category(ch) != "Cf")
    return " ".join(s.split())


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str


@router.post("/auth/login", response_model=TokenResponse)
async def login(payload: LoginRequest, response: Response) -> TokenResponse:
    users = get_users_with_default_admin()
    canonical = _canonical_username(payload.username)
    user = users.get(payload.username) or users.get(canonical)
    if user is None:
        for key, value in users.items():
            if _canonical_username(key).casefold() == canonical.casefold():
                user = value
                break

    if not user or not user.get("is_active", True):
        logger.warning("Login failed for %s: user not found or inactive", payload.username)
        raise Unauthorized("invalid_credentials")
    if not verify_password(payload.password, user.get("password_hash") or ""):
        logger.warning("Login failed for %s: invalid password", payload.username)
        raise Unauthorized("invalid_credentials")

    role = user.get("role") or "admin"
    token = create_access_token(username=user.get("username") or canonical, role=role)

    # httpOnly cookie for the admin UI; the body token serves scripts and tests
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite=COOKIE_SAMESITE,
        max_age=ACCESS_TOKEN_EXPIRES_MIN * 60,
        path="/",
    )
    logger.info("Admin %s logged in", user.get("username"))
    return TokenResponse(access_token=token, role=role)


@router.post("/auth/logout")
async def logout(response: Response):
    """Clear the auth cookie."""
    response.delete_cookie(
        key=COOKIE_NAME,
        path="/",
        httponly=True,
        secure=COOKIE_SECURE,
        samesite=COOKIE_SAMESITE,
    )
    return {"status": "logged_out"}


@router.get("/auth/me")
async def me(claims=Depends(get_current_claims)):
    if claims.get("role") == "participant":
        return {
            "role": "participant",
            "name": claims.get("name"),
            "class": claims.get("class"),
            "eventId": claims.get("eventId"),
        }
    return {"username": claims.get("sub"), "role": claims.get("role")}
