"""
auth/tokens.py -- JWT issuance/verification and the session cookie.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the user id (sub), email, role, issue time, and expiry. Verification
       raises InvalidTokenError on any failure -- bad signature, malformed
       structure, expiry, or missing claims all look the same to the caller.

  Revocation: none. Expiry is the only way a token stops working. Signout
       clears the cookie on the client; a copied token stays valid until exp.

  Cookie: the JWT travels in an httpOnly cookie named "token" with
       SameSite=Strict. Secure is set in production only so local HTTP
       development keeps working.

  SECRET_KEY: sourced from core.config.get_settings(). The Settings class
       validates the key at startup [M6][M7].

Layer rule: no imports from api/ or admission/. Import from core/ is allowed.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import InvalidTokenError
from auth.models import ROLES
from core.config import get_settings

_ALGORITHM = "HS256"

COOKIE_NAME = "token"


def _expiry_seconds(expire_seconds: int) -> int:
    return expire_seconds if expire_seconds > 0 else get_settings().token_expire_seconds


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(
    user_id: int,
    email: str,
    role: str,
    expire_seconds: int = 0,
    now: datetime | None = None,
) -> str:
    """Encode a signed JWT with user identity and expiry.

    Args:
        user_id:        Numeric user ID, stored as the string "sub" claim.
        email:          Normalized email address.
        role:           "user" or "admin".
        expire_seconds: Token lifetime. If 0 (default), uses
                        Settings.token_expire_seconds.
        now:            Issue time. Defaults to the current UTC time; tests
                        pass a past value to mint already-expired tokens.
    """
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=_expiry_seconds(expire_seconds)),
    }
    return jwt.encode(payload, get_settings().secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify a JWT and return its claims with an integer "user_id" added.

    Raises InvalidTokenError for every failure mode. There is no partial
    trust: a token whose signature checks out but whose claims are incomplete
    is rejected too.
    """
    try:
        payload = jwt.decode(token, get_settings().secret_key, algorithms=[_ALGORITHM])
    except JWTError as exc:
        raise InvalidTokenError() from exc

    try:
        payload["user_id"] = int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidTokenError() from exc
    if payload.get("role") not in ROLES or not payload.get("email"):
        raise InvalidTokenError()
    return payload


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the JWT as the httpOnly session cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="strict": never sent on cross-site requests (CSRF mitigation).
    secure: only sent over HTTPS in production.
    max_age: matches the JWT expiry so both expire together.
    """
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="strict",
        secure=get_settings().secure_cookies,
        max_age=_expiry_seconds(expire_seconds),
    )


def clear_auth_cookie(response) -> None:
    """Expire the session cookie. Safe to call when no cookie was ever set."""
    response.delete_cookie(
        COOKIE_NAME,
        httponly=True,
        samesite="strict",
        secure=get_settings().secure_cookies,
    )
