"""
Security primitives for partner federation.

- Shared-secret validation (constant-time)
- Service credential generation & hashing
- JWT session issuance for federated users
"""

from __future__ import annotations

import hmac
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

import bcrypt
import jwt
from starlette.responses import Response

from docsign_federation.core.config import Settings, get_settings
from docsign_federation.core.errors import InvalidSecret, Unauthorized, Unconfigured

# ---------------------------------------------------------------------------
# Shared secret
# ---------------------------------------------------------------------------

def validate_external_secret(supplied: Optional[str], expected: Optional[str]) -> None:
    """Check a partner-supplied secret against the configured one.

    Raises Unconfigured when no secret is configured and InvalidSecret on mismatch.
    """
    if not expected:
        raise Unconfigured()
    if not hmac.compare_digest((supplied or "").encode(), expected.encode()):
        raise InvalidSecret()


def require_back_channel_secret(supplied: Optional[str], expected: Optional[str]) -> None:
    """Like validate_external_secret, but every failure is a plain 401."""
    try:
        validate_external_secret(supplied, expected)
    except (Unconfigured, InvalidSecret):
        raise Unauthorized()


# ---------------------------------------------------------------------------
# Service credentials (per-team API tokens handed to the partner)
# ---------------------------------------------------------------------------

def generate_api_token() -> str:
    """Generate a raw partner API token: `api_` followed by 24 hex chars."""
    return f"api_{secrets.token_hex(12)}"


def hash_api_token(token: str) -> str:
    """Hash an API token using bcrypt (cost 12)."""
    return bcrypt.hashpw(token.encode(), bcrypt.gensalt(rounds=12)).decode()


def verify_api_token(token: str, hashed: str) -> bool:
    return bcrypt.checkpw(token.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# Session issuance
# ---------------------------------------------------------------------------

def create_jwt(
    user_id: uuid.UUID,
    org_ids: Sequence[str] = (),
    active_org: Optional[str] = None,
    *,
    settings: Settings | None = None,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed session JWT. Returns (token, jti)."""
    settings = settings or get_settings()
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user_id),
        "org_ids": list(org_ids),
        "active_org": active_org,
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_jwt(token: str, settings: Settings | None = None) -> dict:
    """Decode and verify a JWT. Raises jwt.PyJWTError on failure."""
    settings = settings or get_settings()
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def issue_session(
    response: Response,
    user_id: uuid.UUID,
    settings: Settings,
    org_id: Optional[uuid.UUID] = None,
) -> str:
    """Establish an authenticated session for `user_id` on `response`."""
    org_ids = [str(org_id)] if org_id else []
    token, _jti = create_jwt(
        user_id,
        org_ids,
        str(org_id) if org_id else None,
        settings=settings,
    )
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=not settings.debug,  # allow non-HTTPS in dev
        samesite="lax",
        path="/",
        max_age=settings.jwt_expire_minutes * 60,
    )
    return token
