"""Signed access credential (HS256 JWT) bound to a server-side session."""
from dataclasses import dataclass

import jwt
from flask import current_app

from security.errors import CredentialExpired, CredentialInvalid
from utils import clock


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    session_id: str
    email: str | None
    is_admin: bool
    issued_at: int
    expires_at: int


def _secret() -> str:
    return current_app.config["JWT_SECRET"]


def _algorithm() -> str:
    return current_app.config.get("JWT_ALGORITHM", "HS256")


def issue_access_token(user, session_id: str, ttl_seconds: int | None = None) -> str:
    if ttl_seconds is None:
        ttl_seconds = int(current_app.config.get("ACCESS_TOKEN_TTL_SECONDS", 3600))
    now = clock.timestamp()
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "is_admin": bool(user.is_admin),
        "sid": session_id,
        "iat": now,
        "exp": now + ttl_seconds,
    }
    return jwt.encode(payload, _secret(), algorithm=_algorithm())


def decode_access_token(token: str) -> TokenClaims:
    """Verify signature and expiry. Raises CredentialExpired or CredentialInvalid."""
    if not token:
        raise CredentialInvalid("Access token required")
    try:
        # expiry is checked below against the app clock
        payload = jwt.decode(
            token,
            _secret(),
            algorithms=[_algorithm()],
            options={"require": ["sub", "sid", "exp"], "verify_exp": False, "verify_iat": False},
        )
    except jwt.InvalidTokenError as exc:
        raise CredentialInvalid() from exc

    try:
        expires_at = int(payload["exp"])
        user_id = int(payload["sub"])
    except (TypeError, ValueError) as exc:
        raise CredentialInvalid() from exc

    if clock.timestamp() >= expires_at:
        raise CredentialExpired()

    session_id = payload.get("sid")
    if not isinstance(session_id, str) or not session_id:
        raise CredentialInvalid()

    return TokenClaims(
        user_id=user_id,
        session_id=session_id,
        email=payload.get("email"),
        is_admin=bool(payload.get("is_admin")),
        issued_at=int(payload.get("iat") or 0),
        expires_at=expires_at,
    )
