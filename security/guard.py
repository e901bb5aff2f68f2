"""Request-time session guard.

Re-derives session validity from the session store on every authenticated
request. Returns a tagged GuardResult instead of raising, so callers can
tell "logged in elsewhere" apart from a plain expiry.
"""
import logging
from dataclasses import dataclass

from flask import request

from models import db
from models.user import User
from security import session as session_store
from security.errors import (
    AccountNotApproved,
    AuthError,
    AuthenticationRequired,
    SessionInvalidated,
    SessionNotFound,
    UserNotFound,
)
from security.tokens import decode_access_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    user_id: int
    email: str
    is_admin: bool
    is_approved: bool
    session_id: str

    def to_dict(self) -> dict:
        return {
            "id": self.user_id,
            "email": self.email,
            "is_admin": self.is_admin,
            "is_approved": self.is_approved,
            "session_id": self.session_id,
        }


@dataclass(frozen=True)
class GuardResult:
    context: AuthContext | None = None
    user: User | None = None
    error: AuthError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def extract_token() -> str | None:
    """Bearer token from Authorization, or the raw X-Access-Token header."""
    header = request.headers.get("Authorization") or request.headers.get("X-Access-Token")
    if not header:
        return None
    parts = header.split(" ", 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip() or None
    return header.strip() or None


def authenticate(token: str | None, touch: bool = True) -> GuardResult:
    if not token:
        return GuardResult(error=AuthenticationRequired())

    try:
        claims = decode_access_token(token)
    except AuthError as exc:
        logger.info("Rejected access token: %s", exc.code)
        return GuardResult(error=exc)

    user = db.session.get(User, claims.user_id)
    if user is None:
        logger.warning("Token for unknown user %s", claims.user_id)
        return GuardResult(error=UserNotFound())

    if not user.is_approved and not user.is_admin:
        # approval revoked after the token was issued
        return GuardResult(error=AccountNotApproved())

    check = session_store.validate_session(claims.session_id, user.id, touch=touch)
    if not check.ok:
        if check.reason == session_store.SESSION_INVALIDATED:
            logger.info("Session %s... of user %s was invalidated", claims.session_id[:12], user.id)
            return GuardResult(user=user, error=SessionInvalidated())
        return GuardResult(user=user, error=SessionNotFound())

    return GuardResult(
        context=AuthContext(
            user_id=user.id,
            email=user.email,
            is_admin=bool(user.is_admin),
            is_approved=bool(user.is_approved),
            session_id=claims.session_id,
        ),
        user=user,
    )


def authenticate_request(touch: bool = True) -> GuardResult:
    return authenticate(extract_token(), touch=touch)
