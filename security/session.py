"""Session store: the single authoritative session per user.

At most one row per user has ``valid=True``. ``create_session`` is the only
operation that needs a transaction; everything else is an idempotent or
monotonic single statement.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app
from sqlalchemy import case, func

from models import db
from models.session import Session
from models.user import User
from utils import clock

logger = logging.getLogger(__name__)

SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
SESSION_INVALIDATED = "SESSION_INVALIDATED"


@dataclass(frozen=True)
class SessionCheck:
    """Tagged result of validate_session: ok, or a failure reason."""

    ok: bool
    reason: str | None = None
    session: Session | None = None


def _short(session_id: str) -> str:
    return (session_id or "")[:12] + "..."


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def create_session(user_id: int, ip_address=None, user_agent=None,
                   device_fingerprint=None, owner_label=None) -> str:
    """Invalidate every valid session of the user and insert a new one, atomically."""
    now = clock.now()
    session_id = new_session_id()
    try:
        # serialize concurrent logins of the same user on the user row
        db.session.query(User.id).filter(User.id == user_id).with_for_update().first()

        invalidated = (
            Session.query
            .filter(Session.user_id == user_id, Session.valid.is_(True))
            .update({Session.valid: False}, synchronize_session=False)
        )
        db.session.add(Session(
            id=session_id,
            user_id=user_id,
            valid=True,
            created_at=now,
            last_activity=now,
            ip_address=ip_address[:64] if ip_address else None,
            user_agent=user_agent[:255] if user_agent else None,
            device_fingerprint=device_fingerprint,
            owner_label=owner_label,
        ))
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Failed to create session for user %s", user_id)
        raise

    logger.info("Created session %s for user %s (%s previous invalidated)",
                _short(session_id), user_id, invalidated)
    return session_id


def get_session(session_id: str):
    if not session_id:
        return None
    return db.session.get(Session, session_id)


def _stale_cutoff(stale_hours=None):
    if stale_hours is None:
        stale_hours = int(current_app.config.get("SESSION_STALE_HOURS", 24))
    return clock.now() - timedelta(hours=stale_hours)


def is_stale(session: Session, stale_hours=None) -> bool:
    last = session.last_activity or session.created_at
    return last < _stale_cutoff(stale_hours)


def get_active_session(user_id: int, include_stale: bool = False):
    """The user's current valid session, or None.

    Stale sessions (idle past SESSION_STALE_HOURS) are not "active" unless
    include_stale is set.
    """
    row = (
        Session.query
        .filter(Session.user_id == user_id, Session.valid.is_(True))
        .order_by(Session.created_at.desc())
        .first()
    )
    if row is None:
        return None
    if not include_stale and is_stale(row):
        return None
    return row


def list_user_sessions(user_id: int):
    return (
        Session.query
        .filter_by(user_id=user_id)
        .order_by(Session.created_at.desc())
        .all()
    )


def validate_session(session_id: str, user_id: int, touch: bool = True) -> SessionCheck:
    row = None
    if session_id:
        row = Session.query.filter_by(id=session_id, user_id=user_id).first()
    if row is None:
        return SessionCheck(False, SESSION_NOT_FOUND)

    if not row.valid:
        # superseded by a login elsewhere, logout, or admin action
        return SessionCheck(False, SESSION_INVALIDATED, row)

    if touch:
        row.last_activity = clock.now()
        db.session.commit()
    return SessionCheck(True, None, row)


def invalidate_session(session_id: str) -> bool:
    """Mark one session invalid. Idempotent; True if a valid row was changed."""
    count = (
        Session.query
        .filter(Session.id == session_id, Session.valid.is_(True))
        .update({Session.valid: False}, synchronize_session=False)
    )
    db.session.commit()
    if count:
        logger.info("Invalidated session %s", _short(session_id))
    return bool(count)


def invalidate_all_for_user(user_id: int, except_session_id: str | None = None) -> int:
    q = Session.query.filter(Session.user_id == user_id, Session.valid.is_(True))
    if except_session_id:
        q = q.filter(Session.id != except_session_id)
    count = q.update({Session.valid: False}, synchronize_session=False)
    db.session.commit()
    logger.info("Invalidated %s session(s) for user %s", count, user_id)
    return count


def invalidate_all() -> int:
    count = (
        Session.query
        .filter(Session.valid.is_(True))
        .update({Session.valid: False}, synchronize_session=False)
    )
    db.session.commit()
    return count


def touch_activity(session_id: str) -> bool:
    """Update last_activity of a valid session. False if missing or invalid."""
    count = (
        Session.query
        .filter(Session.id == session_id, Session.valid.is_(True))
        .update({Session.last_activity: clock.now()}, synchronize_session=False)
    )
    db.session.commit()
    return bool(count)


def cleanup_stale(inactive_minutes: int | None = None) -> int:
    """Invalidate valid sessions with no activity for longer than inactive_minutes."""
    if inactive_minutes is None:
        inactive_minutes = int(current_app.config.get("STALE_CLEANUP_MINUTES", 30))
    cutoff = clock.now() - timedelta(minutes=inactive_minutes)
    last_seen = func.coalesce(Session.last_activity, Session.created_at)
    count = (
        Session.query
        .filter(Session.valid.is_(True), last_seen < cutoff)
        .update({Session.valid: False}, synchronize_session=False)
    )
    db.session.commit()
    if count:
        logger.info("Cleaned up %s stale session(s)", count)
    return count


def cleanup_old_sessions(days: int | None = None) -> int:
    """Hard-delete invalid sessions created more than `days` ago."""
    if days is None:
        days = int(current_app.config.get("SESSION_RETENTION_DAYS", 30))
    cutoff = clock.now() - timedelta(days=days)
    count = (
        Session.query
        .filter(Session.valid.is_(False), Session.created_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.session.commit()
    if count:
        logger.info("Deleted %s old session(s)", count)
    return count


def get_session_stats() -> dict:
    valid_user = case((Session.valid.is_(True), Session.user_id))
    total, active, users, active_users = db.session.query(
        func.count(Session.id),
        func.coalesce(func.sum(case((Session.valid.is_(True), 1), else_=0)), 0),
        func.count(func.distinct(Session.user_id)),
        func.count(func.distinct(valid_user)),
    ).one()
    return {
        "total_sessions": int(total or 0),
        "active_sessions": int(active or 0),
        "total_users": int(users or 0),
        "users_with_active_sessions": int(active_users or 0),
    }
