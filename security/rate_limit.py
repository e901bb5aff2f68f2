from datetime import timedelta
from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.rate_limit import RateLimitBucket
from security.device import client_ip
from utils import clock


def check_and_increment(key: str, window_seconds: int, max_requests: int) -> tuple[bool, int]:
    """
    Returns (allowed, retry_after_seconds).
    Simple fixed window per key.
    """
    now = clock.now()

    row = RateLimitBucket.query.filter_by(key=key).first()
    if not row:
        row = RateLimitBucket(key=key, window_start=now, count=0)
        db.session.add(row)
        try:
            db.session.flush()
        except IntegrityError:
            # another request opened this window first
            db.session.rollback()
            row = RateLimitBucket.query.filter_by(key=key).first()

    window_end = row.window_start + timedelta(seconds=window_seconds)

    # Reset window if expired
    if now >= window_end:
        row.window_start = now
        row.count = 0
        window_end = row.window_start + timedelta(seconds=window_seconds)

    row.count += 1
    db.session.commit()

    if row.count > max_requests:
        retry_after = int((window_end - now).total_seconds())
        return False, max(retry_after, 1)

    return True, 0


def check_and_increment_login_rate() -> tuple[bool, int]:
    return check_and_increment(
        f"login:{client_ip()}",
        current_app.config.get("LOGIN_RATE_WINDOW_SECONDS", 900),
        current_app.config.get("LOGIN_RATE_MAX_REQUESTS", 30),
    )


def check_and_increment_ping_rate(session_id: str) -> tuple[bool, int]:
    """One keep-alive ping per interval per session."""
    return check_and_increment(
        f"ping:{session_id}",
        current_app.config.get("SESSION_PING_INTERVAL_SECONDS", 240),
        1,
    )
