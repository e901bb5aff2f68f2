"""Attempt/cooldown ledger for logins denied by a session on another device.

One LoginAttempt row per user. The row is deleted on successful login,
logout and admin override; ``cooldown_until`` in the future blocks new
devices until it passes.

A DeviceSwitchEvent marks a breach: a denial that imposed a cooldown. Plain
denials below the threshold only bump attempt_count.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.device_switch import DeviceSwitchEvent, LoginBan
from models.login_attempt import LoginAttempt
from security import cooldown
from security.errors import minutes_ceil
from utils import clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CooldownStatus:
    in_cooldown: bool
    remaining_seconds: int
    attempt_count: int

    @property
    def remaining_minutes(self) -> int:
        return minutes_ceil(self.remaining_seconds)


def _threshold() -> int:
    return int(current_app.config.get("COOLDOWN_THRESHOLD", 5))


def attempts_remaining(attempt_count: int) -> int:
    return max(_threshold() - attempt_count, 0)


def get_record(user_id: int):
    return LoginAttempt.query.filter_by(user_id=user_id).first()


def check_cooldown(user_id: int) -> CooldownStatus:
    row = get_record(user_id)
    if not row:
        return CooldownStatus(False, 0, 0)

    now = clock.now()
    if not row.cooldown_until or row.cooldown_until <= now:
        return CooldownStatus(False, 0, row.attempt_count)

    seconds = int((row.cooldown_until - now).total_seconds())
    return CooldownStatus(True, max(seconds, 1), row.attempt_count)


def record_denial(user_id: int) -> int:
    """Count one denied attempt. Returns the new attempt count."""
    now = clock.now()
    row = get_record(user_id)
    if not row:
        try:
            row = LoginAttempt(user_id=user_id, attempt_count=1, last_attempt_at=now)
            db.session.add(row)
            db.session.commit()
            logger.info("Created login attempt record for user %s (count: 1)", user_id)
            return 1
        except IntegrityError:
            # a concurrent denial created the row first
            db.session.rollback()
            row = get_record(user_id)

    # increment in SQL so concurrent denials do not overwrite each other
    row.attempt_count = LoginAttempt.attempt_count + 1
    row.last_attempt_at = now
    db.session.commit()
    logger.info("Login attempt count for user %s is now %s", user_id, row.attempt_count)
    return row.attempt_count


def record_device_switch(user_id: int, from_fingerprint, to_fingerprint, from_ip=None, to_ip=None):
    event = DeviceSwitchEvent(
        user_id=user_id,
        from_fingerprint=from_fingerprint,
        to_fingerprint=to_fingerprint,
        from_ip=from_ip,
        to_ip=to_ip,
        switched_at=clock.now(),
    )
    db.session.add(event)
    db.session.commit()
    return event


def switch_count(user_id: int, window_hours: int | None = None) -> int:
    if window_hours is None:
        window_hours = int(current_app.config.get("SWITCH_WINDOW_HOURS", 24))
    since = clock.now() - timedelta(hours=window_hours)
    return (
        DeviceSwitchEvent.query
        .filter(DeviceSwitchEvent.user_id == user_id, DeviceSwitchEvent.switched_at > since)
        .count()
    )


def _levels_decision(user_id: int, now):
    # counts the switch being penalized now; the caller records it afterwards
    switches = switch_count(user_id) + 1
    level = cooldown.cooldown_level(switches)
    decision = cooldown.decide(now, cooldown.level_minutes(level), level=level, switch_count=switches)

    # one ban row per user, superseded on each computation
    LoginBan.query.filter_by(user_id=user_id).delete()
    db.session.add(LoginBan(
        user_id=user_id,
        banned_until=decision.cooldown_until,
        reason="Device switch cooldown",
        cooldown_level=level,
        switch_count=switches,
        created_at=now,
    ))
    return decision


def apply_cooldown_if_threshold(user_id: int):
    """Set cooldown_until once attempt_count reaches the threshold.

    Returns the CooldownDecision, or None when the count is still below the
    threshold (the attempt is only counted).
    """
    row = get_record(user_id)
    if not row or row.attempt_count < _threshold():
        return None

    cfg = current_app.config
    policy = cfg.get("COOLDOWN_POLICY", cooldown.POLICY_EXPONENTIAL)
    now = clock.now()

    if policy == cooldown.POLICY_LEVELS:
        decision = _levels_decision(user_id, now)
    elif policy == cooldown.POLICY_EXPONENTIAL:
        minutes = cooldown.exponential_minutes(
            row.attempt_count,
            threshold=_threshold(),
            base_minutes=int(cfg.get("COOLDOWN_BASE_MINUTES", 15)),
            max_minutes=int(cfg.get("COOLDOWN_MAX_MINUTES", 240)),
        )
        decision = cooldown.decide(now, minutes)
    else:
        raise ValueError(f"Unknown COOLDOWN_POLICY: {policy!r}")

    row.cooldown_until = decision.cooldown_until
    db.session.commit()
    logger.warning(
        "Applied %s minute cooldown for user %s until %s",
        decision.minutes, user_id, decision.cooldown_until.isoformat(),
    )
    return decision


def reset(user_id: int) -> bool:
    """Clear the ledger (and any ban) for a user. Returns True if anything was removed."""
    deleted = LoginAttempt.query.filter_by(user_id=user_id).delete()
    deleted += LoginBan.query.filter_by(user_id=user_id).delete()
    db.session.commit()
    if deleted:
        logger.info("Reset login attempts for user %s", user_id)
    return bool(deleted)


def get_ban(user_id: int):
    return LoginBan.query.filter(LoginBan.user_id == user_id, LoginBan.banned_until > clock.now()).first()


def device_switch_history(user_id: int, limit: int = 10):
    return (
        DeviceSwitchEvent.query
        .filter_by(user_id=user_id)
        .order_by(DeviceSwitchEvent.switched_at.desc(), DeviceSwitchEvent.id.desc())
        .limit(limit)
        .all()
    )


def clear_device_switch_history(user_id: int) -> int:
    count = DeviceSwitchEvent.query.filter_by(user_id=user_id).delete()
    db.session.commit()
    return count


def cleanup_old(max_age_days: int | None = None) -> int:
    if max_age_days is None:
        max_age_days = int(current_app.config.get("ATTEMPT_RETENTION_DAYS", 30))
    cutoff = clock.now() - timedelta(days=max_age_days)
    count = LoginAttempt.query.filter(LoginAttempt.last_attempt_at < cutoff).delete()
    db.session.commit()
    if count:
        logger.info("Cleaned up %s old login attempt record(s)", count)
    return count


def cleanup_old_switches(window_hours: int | None = None) -> int:
    if window_hours is None:
        window_hours = int(current_app.config.get("SWITCH_WINDOW_HOURS", 24))
    cutoff = clock.now() - timedelta(hours=window_hours)
    count = DeviceSwitchEvent.query.filter(DeviceSwitchEvent.switched_at < cutoff).delete()
    db.session.commit()
    return count


def cleanup_expired_bans() -> int:
    count = LoginBan.query.filter(LoginBan.banned_until < clock.now()).delete()
    db.session.commit()
    return count
