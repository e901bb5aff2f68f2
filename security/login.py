"""Login orchestration: decide allow / deny-cooldown / deny-active, then issue.

    START -> CREDENTIALS_CHECKED -> ADMIN_BYPASS | DEVICE_CHECK
          -> ALLOW | DENY_COOLDOWN | DENY_ACTIVE -> ISSUED

A login from the device that owns the current valid session always wins,
even during a cooldown: the cooldown only keeps other devices out.

Ledger and switch bookkeeping are best-effort. If those tables are missing or
the write fails, the error is logged and the login proceeds as if the
bookkeeping were empty. Session creation and token signing are not
best-effort: their failures propagate.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError

from models import db
from security import attempts, session as session_store
from security.attempts import CooldownStatus
from security.credentials import verify_credentials
from security.device import DeviceIdentity, identify_device, is_same_device
from security.errors import CooldownActive, SessionActiveElsewhere
from security.tokens import issue_access_token

logger = logging.getLogger(__name__)


class LoginState(str, Enum):
    START = "START"
    CREDENTIALS_CHECKED = "CREDENTIALS_CHECKED"
    ADMIN_BYPASS = "ADMIN_BYPASS"
    DEVICE_CHECK = "DEVICE_CHECK"
    ALLOW = "ALLOW"
    DENY_COOLDOWN = "DENY_COOLDOWN"
    DENY_ACTIVE = "DENY_ACTIVE"
    ISSUED = "ISSUED"


# why a login was allowed
ALLOW_ADMIN = "admin"
ALLOW_NO_SESSION = "no_active_session"
ALLOW_SAME_DEVICE = "same_device"
ALLOW_STALE = "stale_session"


@dataclass
class LoginResult:
    token: str
    user: object
    session_id: str
    device: DeviceIdentity
    allowed_by: str
    states: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": True,
            "token": self.token,
            "user": self.user.public_profile(),
        }


def best_effort(label: str, fn, *args, default=None):
    try:
        return fn(*args)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.warning("%s failed, continuing without it: %s", label, exc)
        return default


def _owns_session(active, device: DeviceIdentity) -> bool:
    if active.device_fingerprint:
        return is_same_device(active.device_fingerprint, device.fingerprint)
    # sessions written before fingerprints existed
    return active.ip_address == device.ip_address and (active.user_agent or "") == device.user_agent


def _deny_active_elsewhere(user, active, device: DeviceIdentity, states: list):
    states.append(LoginState.DENY_ACTIVE)
    count = best_effort("Recording login denial", attempts.record_denial, user.id)
    decision = best_effort("Applying cooldown", attempts.apply_cooldown_if_threshold, user.id)
    if decision is not None:
        # only a denial that imposes a cooldown counts as a switch
        best_effort(
            "Recording device switch",
            attempts.record_device_switch,
            user.id, active.device_fingerprint, device.fingerprint, active.ip_address, device.ip_address,
        )

    logger.info("Login denied for user %s: session active on another device (attempt %s)",
                user.id, count)
    err = SessionActiveElsewhere(
        attempts_remaining=attempts.attempts_remaining(count or 0),
        cooldown_minutes=decision.minutes if decision else 0,
        attempt_count=count or 0,
        owner_label=active.owner_label,
    )
    err.states = states
    return err


def _decide(user, device: DeviceIdentity, states: list) -> str:
    """Return the allow reason, or raise a policy error."""
    if user.is_admin:
        states.append(LoginState.ADMIN_BYPASS)
        best_effort("Invalidating admin sessions", session_store.invalidate_all_for_user, user.id)
        return ALLOW_ADMIN

    states.append(LoginState.DEVICE_CHECK)
    active = best_effort("Looking up active session", session_store.get_active_session, user.id, True)

    if active is not None and _owns_session(active, device):
        logger.info("Same device detected for user %s - replacing its session", user.id)
        return ALLOW_SAME_DEVICE

    status = best_effort("Checking cooldown", attempts.check_cooldown, user.id,
                          default=CooldownStatus(False, 0, 0))
    if status.in_cooldown:
        states.append(LoginState.DENY_COOLDOWN)
        logger.info("Login denied for user %s: cooldown active for %ss", user.id, status.remaining_seconds)
        err = CooldownActive(status.remaining_seconds, status.attempt_count)
        err.states = states
        raise err

    if active is None:
        return ALLOW_NO_SESSION

    if session_store.is_stale(active):
        logger.info("Session %s... of user %s is stale - allowing takeover", active.id[:12], user.id)
        return ALLOW_STALE

    raise _deny_active_elsewhere(user, active, device, states)


def login(email, password, ip_address, user_agent, client_fingerprint=None) -> LoginResult:
    """Authenticate and issue a session-bound access token.

    Raises MissingCredentials, InvalidCredentials, AccountNotApproved,
    CooldownActive or SessionActiveElsewhere.
    """
    states = [LoginState.START]

    user = verify_credentials(email, password)
    states.append(LoginState.CREDENTIALS_CHECKED)

    device = identify_device(ip_address, user_agent, client_fingerprint)
    allowed_by = _decide(user, device, states)
    states.append(LoginState.ALLOW)

    best_effort("Resetting login attempts", attempts.reset, user.id)

    session_id = session_store.create_session(
        user.id,
        ip_address=device.ip_address,
        user_agent=device.user_agent,
        device_fingerprint=device.fingerprint,
        owner_label=device.owner_label,
    )
    token = issue_access_token(user, session_id)
    states.append(LoginState.ISSUED)

    logger.info("Login allowed for user %s (%s)", user.id, allowed_by)
    return LoginResult(
        token=token,
        user=user,
        session_id=session_id,
        device=device,
        allowed_by=allowed_by,
        states=states,
    )


def logout(user_id: int, session_id: str) -> bool:
    """Invalidate the session and clear the user's attempt ledger."""
    invalidated = session_store.invalidate_session(session_id)
    best_effort("Resetting login attempts", attempts.reset, user_id)
    return invalidated
