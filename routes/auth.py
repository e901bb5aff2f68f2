from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.user import User
from security import attempts, login as login_service, session as session_store
from security.credentials import normalize_email
from security.device import client_fingerprint, client_ip, client_user_agent
from security.errors import AuthError, RateLimited, SessionInvalidated
from security.password import hash_password
from security.rate_limit import check_and_increment_login_rate, check_and_increment_ping_rate
from utils.audit import log_event
from utils.auth_context import auth_error_response, login_required


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))
    password = data.get("password") or ""
    name = (data.get("name") or "").strip()

    if not _is_valid_email(email):
        return jsonify(success=False, error="Invalid email"), 400
    min_len = current_app.config.get("PASSWORD_MIN_LENGTH", 8)
    if not isinstance(password, str) or len(password) < min_len:
        return jsonify(success=False, error=f"Password must be at least {min_len} characters"), 400
    if not name or len(name) > 120:
        return jsonify(success=False, error="Invalid name"), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(success=False, error="Email already registered"), 409

    # new accounts wait for admin approval
    user = User(email=email, name=name, password_hash=hash_password(password),
                is_admin=False, is_approved=False)
    db.session.add(user)
    db.session.commit()
    log_event("REGISTER_SUCCESS", user_id=user.id)

    return jsonify(
        success=True,
        message="Registered successfully. Waiting for approval.",
        user=user.public_profile(),
    ), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))
    password = data.get("password") or ""

    allowed, retry_after = check_and_increment_login_rate()
    if not allowed:
        log_event("LOGIN_RATE_LIMIT", metadata={"email": email, "retry_after": retry_after})
        return auth_error_response(RateLimited("Too many login requests. Slow down.", retry_after))

    try:
        result = login_service.login(
            email,
            password,
            client_ip(),
            client_user_agent(),
            client_fingerprint(data),
        )
    except AuthError as err:
        log_event(f"LOGIN_{err.code}", metadata={"email": email, **err.flags})
        return auth_error_response(err)

    log_event(
        "LOGIN_SUCCESS",
        user_id=result.user.id,
        entity="session",
        entity_id=result.session_id,
        metadata={"allowed_by": result.allowed_by, "device": result.device.owner_label},
    )
    return jsonify(result.to_dict()), 200


@auth_bp.get("/session-status")
def session_status():
    """Lets the client tell "logged in elsewhere" from a plain expiry."""
    result = g.auth_result
    body = {
        "success": True,
        "session_valid": result.ok,
        "logged_in_elsewhere": isinstance(result.error, SessionInvalidated),
        "cooldown_minutes": 0,
    }
    if result.error is not None:
        body["code"] = result.error.code
    if result.user is not None and not result.user.is_admin:
        status = login_service.best_effort("Checking cooldown", attempts.check_cooldown, result.user.id)
        if status is not None and status.in_cooldown:
            body["cooldown_minutes"] = status.remaining_minutes
    return jsonify(body), 200


@auth_bp.post("/logout")
def logout():
    result = g.auth_result
    if not result.ok:
        if isinstance(result.error, SessionInvalidated):
            # another device already took over; leave its ledger alone
            return jsonify(success=True, message="Already logged out"), 200
        return auth_error_response(result.error)

    auth = g.auth
    login_service.logout(auth.user_id, auth.session_id)
    log_event("LOGOUT", user_id=auth.user_id, entity="session", entity_id=auth.session_id)
    return jsonify(success=True, message="Logged out"), 200


@auth_bp.post("/session/ping")
@login_required
def session_ping():
    allowed, retry_after = check_and_increment_ping_rate(g.auth.session_id)
    if not allowed:
        return auth_error_response(RateLimited("Too many ping requests. Please wait.", retry_after))

    if not session_store.touch_activity(g.auth.session_id):
        return auth_error_response(SessionInvalidated())
    return jsonify(success=True), 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(success=True, user={**g.auth.to_dict(), "name": g.user.name}), 200
