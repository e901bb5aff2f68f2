from flask import Blueprint, jsonify, g, request

from models import db
from models.user import User
from security import attempts, session as session_store
from security.rbac import require_admin
from utils.audit import log_event

admin_sessions_bp = Blueprint("admin_sessions", __name__, url_prefix="/admin/sessions")


def _get_user_or_404(user_id: int):
    user = db.session.get(User, user_id)
    if not user:
        return None, (jsonify(success=False, error="User not found"), 404)
    return user, None


@admin_sessions_bp.get("/stats")
@require_admin
def stats():
    return jsonify(success=True, stats=session_store.get_session_stats()), 200


@admin_sessions_bp.get("/user/<int:user_id>")
@require_admin
def user_sessions(user_id: int):
    user, failure = _get_user_or_404(user_id)
    if failure:
        return failure

    active = session_store.get_active_session(user.id, include_stale=True)
    return jsonify(
        success=True,
        user=user.public_profile(),
        active_session_id=active.id if active else None,
        active_session_stale=session_store.is_stale(active) if active else False,
        sessions=[s.to_dict() for s in session_store.list_user_sessions(user.id)],
    ), 200


@admin_sessions_bp.post("/invalidate/<session_id>")
@require_admin
def invalidate_session(session_id: str):
    row = session_store.get_session(session_id)
    if not row:
        return jsonify(success=False, error="Session not found"), 404

    changed = session_store.invalidate_session(session_id)
    log_event("ADMIN_SESSION_INVALIDATE", user_id=g.user.id, entity="session", entity_id=session_id,
              metadata={"target_user_id": row.user_id, "changed": changed})
    return jsonify(success=True, invalidated=changed), 200


@admin_sessions_bp.post("/invalidate-user/<int:user_id>")
@require_admin
def invalidate_user(user_id: int):
    user, failure = _get_user_or_404(user_id)
    if failure:
        return failure

    count = session_store.invalidate_all_for_user(user.id)
    log_event("ADMIN_USER_SESSIONS_INVALIDATE", user_id=g.user.id, entity="user", entity_id=str(user.id),
              metadata={"count": count})
    return jsonify(success=True, invalidated_count=count), 200


@admin_sessions_bp.get("/cooldown/<int:user_id>")
@require_admin
def cooldown_status(user_id: int):
    user, failure = _get_user_or_404(user_id)
    if failure:
        return failure

    status = attempts.check_cooldown(user.id)
    record = attempts.get_record(user.id)
    ban = attempts.get_ban(user.id)
    return jsonify(
        success=True,
        user_id=user.id,
        in_cooldown=status.in_cooldown,
        remaining_minutes=status.remaining_minutes if status.in_cooldown else 0,
        attempt_count=status.attempt_count,
        attempts_remaining=attempts.attempts_remaining(status.attempt_count),
        record=record.to_dict() if record else None,
        ban=ban.to_dict() if ban else None,
    ), 200


@admin_sessions_bp.delete("/cooldown/<int:user_id>")
@require_admin
def clear_cooldown(user_id: int):
    user, failure = _get_user_or_404(user_id)
    if failure:
        return failure

    cleared = attempts.reset(user.id)
    log_event("ADMIN_COOLDOWN_CLEAR", user_id=g.user.id, entity="user", entity_id=str(user.id),
              metadata={"cleared": cleared})
    return jsonify(success=True, cleared=cleared), 200


@admin_sessions_bp.get("/device-switches/<int:user_id>")
@require_admin
def device_switches(user_id: int):
    user, failure = _get_user_or_404(user_id)
    if failure:
        return failure

    try:
        limit = int(request.args.get("limit", 10))
    except ValueError:
        return jsonify(success=False, error="limit must be an integer"), 400
    limit = min(max(limit, 1), 100)

    events = attempts.device_switch_history(user.id, limit=limit)
    return jsonify(
        success=True,
        user_id=user.id,
        switch_count=attempts.switch_count(user.id),
        events=[e.to_dict() for e in events],
    ), 200


@admin_sessions_bp.delete("/device-switches/<int:user_id>")
@require_admin
def clear_device_switches(user_id: int):
    user, failure = _get_user_or_404(user_id)
    if failure:
        return failure

    count = attempts.clear_device_switch_history(user.id)
    log_event("ADMIN_DEVICE_SWITCHES_CLEAR", user_id=g.user.id, entity="user", entity_id=str(user.id),
              metadata={"count": count})
    return jsonify(success=True, deleted_count=count), 200


@admin_sessions_bp.post("/cleanup")
@require_admin
def cleanup():
    data = request.get_json(silent=True) or {}
    inactive_minutes = data.get("inactive_minutes")
    if inactive_minutes is not None and (not isinstance(inactive_minutes, int) or inactive_minutes < 1):
        return jsonify(success=False, error="inactive_minutes must be a positive integer"), 400

    result = {
        "stale_sessions": session_store.cleanup_stale(inactive_minutes),
        "old_sessions": session_store.cleanup_old_sessions(),
        "old_attempts": attempts.cleanup_old(),
        "old_device_switches": attempts.cleanup_old_switches(),
        "expired_bans": attempts.cleanup_expired_bans(),
    }
    log_event("ADMIN_SESSION_CLEANUP", user_id=g.user.id, metadata=result)
    return jsonify(success=True, cleaned=result), 200
