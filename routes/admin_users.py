from flask import Blueprint, jsonify, g, request, current_app

from models import db
from models.user import User
from security import session as session_store
from security.credentials import normalize_email
from security.password import hash_password
from security.rbac import require_admin
from utils.audit import log_event

admin_users_bp = Blueprint("admin_users", __name__, url_prefix="/admin/users")


@admin_users_bp.get("")
@require_admin
def list_users():
    q = User.query
    pending = request.args.get("pending")
    if pending == "true":
        q = q.filter(User.is_approved.is_(False), User.is_admin.is_(False))

    users = q.order_by(User.created_at.desc(), User.id.desc()).limit(500).all()
    out = []
    for u in users:
        active = session_store.get_active_session(u.id)
        out.append({**u.public_profile(), "has_active_session": active is not None})
    return jsonify(success=True, users=out), 200


@admin_users_bp.post("")
@require_admin
def create_user():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))
    password = data.get("password") or ""
    name = (data.get("name") or "").strip() or None

    if not email or "@" not in email:
        return jsonify(success=False, error="Invalid email"), 400
    min_len = current_app.config.get("PASSWORD_MIN_LENGTH", 8)
    if not isinstance(password, str) or len(password) < min_len:
        return jsonify(success=False, error=f"Password must be at least {min_len} characters"), 400
    if User.query.filter_by(email=email).first():
        return jsonify(success=False, error="Email already registered"), 409

    user = User(
        email=email,
        name=name,
        password_hash=hash_password(password),
        is_admin=bool(data.get("is_admin", False)),
        is_approved=bool(data.get("is_approved", True)),
    )
    db.session.add(user)
    db.session.commit()

    log_event("ADMIN_USER_CREATE", user_id=g.user.id, entity="user", entity_id=str(user.id))
    return jsonify(success=True, user=user.public_profile()), 201


@admin_users_bp.post("/<int:user_id>/approve")
@require_admin
def approve_user(user_id: int):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify(success=False, error="User not found"), 404

    user.is_approved = True
    db.session.commit()
    log_event("ADMIN_USER_APPROVE", user_id=g.user.id, entity="user", entity_id=str(user.id))
    return jsonify(success=True, user=user.public_profile()), 200


@admin_users_bp.post("/<int:user_id>/revoke")
@require_admin
def revoke_user(user_id: int):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify(success=False, error="User not found"), 404
    if user.id == g.user.id:
        return jsonify(success=False, error="You cannot revoke your own access"), 400

    user.is_approved = False
    db.session.commit()
    count = session_store.invalidate_all_for_user(user.id)

    log_event("ADMIN_USER_REVOKE", user_id=g.user.id, entity="user", entity_id=str(user.id),
              metadata={"sessions_invalidated": count})
    return jsonify(success=True, user=user.public_profile(), sessions_invalidated=count), 200
