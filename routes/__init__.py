from routes.health import health_bp
from routes.auth import auth_bp
from routes.admin_sessions import admin_sessions_bp
from routes.admin_users import admin_users_bp

__all__ = ["health_bp", "auth_bp", "admin_sessions_bp", "admin_users_bp"]
