from functools import wraps
from flask import g

from security.errors import AdminRequired
from utils.auth_context import auth_error_response, login_required


def is_admin() -> bool:
    auth = getattr(g, "auth", None)
    return bool(auth and auth.is_admin)


def require_admin(fn):
    """
    Usage: @require_admin
    Authentication failures come first (401 / logged-in-elsewhere), then 403.
    """
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        if not is_admin():
            return auth_error_response(AdminRequired())
        return fn(*args, **kwargs)
    return wrapper
