from functools import wraps
from flask import g, jsonify, request

from security.errors import AuthenticationRequired
from security.guard import authenticate_request


# refreshes activity itself, after its own rate limit
NO_TOUCH_ENDPOINTS = {"auth.session_ping"}


def load_current_user():
    result = authenticate_request(touch=request.endpoint not in NO_TOUCH_ENDPOINTS)
    g.auth_result = result
    g.user = result.user if result.ok else None
    g.auth = result.context


def auth_error_response(error):
    return jsonify(error.to_dict()), error.status_code


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "auth", None) is None:
            result = getattr(g, "auth_result", None)
            error = result.error if result is not None and result.error else AuthenticationRequired()
            return auth_error_response(error)
        return fn(*args, **kwargs)
    return wrapper
