"""Authentication error taxonomy.

Every error knows its HTTP status and renders the stable failure body
``{"success": false, "error": ..., "code": ..., <flags>}`` so routes and the
app-level error handler never build these by hand.
"""
import math


class AuthError(Exception):
    status_code = 401
    code = "AUTH_ERROR"
    message = "Authentication failed"

    def __init__(self, message: str | None = None, **flags):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.flags = flags

    def to_dict(self) -> dict:
        body = {"success": False, "error": self.message, "code": self.code}
        body.update(self.flags)
        return body


# Input / credential errors: terminal, need new input

class MissingCredentials(AuthError):
    status_code = 400
    code = "MISSING_CREDENTIALS"
    message = "Email and password are required"


class InvalidCredentials(AuthError):
    code = "INVALID_CREDENTIALS"
    message = "Invalid credentials"


class AccountNotApproved(AuthError):
    status_code = 403
    code = "ACCOUNT_NOT_APPROVED"
    message = "Account not approved. Ask an administrator for approval."


# Policy errors: retryable after the stated wait

class CooldownActive(AuthError):
    status_code = 429
    code = "COOLDOWN_ACTIVE"

    def __init__(self, remaining_seconds: int, attempt_count: int = 0):
        self.remaining_seconds = max(int(remaining_seconds), 0)
        remaining_minutes = minutes_ceil(self.remaining_seconds)
        super().__init__(
            f"Too many attempts while this account is active on another device. "
            f"Try again in {remaining_minutes} minute(s).",
            cooldown=True,
            remaining_minutes=remaining_minutes,
            retry_after_seconds=self.remaining_seconds,
            attempt_count=attempt_count,
        )


class SessionActiveElsewhere(AuthError):
    status_code = 429
    code = "SESSION_ACTIVE_ELSEWHERE"

    def __init__(self, attempts_remaining: int, cooldown_minutes: int = 0,
                 attempt_count: int = 0, owner_label: str | None = None):
        if cooldown_minutes:
            message = (f"This account is already active on another device. "
                       f"Login blocked for {cooldown_minutes} minute(s).")
        else:
            message = (f"This account is already active on another device. "
                       f"{attempts_remaining} attempt(s) remaining before a cooldown.")
        super().__init__(
            message,
            already_logged_in=True,
            attempts_remaining=attempts_remaining,
            attempt_count=attempt_count,
            cooldown_minutes=cooldown_minutes,
            active_device=owner_label,
        )


# Session-state errors: surfaced by the request guard, client re-authenticates

class CredentialExpired(AuthError):
    code = "CREDENTIAL_EXPIRED"
    message = "Token expired. Please log in again."

    def __init__(self, message: str | None = None):
        super().__init__(message, session_expired=True)


class CredentialInvalid(AuthError):
    code = "CREDENTIAL_INVALID"
    message = "Invalid token"

    def __init__(self, message: str | None = None):
        super().__init__(message, session_expired=True)


class UserNotFound(AuthError):
    code = "USER_NOT_FOUND"
    message = "User not found"

    def __init__(self, message: str | None = None):
        super().__init__(message, session_expired=True)


class SessionNotFound(AuthError):
    code = "SESSION_NOT_FOUND"
    message = "Session not found. Please log in again."

    def __init__(self, message: str | None = None):
        super().__init__(message, session_expired=True)


class SessionInvalidated(AuthError):
    code = "SESSION_INVALIDATED"
    message = "Session expired - logged in from another device"

    def __init__(self, message: str | None = None):
        super().__init__(message, session_expired=True, logged_in_elsewhere=True)


class AuthenticationRequired(AuthError):
    code = "AUTHENTICATION_REQUIRED"
    message = "Authentication required"


class AdminRequired(AuthError):
    status_code = 403
    code = "ADMIN_REQUIRED"
    message = "Admin privileges required"


class RateLimited(AuthError):
    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, message: str, retry_after_seconds: int):
        super().__init__(message, retry_after_seconds=retry_after_seconds)


def minutes_ceil(seconds: float) -> int:
    return int(math.ceil(max(seconds, 0) / 60.0))
