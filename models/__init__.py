from .db import db
from .user import User
from .audit_log import AuditLog
from .session import Session
from .login_attempt import LoginAttempt
from .device_switch import DeviceSwitchEvent, LoginBan
from .rate_limit import RateLimitBucket
