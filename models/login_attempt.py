from models.db import db
from utils import clock


class LoginAttempt(db.Model):
    """Denied logins caused by a session active on another device."""

    __tablename__ = "login_attempts"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), unique=True, nullable=False, index=True)

    attempt_count = db.Column(db.Integer, default=0, nullable=False)
    cooldown_until = db.Column(db.DateTime, nullable=True)
    last_attempt_at = db.Column(db.DateTime, default=clock.now, nullable=False)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "attempt_count": self.attempt_count,
            "cooldown_until": self.cooldown_until.isoformat() if self.cooldown_until else None,
            "last_attempt_at": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
        }
