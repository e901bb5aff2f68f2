from models.db import db
from utils import clock


class DeviceSwitchEvent(db.Model):
    __tablename__ = "device_switch_events"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    from_fingerprint = db.Column(db.String(128), nullable=True)
    to_fingerprint = db.Column(db.String(128), nullable=False)
    from_ip = db.Column(db.String(64), nullable=True)
    to_ip = db.Column(db.String(64), nullable=True)

    switched_at = db.Column(db.DateTime, default=clock.now, nullable=False, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "from_fingerprint": self.from_fingerprint,
            "to_fingerprint": self.to_fingerprint,
            "from_ip": self.from_ip,
            "to_ip": self.to_ip,
            "switched_at": self.switched_at.isoformat(),
        }


class LoginBan(db.Model):
    """Most recent ban computed by the "levels" cooldown policy."""

    __tablename__ = "login_bans"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), unique=True, nullable=False, index=True)

    banned_until = db.Column(db.DateTime, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    cooldown_level = db.Column(db.Integer, nullable=False)
    switch_count = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=clock.now, nullable=False)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "banned_until": self.banned_until.isoformat(),
            "reason": self.reason,
            "cooldown_level": self.cooldown_level,
            "switch_count": self.switch_count,
        }
