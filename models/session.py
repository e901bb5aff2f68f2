from models.db import db
from utils import clock


class Session(db.Model):
    __tablename__ = "sessions"

    # opaque random token, also embedded in the access token as "sid"
    id = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # at most one valid row per user
    valid = db.Column(db.Boolean, default=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=clock.now, nullable=False)
    last_activity = db.Column(db.DateTime, nullable=True)

    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    device_fingerprint = db.Column(db.String(128), nullable=True)
    owner_label = db.Column(db.String(255), nullable=True)

    user = db.relationship("User", back_populates="sessions")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "valid": bool(self.valid),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_activity": self.last_activity.isoformat() if self.last_activity else None,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "device_fingerprint": self.device_fingerprint,
            "owner_label": self.owner_label,
        }
