from models.db import db
from utils import clock


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    # always stored trimmed + lowercased
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False)

    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    # non-admin accounts cannot log in until an admin approves them
    is_approved = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=clock.now, nullable=False)
    updated_at = db.Column(db.DateTime, default=clock.now, onupdate=clock.now, nullable=False)

    sessions = db.relationship("Session", back_populates="user", lazy="dynamic")

    def public_profile(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "is_admin": bool(self.is_admin),
            "is_approved": bool(self.is_approved),
        }
