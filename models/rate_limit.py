from models.db import db
from utils import clock


class RateLimitBucket(db.Model):
    __tablename__ = "rate_limits"

    id = db.Column(db.Integer, primary_key=True)
    # e.g. "login:203.0.113.7" or "ping:<session id>"
    key = db.Column(db.String(128), unique=True, nullable=False, index=True)

    window_start = db.Column(db.DateTime, nullable=False)
    count = db.Column(db.Integer, default=0, nullable=False)

    updated_at = db.Column(db.DateTime, default=clock.now, onupdate=clock.now, nullable=False)
