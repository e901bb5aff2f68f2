"""
Test configuration and fixtures for the session backend tests.
"""
from datetime import datetime

import pytest

from app import create_app
from config import TestingConfig
from models import db
from models.user import User
from security.password import hash_password
from utils import clock

START = datetime(2026, 1, 5, 9, 0, 0)
PASSWORD = "correct-horse-battery"

CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
FIREFOX_UA = "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0"


@pytest.fixture(autouse=True)
def frozen_clock():
    """Freeze the app clock at a fixed instant for every test."""
    clock.freeze(START)
    yield START
    clock.unfreeze()


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(email="ana@example.com", password=PASSWORD, name="Ana",
                   is_admin=False, is_approved=True):
        user = User(
            email=email,
            name=name,
            password_hash=hash_password(password),
            is_admin=is_admin,
            is_approved=is_approved,
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email="root@example.com", name="Root", is_admin=True)


def do_login(client, email="ana@example.com", password=PASSWORD, device=None,
             ip="10.0.0.1", user_agent=CHROME_UA):
    """POST /auth/login from a device; `device` is sent as the client fingerprint."""
    headers = {"User-Agent": user_agent}
    if device:
        headers["X-Device-Fingerprint"] = device
    return client.post(
        "/auth/login",
        json={"email": email, "password": password},
        headers=headers,
        environ_base={"REMOTE_ADDR": ip},
    )


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def login():
    return do_login
