import re
from collections import deque
from datetime import datetime, timedelta

import pytest

from cms_auth import create_app, db
from cms_auth.services.otp import generate_otp

TEST_CONFIG = {
    "TESTING": True,
    "JWT_SECRET_KEY": "test-signing-key-0123456789abcdef0123456789",
    "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    "PASSWORD_HASH_METHOD": "pbkdf2:sha256:1000",
    "MAIL_SUPPRESS_SEND": True,
    "LOG_LEVEL": "DEBUG",
}

_CODE_RE = re.compile(r"Your OTP code is: (\w+)")


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def send(self, to_email, subject, body_text, body_html):
        self.sent.append({"to": to_email, "subject": subject, "text": body_text, "html": body_html})

    def last_code(self, to_email=None):
        for message in reversed(self.sent):
            if to_email is None or message["to"] == to_email:
                match = _CODE_RE.search(message["text"])
                if match:
                    return match.group(1)
        raise AssertionError(f"no OTP sent to {to_email}")


class FrozenClock:
    def __init__(self, now=None):
        self.now = now or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class StubOtpGenerator:
    """Hands out queued codes first, then falls back to real ones."""

    def __init__(self):
        self.codes = deque()

    def __call__(self, length):
        if self.codes:
            return self.codes.popleft()
        return generate_otp(length)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def otp_codes():
    return StubOtpGenerator()


@pytest.fixture
def app_config():
    """Overridden in a test module or class to run against other settings."""
    return dict(TEST_CONFIG)


@pytest.fixture
def app(app_config, notifier, clock, otp_codes):
    app = create_app(app_config)
    flow = app.extensions["auth_flow"]
    flow.notifier = notifier
    flow.clock = clock
    flow.otp_generator = otp_codes

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def flow(app):
    return app.extensions["auth_flow"]


@pytest.fixture
def client(app):
    return app.test_client()


def register(flow, username="alice", email="alice@example.com", password="secret1"):
    return flow.register({"username": username, "email": email, "password": password})


def sign_in(flow, notifier, username="alice", email="alice@example.com", password="secret1"):
    """Register (if needed) and walk the full OTP login; returns the session token."""
    if flow.store.find_user_by_email(email) is None:
        register(flow, username, email, password)
    flow.request_login({"email": email, "password": password})
    _, token = flow.verify_otp({"email": email, "otpCode": notifier.last_code(email)})
    return token


def make_admin(flow, username):
    user = flow.store.find_user_by_username(username)
    flow.store.update_user(user, is_admin=True)
    flow.store.commit()
    return user
