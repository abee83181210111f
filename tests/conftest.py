"""Shared fixtures: an app on in-memory SQLite, a temp document store and a fake mailer."""

from typing import List, Tuple

import pytest

from budgety.exceptions import EmailDeliveryError
from budgety_web.app import create_app
from budgety_web.database import User, db

PASSWORD = "correct-horse"


class FakeMailer:
    """Records outgoing mail instead of calling MailerSend."""

    def __init__(self) -> None:
        self.verifications: List[Tuple[str, str]] = []
        self.otps: List[Tuple[str, str, str]] = []
        self.fail = False

    def send_verification_email(self, email: str, url: str) -> None:
        if self.fail:
            raise EmailDeliveryError(f"Unable to send email to {email}")
        self.verifications.append((email, url))

    def send_otp_email(self, email: str, otp: str, otp_type: str) -> None:
        if self.fail:
            raise EmailDeliveryError(f"Unable to send email to {email}")
        self.otps.append((email, otp, otp_type))


@pytest.fixture()
def mailer():
    return FakeMailer()


@pytest.fixture()
def app(tmp_path, mailer):
    app = create_app(
        data_dir=tmp_path / "data",
        config={
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "BUDGETY_ENV": "dev",
            "BUDGETY_BASE_URL": "http://localhost:5000",
        },
        mailer=mailer,
    )
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(app):
    def _make_user(email="ana@example.com", password=PASSWORD, verified=True, name="Ana Cruz"):
        with app.app_context():
            user = User(name=name, email=email, email_verified=verified)
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            return user.id

    return _make_user


@pytest.fixture()
def login(app, make_user):
    """Create a verified user and return a test client signed in as them."""

    def _login(email="ana@example.com", password=PASSWORD):
        make_user(email=email, password=password)
        client = app.test_client()
        response = client.post("/api/auth/sign-in", json={"email": email, "password": password})
        assert response.status_code == 200
        return client

    return _login


@pytest.fixture()
def auth_client(login):
    return login()
