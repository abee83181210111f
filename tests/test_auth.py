"""Tests for sign-up, verification links, password sign-in and one-time codes."""

from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

from budgety_web.database import User, Verification, as_utc, db, utcnow

SIGN_UP = {
    "full_name": "Ana Cruz",
    "email": "Ana@Example.com",
    "password": "correct-horse",
    "confirm_password": "correct-horse",
}


def _verification_path(url):
    parts = urlsplit(url)
    return f"{parts.path}?{parts.query}"


def _expire_codes(app):
    with app.app_context():
        for record in db.session.execute(db.select(Verification)).scalars().all():
            record.expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()


class TestSignUp:
    def test_sign_up_sends_verification_link(self, client, mailer):
        response = client.post("/api/auth/sign-up", json=SIGN_UP)

        assert response.status_code == 201
        body = response.get_json()
        assert body["error"] is None
        assert body["data"]["email"] == "ana@example.com"
        assert body["data"]["email_verified"] is False

        [(email, url)] = mailer.verifications
        assert email == "ana@example.com"
        assert url.startswith("http://localhost:5000/api/auth/verify-email?")
        query = parse_qs(urlsplit(url).query)
        assert query["callbackURL"] == ["/dashboard"]
        assert len(query["token"][0]) > 20

    def test_duplicate_email_rejected(self, client):
        client.post("/api/auth/sign-up", json=SIGN_UP)
        response = client.post("/api/auth/sign-up", json={**SIGN_UP, "email": "ana@example.com"})
        assert response.status_code == 400
        assert response.get_json()["message"] == "User already exists. Use another email."

    def test_mismatched_passwords(self, client, mailer):
        response = client.post("/api/auth/sign-up", json={**SIGN_UP, "confirm_password": "something-else"})
        assert response.status_code == 400
        issues = response.get_json()["issues"]
        assert {"path": "confirm_password", "message": "Passwords do not match"} in issues
        assert mailer.verifications == []

    def test_mail_failure_is_reported(self, app, client, mailer):
        mailer.fail = True
        response = client.post("/api/auth/sign-up", json=SIGN_UP)
        assert response.status_code == 502
        assert response.get_json()["message"] == "Failed to send verification email"
        with app.app_context():
            assert db.session.execute(db.select(User)).scalar_one().email == "ana@example.com"


class TestVerification:
    def test_unverified_user_cannot_sign_in(self, client):
        client.post("/api/auth/sign-up", json=SIGN_UP)
        response = client.post("/api/auth/sign-in", json={"email": "ana@example.com", "password": "correct-horse"})
        assert response.status_code == 403
        assert response.get_json()["message"] == "Please verify your email address before signing in."

    def test_link_verifies_and_signs_in(self, client, mailer):
        client.post("/api/auth/sign-up", json=SIGN_UP)
        [(_, url)] = mailer.verifications

        response = client.get(_verification_path(url))

        assert response.status_code == 302
        assert response.headers["Location"].endswith("/dashboard")
        session = client.get("/api/auth/session").get_json()
        assert session["data"]["email_verified"] is True
        assert session["message"] == "Email is verified"

    def test_link_is_single_use(self, client, mailer):
        client.post("/api/auth/sign-up", json=SIGN_UP)
        [(_, url)] = mailer.verifications
        client.get(_verification_path(url))

        response = client.get(_verification_path(url))

        assert response.status_code == 400
        assert response.get_json()["message"] == "Invalid or expired verification link"

    def test_expired_link_is_rejected(self, app, client, mailer):
        client.post("/api/auth/sign-up", json=SIGN_UP)
        [(_, url)] = mailer.verifications
        _expire_codes(app)

        response = client.get(_verification_path(url))

        assert response.status_code == 400
        assert response.get_json()["message"] == "Invalid or expired verification link"
        assert client.get("/api/auth/session").get_json()["data"] is None

    def test_offsite_callback_is_ignored(self, client, mailer):
        client.post("/api/auth/sign-up", json={**SIGN_UP, "callback_url": "https://evil.example"})
        [(_, url)] = mailer.verifications
        response = client.get(_verification_path(url))
        assert response.headers["Location"].endswith("/dashboard")

    def test_resend_only_for_unverified_accounts(self, client, mailer, make_user):
        make_user(email="done@example.com")
        client.post("/api/auth/sign-up", json=SIGN_UP)

        client.post("/api/auth/verify-email/resend", json={"email": "ana@example.com"})
        client.post("/api/auth/verify-email/resend", json={"email": "done@example.com"})

        assert [email for email, _ in mailer.verifications] == ["ana@example.com", "ana@example.com"]


class TestPasswordSession:
    def test_bad_credentials(self, client, make_user):
        make_user()
        response = client.post("/api/auth/sign-in", json={"email": "ana@example.com", "password": "wrong-pass"})
        assert response.status_code == 401
        assert response.get_json()["message"] == "Invalid email or password"

    def test_sign_in_and_out(self, auth_client):
        assert auth_client.get("/api/auth/session").get_json()["data"]["email"] == "ana@example.com"
        auth_client.post("/api/auth/sign-out")
        body = auth_client.get("/api/auth/session").get_json()
        assert body["data"] is None
        assert body["message"] == "No active session"


class TestOneTimeCodes:
    def test_sign_in_code_creates_verified_account(self, app, client, mailer):
        response = client.post("/api/auth/otp/send", json={"email": "new@example.com", "type": "sign-in"})
        assert response.status_code == 200
        [(email, otp, kind)] = mailer.otps
        assert (email, kind) == ("new@example.com", "sign-in")
        assert len(otp) == 6 and otp.isdigit()

        response = client.post("/api/auth/otp/sign-in", json={"email": "new@example.com", "otp": otp})

        assert response.status_code == 200
        assert response.get_json()["data"]["email_verified"] is True
        assert client.get("/api/auth/session").get_json()["data"]["email"] == "new@example.com"
        with app.app_context():
            assert db.session.execute(db.select(Verification)).first() is None

    def test_code_is_burned_after_allowed_attempts(self, client, mailer):
        client.post("/api/auth/otp/send", json={"email": "new@example.com", "type": "sign-in"})
        [(_, otp, _)] = mailer.otps
        wrong = "000000" if otp != "000000" else "111111"

        for _ in range(3):
            response = client.post("/api/auth/otp/sign-in", json={"email": "new@example.com", "otp": wrong})
            assert response.status_code == 400
        response = client.post("/api/auth/otp/sign-in", json={"email": "new@example.com", "otp": otp})

        assert response.status_code == 400
        assert response.get_json()["message"] == "Invalid or expired verification code"

    def test_expired_code_is_rejected(self, app, client, mailer):
        client.post("/api/auth/otp/send", json={"email": "new@example.com", "type": "sign-in"})
        [(_, otp, _)] = mailer.otps
        _expire_codes(app)

        response = client.post("/api/auth/otp/sign-in", json={"email": "new@example.com", "otp": otp})

        assert response.status_code == 400
        assert response.get_json()["message"] == "Invalid or expired verification code"
        assert client.get("/api/auth/session").get_json()["data"] is None

    def test_code_lifetimes(self, app, client, mailer):
        client.post("/api/auth/sign-up", json=SIGN_UP)
        client.post("/api/auth/otp/send", json={"email": "ana@example.com", "type": "email-verification"})
        with app.app_context():
            records = {r.purpose: r for r in db.session.execute(db.select(Verification)).scalars()}
            link_ttl = as_utc(records["email-link"].expires_at) - as_utc(records["email-link"].created_at)
            otp_ttl = as_utc(records["email-verification"].expires_at) - as_utc(records["email-verification"].created_at)
        assert timedelta(minutes=59) < link_ttl <= timedelta(hours=1)
        assert timedelta(minutes=9) < otp_ttl <= timedelta(minutes=10)

    def test_email_verification_code(self, client, mailer):
        client.post("/api/auth/sign-up", json=SIGN_UP)
        client.post("/api/auth/otp/send", json={"email": "ana@example.com", "type": "email-verification"})
        [(_, otp, _)] = mailer.otps

        response = client.post("/api/auth/otp/verify-email", json={"email": "ana@example.com", "otp": otp})

        assert response.status_code == 200
        assert response.get_json()["message"] == "Email verified successfully with OTP!"
        signed_in = client.post("/api/auth/sign-in", json={"email": "ana@example.com", "password": "correct-horse"})
        assert signed_in.status_code == 200

    def test_reset_password_code(self, client, mailer, make_user):
        make_user()
        client.post("/api/auth/otp/send", json={"email": "ana@example.com", "type": "forget-password"})
        [(_, otp, kind)] = mailer.otps
        assert kind == "forget-password"

        response = client.post(
            "/api/auth/otp/reset-password",
            json={"email": "ana@example.com", "otp": otp, "password": "brand-new-secret"},
        )

        assert response.status_code == 200
        old = client.post("/api/auth/sign-in", json={"email": "ana@example.com", "password": "correct-horse"})
        new = client.post("/api/auth/sign-in", json={"email": "ana@example.com", "password": "brand-new-secret"})
        assert old.status_code == 401
        assert new.status_code == 200

    def test_unknown_address_gets_no_reset_code(self, client, mailer):
        response = client.post("/api/auth/otp/send", json={"email": "ghost@example.com", "type": "forget-password"})
        assert response.status_code == 200
        assert mailer.otps == []

    def test_unknown_type_rejected(self, client):
        response = client.post("/api/auth/otp/send", json={"email": "ana@example.com", "type": "magic"})
        assert response.status_code == 400

    def test_mail_failure(self, client, mailer):
        mailer.fail = True
        response = client.post("/api/auth/otp/send", json={"email": "new@example.com", "type": "sign-in"})
        assert response.status_code == 502
        assert response.get_json()["message"] == "Failed to send verification OTP"
