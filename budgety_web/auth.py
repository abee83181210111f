"""Email/password accounts with verification links and one-time codes."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

from flask import Blueprint, current_app, jsonify, redirect, request
from flask_login import current_user, login_user, logout_user
from sqlalchemy import delete

from budgety.exceptions import AuthenticationError, EmailDeliveryError, ValidationError
from budgety.validators import (
    FormValidator,
    validate_email,
    validate_enum,
    validate_password,
    validate_required_str,
)

from .database import User, Verification, db, utcnow
from .mailer import OTP_COPY, OTP_EMAIL_VERIFICATION, OTP_FORGET_PASSWORD, OTP_SIGN_IN

logger = logging.getLogger(__name__)

EMAIL_LINK = "email-link"
OTP_LENGTH = 6


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def validate_sign_up(payload: Mapping[str, object]) -> Dict[str, str]:
    form = FormValidator()
    full_name = form.check(
        validate_required_str, payload.get("full_name"), "full_name", 120, "Full name is required"
    )
    email = form.check(validate_email, payload.get("email"))
    password = form.check(validate_password, payload.get("password"))
    confirm = form.check(validate_password, payload.get("confirm_password"), "confirm_password")
    if password is not None and confirm is not None and password != confirm:
        form.add("confirm_password", "Passwords do not match")
    form.raise_for_issues()
    return {"full_name": full_name, "email": email, "password": password}


class AuthService:
    """Account lifecycle; knows nothing about HTTP or sessions."""

    def __init__(
        self,
        mailer: Any,
        base_url: str,
        link_ttl: int = 3600,
        otp_ttl: int = 600,
        allowed_attempts: int = 3,
    ) -> None:
        self._mailer = mailer
        self._base_url = base_url.rstrip("/")
        self._link_ttl = timedelta(seconds=link_ttl)
        self._otp_ttl = timedelta(seconds=otp_ttl)
        self._allowed_attempts = allowed_attempts

    # Accounts -------------------------------------------------------------
    def sign_up(self, payload: Mapping[str, object], callback_url: str = "/dashboard") -> User:
        data = validate_sign_up(payload)
        if self.find_user(data["email"]) is not None:
            raise ValidationError("User already exists. Use another email.", "email")

        user = User(name=data["full_name"], email=data["email"])
        user.set_password(data["password"])
        db.session.add(user)
        db.session.commit()
        logger.info("Created account %s", user.id)

        self.send_verification_email(user.email, callback_url)
        return user

    def authenticate(self, email: object, password: object) -> User:
        user = self.find_user(email) if isinstance(email, str) else None
        if user is None or not isinstance(password, str) or not user.check_password(password):
            raise AuthenticationError("Invalid email or password")
        if not user.email_verified:
            raise AuthenticationError("Please verify your email address before signing in.", status=403)
        return user

    def find_user(self, email: str) -> Optional[User]:
        return db.session.execute(
            db.select(User).filter_by(email=email.strip().lower())
        ).scalar_one_or_none()

    # Verification links ---------------------------------------------------
    def send_verification_email(self, email: str, callback_url: str = "/dashboard") -> None:
        token = secrets.token_urlsafe(32)
        self._store_code(email, EMAIL_LINK, token, self._link_ttl)
        query = urlencode({"token": token, "callbackURL": callback_url})
        url = f"{self._base_url}/api/auth/verify-email?{query}"
        try:
            self._mailer.send_verification_email(email, url)
        except EmailDeliveryError as exc:
            logger.error("Failed to send verification email to %s: %s", email, exc)
            raise EmailDeliveryError("Failed to send verification email") from exc
        logger.info("Verification email sent to %s", email)

    def verify_email(self, token: str) -> User:
        record = db.session.execute(
            db.select(Verification).filter_by(purpose=EMAIL_LINK, value_hash=_digest(token or ""))
        ).scalar_one_or_none()
        if record is None or record.is_expired():
            raise AuthenticationError("Invalid or expired verification link", status=400)
        user = self.find_user(record.identifier)
        if user is None:
            raise AuthenticationError("Invalid or expired verification link", status=400)

        user.email_verified = True
        db.session.delete(record)
        db.session.commit()
        logger.info("Email verified for user %s", user.id)
        return user

    # One-time codes -------------------------------------------------------
    def send_otp(self, email: object, otp_type: object) -> None:
        address = validate_email(email)
        kind = validate_enum(otp_type, "type", OTP_COPY)
        if kind != OTP_SIGN_IN and self.find_user(address) is None:
            # Unknown addresses get the same response without revealing anything.
            logger.info("Skipped %s code for unknown address", kind)
            return

        otp = f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"
        self._store_code(address, kind, otp, self._otp_ttl)
        try:
            self._mailer.send_otp_email(address, otp, kind)
        except EmailDeliveryError as exc:
            logger.error("Failed to send OTP to %s: %s", address, exc)
            raise EmailDeliveryError("Failed to send verification OTP") from exc
        logger.info("OTP sent to %s for %s", address, kind)

    def verify_email_otp(self, email: object, otp: object) -> User:
        address = validate_email(email)
        self._consume_otp(address, OTP_EMAIL_VERIFICATION, otp)
        user = self._require_user(address)
        user.email_verified = True
        db.session.commit()
        return user

    def sign_in_otp(self, email: object, otp: object) -> User:
        address = validate_email(email)
        self._consume_otp(address, OTP_SIGN_IN, otp)
        user = self.find_user(address)
        if user is None:
            user = User(name=address.split("@")[0], email=address)
            db.session.add(user)
            logger.info("Created passwordless account for %s", address)
        # Receiving the code proves ownership of the address.
        user.email_verified = True
        db.session.commit()
        return user

    def reset_password_otp(self, email: object, otp: object, password: object) -> User:
        address = validate_email(email)
        new_password = validate_password(password)
        self._consume_otp(address, OTP_FORGET_PASSWORD, otp)
        user = self._require_user(address)
        user.set_password(new_password)
        db.session.commit()
        logger.info("Password reset for user %s", user.id)
        return user

    # Internal helpers -----------------------------------------------------
    def _require_user(self, email: str) -> User:
        user = self.find_user(email)
        if user is None:
            raise AuthenticationError("Invalid or expired verification code", status=400)
        return user

    def _store_code(self, identifier: str, purpose: str, value: str, ttl: timedelta) -> None:
        db.session.execute(delete(Verification).filter_by(identifier=identifier, purpose=purpose))
        db.session.add(
            Verification(
                identifier=identifier,
                purpose=purpose,
                value_hash=_digest(value),
                expires_at=utcnow() + ttl,
            )
        )
        db.session.commit()

    def _consume_otp(self, identifier: str, purpose: str, otp: object) -> None:
        record = db.session.execute(
            db.select(Verification).filter_by(identifier=identifier, purpose=purpose)
        ).scalar_one_or_none()
        if record is None or record.is_expired():
            raise AuthenticationError("Invalid or expired verification code", status=400)
        candidate = otp.strip() if isinstance(otp, str) else ""
        if not hmac.compare_digest(record.value_hash, _digest(candidate)):
            record.attempts += 1
            if record.attempts >= self._allowed_attempts:
                db.session.delete(record)
            db.session.commit()
            raise AuthenticationError("Invalid or expired verification code", status=400)
        db.session.delete(record)
        db.session.commit()


bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _service() -> AuthService:
    return current_app.extensions["budgety.auth"]


def _body() -> Dict[str, Any]:
    if not request.is_json:
        raise ValidationError("Request content must be application/json")
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Malformed JSON body")
    return data


def _result(message: str, data: Any = None, status: int = 200):
    return jsonify({"error": None, "message": message, "data": data}), status


@bp.post("/sign-up")
def sign_up():
    payload = _body()
    user = _service().sign_up(payload, callback_url=str(payload.get("callback_url") or "/dashboard"))
    return _result(
        "Account created! Please check your email to verify your account.", user.to_dict(), 201
    )


@bp.post("/sign-in")
def sign_in():
    payload = _body()
    user = _service().authenticate(payload.get("email"), payload.get("password"))
    login_user(user, remember=bool(payload.get("remember")))
    return _result("Signed in successfully!", user.to_dict())


@bp.post("/sign-out")
def sign_out():
    logout_user()
    return _result("Signed out")


@bp.get("/session")
def session():
    if not current_user.is_authenticated:
        return _result("No active session", None)
    return _result(
        "Email is verified" if current_user.email_verified else "Email is not verified",
        current_user.to_dict(),
    )


@bp.get("/verify-email")
def verify_email():
    user = _service().verify_email(request.args.get("token", ""))
    # Verified users are signed straight in.
    login_user(user)
    callback = request.args.get("callbackURL", "/dashboard")
    if not callback.startswith("/") or callback.startswith("//"):
        callback = "/dashboard"
    return redirect(callback)


@bp.post("/verify-email/resend")
def resend_verification():
    payload = _body()
    service = _service()
    address = validate_email(payload.get("email"))
    user = service.find_user(address)
    if user is not None and not user.email_verified:
        service.send_verification_email(address)
    return _result("Verification email sent! Please check your inbox.")


@bp.post("/otp/send")
def send_otp():
    payload = _body()
    _service().send_otp(payload.get("email"), payload.get("type"))
    return _result("Verification code sent to your email!")


@bp.post("/otp/verify-email")
def verify_email_otp():
    payload = _body()
    user = _service().verify_email_otp(payload.get("email"), payload.get("otp"))
    return _result("Email verified successfully with OTP!", user.to_dict())


@bp.post("/otp/sign-in")
def sign_in_otp():
    payload = _body()
    user = _service().sign_in_otp(payload.get("email"), payload.get("otp"))
    login_user(user)
    return _result("Signed in successfully!", user.to_dict())


@bp.post("/otp/reset-password")
def reset_password_otp():
    payload = _body()
    _service().reset_password_otp(payload.get("email"), payload.get("otp"), payload.get("password"))
    return _result("Password updated. You can now sign in.")


__all__ = ["AuthService", "bp", "validate_sign_up"]
