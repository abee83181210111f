"""Transactional email through the MailerSend HTTP API."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests
from flask import render_template

from budgety.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)

MAILERSEND_URL = "https://api.mailersend.com/v1/email"

OTP_SIGN_IN = "sign-in"
OTP_EMAIL_VERIFICATION = "email-verification"
OTP_FORGET_PASSWORD = "forget-password"

OTP_COPY: Dict[str, Dict[str, str]] = {
    OTP_SIGN_IN: {
        "subject": "Your Sign-In Code - Budgety",
        "heading": "Sign In to Your Account",
        "message": "Use this code to sign in to your Budgety account:",
    },
    OTP_EMAIL_VERIFICATION: {
        "subject": "Your Email Verification Code - Budgety",
        "heading": "Verify Your Email",
        "message": "Use this code to verify your email address:",
    },
    OTP_FORGET_PASSWORD: {
        "subject": "Your Password Reset Code - Budgety",
        "heading": "Reset Your Password",
        "message": "Use this code to reset your password:",
    },
}


class Mailer:
    """Renders Budgety emails and posts them to MailerSend."""

    def __init__(
        self,
        api_key: str,
        from_email: str,
        from_name: str = "Budgety",
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._sender = {"email": from_email, "name": from_name}
        self._session = session or requests.Session()
        self._timeout = timeout

    def send(self, to: str, subject: str, html: Optional[str] = None, text: Optional[str] = None) -> None:
        payload: Dict[str, Any] = {
            "from": self._sender,
            "to": [{"email": to, "name": to}],
            "reply_to": self._sender,
            "subject": subject,
        }
        if html:
            payload["html"] = html
        if text:
            payload["text"] = text

        try:
            response = self._session.post(
                MAILERSEND_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Error sending email to %s: %s", to, exc)
            raise EmailDeliveryError(f"Unable to send email to {to}") from exc
        logger.info("Email sent to %s (%s)", to, subject)

    def send_verification_email(self, email: str, verification_url: str) -> None:
        context = {"url": verification_url, "year": _year()}
        self.send(
            to=email,
            subject="Verify Your Email Address - Budgety",
            html=render_template("emails/verification.html", **context),
            text=render_template("emails/verification.txt", **context),
        )

    def send_otp_email(self, email: str, otp: str, otp_type: str) -> None:
        copy = OTP_COPY[otp_type]
        context = {"otp": otp, "heading": copy["heading"], "message": copy["message"], "year": _year()}
        self.send(
            to=email,
            subject=copy["subject"],
            html=render_template("emails/otp.html", **context),
            text=render_template("emails/otp.txt", **context),
        )


def _year() -> int:
    return datetime.now(timezone.utc).year
