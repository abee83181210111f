"""ORM models for accounts, income and verification codes."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import uuid4

from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import check_password_hash, generate_password_hash

from budgety.models import IncomeItem, isoformat_utc

db = SQLAlchemy()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _new_id() -> str:
    return uuid4().hex


class User(db.Model, UserMixin):
    __tablename__ = "user"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=True)
    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    image = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    incomes = db.relationship("Income", backref="user", lazy=True, cascade="all, delete-orphan")

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "email_verified": self.email_verified,
            "image": self.image,
            "created_at": isoformat_utc(as_utc(self.created_at)),
        }


class Income(db.Model):
    __tablename__ = "income"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    source = db.Column(db.String(50), nullable=False)
    frequency = db.Column(db.String(20), nullable=False)
    income_name = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    user_id = db.Column(db.String(36), db.ForeignKey("user.id"), nullable=False, index=True)

    def to_item(self) -> IncomeItem:
        return IncomeItem(
            id=self.id,
            amount=Decimal(str(self.amount)),
            source=self.source,
            frequency=self.frequency,
            income_name=self.income_name,
            created_at=as_utc(self.created_at),
            updated_at=as_utc(self.updated_at),
            user_id=self.user_id,
        )


class Verification(db.Model):
    """A hashed email-verification token or one-time code."""

    __tablename__ = "verification"

    id = db.Column(db.Integer, primary_key=True)
    identifier = db.Column(db.String(255), nullable=False, index=True)
    purpose = db.Column(db.String(40), nullable=False)
    value_hash = db.Column(db.String(64), nullable=False, index=True)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return as_utc(self.expires_at) <= (now or utcnow())
