"""Data models for the Budgety domain."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

__all__ = [
    "Category",
    "UserCategory",
    "ExpenseItem",
    "SavingsItem",
    "IncomeItem",
    "isoformat_utc",
    "parse_datetime",
]


def isoformat_utc(dt: datetime) -> str:
    """Return an ISO 8601 string with trailing Z for UTC-aware datetimes."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    iso = dt.isoformat(timespec="seconds")
    return iso.replace("+00:00", "Z")


def parse_datetime(value: str) -> datetime:
    """Parse ISO 8601 datetime strings with optional trailing Z into UTC-aware datetime."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        # Naive values are treated as UTC.
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    # Stored documents may still use the older camelCase field names.
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _optional_datetime(raw: Any) -> Optional[datetime]:
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.astimezone(timezone.utc) if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    return parse_datetime(str(raw))


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    icon: str
    color: str
    background_color: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "color": self.color,
            "background_color": self.background_color,
        }


@dataclass(frozen=True)
class UserCategory:
    id: str
    category_id: int
    category_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "category_name": self.category_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserCategory":
        return cls(
            id=str(data["id"]),
            category_id=int(_pick(data, "category_id", "categoryId")),
            category_name=_pick(data, "category_name", "categoryName"),
        )


@dataclass(frozen=True)
class ExpenseItem:
    id: str
    amount: Decimal
    category_id: int
    category_name: str
    description: str
    date: datetime
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the expense to JSON-friendly natives."""
        return {
            "id": self.id,
            "amount": f"{self.amount:.2f}",
            "category_id": self.category_id,
            "category_name": self.category_name,
            "description": self.description,
            "notes": self.notes,
            "date": isoformat_utc(self.date),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExpenseItem":
        """Hydrate an ExpenseItem from JSON-native data."""
        return cls(
            id=str(data["id"]),
            amount=Decimal(str(data["amount"])),
            category_id=int(_pick(data, "category_id", "categoryId")),
            category_name=_pick(data, "category_name", "categoryName", default=""),
            description=data["description"],
            notes=data.get("notes") or None,
            date=parse_datetime(data["date"]),
        )


@dataclass(frozen=True)
class SavingsItem:
    id: str
    name: str
    type: str
    bank_name: str
    current_amount: Decimal
    goal_amount: Decimal
    created_at: datetime
    updated_at: datetime
    account_number: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "bank_name": self.bank_name,
            "account_number": self.account_number,
            "current_amount": f"{self.current_amount:.2f}",
            "goal_amount": f"{self.goal_amount:.2f}",
            "notes": self.notes,
            "created_at": isoformat_utc(self.created_at),
            "updated_at": isoformat_utc(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SavingsItem":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            type=data["type"],
            bank_name=_pick(data, "bank_name", "bankName"),
            account_number=_pick(data, "account_number", "accountNumber") or None,
            current_amount=Decimal(str(_pick(data, "current_amount", "currentAmount", default=0))),
            goal_amount=Decimal(str(_pick(data, "goal_amount", "goalAmount"))),
            notes=data.get("notes") or None,
            created_at=parse_datetime(_pick(data, "created_at", "date")),
            updated_at=parse_datetime(_pick(data, "updated_at", "lastUpdated", "created_at", "date")),
        )


@dataclass(frozen=True)
class IncomeItem:
    """An income source as seen by the income screens and summaries."""

    id: str
    amount: Decimal
    source: str
    frequency: str
    income_name: str
    created_at: datetime
    updated_at: datetime
    user_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amount": f"{self.amount:.2f}",
            "source": self.source,
            "frequency": self.frequency,
            "income_name": self.income_name,
            "created_at": isoformat_utc(self.created_at),
            "updated_at": isoformat_utc(self.updated_at),
            "user_id": self.user_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IncomeItem":
        created_at = _optional_datetime(_pick(data, "created_at", "createdAt", "date"))
        if created_at is None:
            created_at = datetime.now(timezone.utc)
        updated_at = _optional_datetime(_pick(data, "updated_at", "updatedAt")) or created_at
        return cls(
            id=str(data["id"]),
            amount=Decimal(str(data["amount"])),
            source=data["source"],
            frequency=data["frequency"],
            income_name=_pick(data, "income_name", "name", default=""),
            created_at=created_at,
            updated_at=updated_at,
            user_id=_pick(data, "user_id", "userId"),
        )
