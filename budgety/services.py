"""Framework-agnostic services for the document-backed Budgety collections."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, TypeVar
from uuid import uuid4

from . import summaries
from .catalog import INCOME_SOURCES, SAVINGS_TYPES, find_category
from .exceptions import PersistenceError, RecordNotFoundError, ValidationError
from .models import ExpenseItem, IncomeItem, SavingsItem, UserCategory
from .storage import CATEGORIES_KEY, EXPENSES_KEY, INCOME_KEY, SAVINGS_KEY, JSONStorage, resource_for
from .validators import (
    FormValidator,
    parse_amount,
    validate_category_id,
    validate_datetime,
    validate_enum,
    validate_income_payload,
    validate_optional_str,
    validate_required_str,
)

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", UserCategory, ExpenseItem, SavingsItem, IncomeItem)


class _DocumentService(Generic[RecordT]):
    """Keeps one collection in memory and rewrites it wholesale on every mutation."""

    key: str = ""
    label: str = "Record"

    def __init__(self, storage: JSONStorage, hydrate: Callable[[Dict[str, Any]], RecordT]) -> None:
        self._storage = storage
        self._resource = resource_for(self.key)
        self._hydrate = hydrate
        self._records: Dict[str, RecordT] = {}
        self.load()

    def load(self) -> None:
        raw_records = self._storage.load(self._resource)
        try:
            # Older category documents were addressed by position and carry no id.
            hydrated = (
                self._hydrate({"id": str(index), **payload}) for index, payload in enumerate(raw_records)
            )
            self._records = {record.id: record for record in hydrated}
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            raise PersistenceError(f"Stored {self.key} records have an unexpected shape") from exc

    def get(self, record_id: str) -> RecordT:
        return self._get_or_raise(record_id)

    def delete(self, record_id: str) -> None:
        self._get_or_raise(record_id)
        del self._records[record_id]
        self._persist()
        logger.info("Deleted %s %s", self.label.lower(), record_id)

    def _store(self, record: RecordT) -> RecordT:
        self._records[record.id] = record
        self._persist()
        return record

    def _persist(self) -> None:
        try:
            self._storage.save(self._resource, [record.to_dict() for record in self._records.values()])
        except PersistenceError:
            raise
        except Exception as exc:  # pragma: no cover
            raise PersistenceError(f"Unexpected error while saving {self.key}") from exc

    def _get_or_raise(self, record_id: str) -> RecordT:
        try:
            return self._records[record_id]
        except KeyError as exc:
            raise RecordNotFoundError(f"{self.label} {record_id} not found") from exc


class CategoryService(_DocumentService[UserCategory]):
    """Manages the user's own category labels."""

    key = CATEGORIES_KEY
    label = "Category"

    def __init__(self, storage: JSONStorage) -> None:
        super().__init__(storage, UserCategory.from_dict)

    def add(self, payload: Dict[str, object]) -> UserCategory:
        category = UserCategory(**self._validate_payload(payload))
        return self._store(category)

    def update(self, category_id: str, changes: Dict[str, object]) -> UserCategory:
        existing = self._get_or_raise(category_id)
        merged_payload = {**existing.to_dict(), **changes}
        return self._store(UserCategory(**self._validate_payload(merged_payload, current=existing)))

    def list(self) -> List[UserCategory]:
        return sorted(self._records.values(), key=lambda cat: cat.category_name.lower())

    def _validate_payload(
        self, payload: Dict[str, object], *, current: Optional[UserCategory] = None
    ) -> Dict[str, object]:
        form = FormValidator()
        category_id = form.check(validate_category_id, payload.get("category_id"))
        name = form.check(
            validate_required_str,
            payload.get("category_name"),
            "category_name",
            50,
            "Category name is required",
        )
        if name is not None:
            canonical = name.lower()
            for category in self._records.values():
                if current and category.id == current.id:
                    continue
                if category.category_name.lower() == canonical:
                    form.add("category_name", "Category name must be unique")
                    break
        form.raise_for_issues()
        return {
            "id": current.id if current else str(uuid4()),
            "category_id": category_id,
            "category_name": name,
        }


class ExpenseService(_DocumentService[ExpenseItem]):
    """Manages expense records and mediates persistence."""

    key = EXPENSES_KEY
    label = "Expense"

    def __init__(self, storage: JSONStorage) -> None:
        super().__init__(storage, ExpenseItem.from_dict)

    def add(self, payload: Dict[str, object]) -> ExpenseItem:
        expense = ExpenseItem(**self._validate_payload(payload))
        logger.info("Added expense %s (%s)", expense.id, expense.category_name)
        return self._store(expense)

    def update(self, expense_id: str, changes: Dict[str, object]) -> ExpenseItem:
        existing = self._get_or_raise(expense_id)
        merged_payload = {**existing.to_dict(), **changes}
        if "date" not in changes:
            # An edit re-stamps the expense with the time of the edit.
            merged_payload["date"] = None
        return self._store(ExpenseItem(**self._validate_payload(merged_payload, current=existing)))

    def list(self, **filters: object) -> List[ExpenseItem]:
        records = list(self._apply_filters(self._records.values(), filters))
        return sorted(records, key=lambda exp: exp.date)

    def total(self, **filters: object) -> Decimal:
        return summaries.sum_amounts(expense.amount for expense in self.list(**filters))

    def _validate_payload(
        self, payload: Dict[str, object], *, current: Optional[ExpenseItem] = None
    ) -> Dict[str, object]:
        form = FormValidator()
        amount = form.check(parse_amount, payload.get("amount"), "amount", "Amount must be greater than 0")
        category_id = form.check(validate_category_id, payload.get("category_id"))
        description = form.check(
            validate_required_str, payload.get("description"), "description", 200, "Description is required"
        )
        notes = form.check(validate_optional_str, payload.get("notes"), "notes", 500)
        raw_date = payload.get("date")
        date = form.check(validate_datetime, raw_date, "date") if raw_date is not None else _utcnow()
        form.raise_for_issues()

        category = find_category(category_id)
        return {
            "id": current.id if current else str(uuid4()),
            "amount": amount,
            "category_id": category_id,
            "category_name": category.name if category else "",
            "description": description,
            "notes": notes,
            "date": date,
        }

    def _apply_filters(self, records: Iterable[ExpenseItem], filters: Dict[str, object]) -> Iterable[ExpenseItem]:
        search = (
            str(filters["search"]).strip().lower()
            if filters.get("search") is not None
            else None
        )
        category_id = (
            validate_category_id(filters["category_id"])
            if filters.get("category_id") not in (None, "", "all")
            else None
        )

        def matches(expense: ExpenseItem) -> bool:
            if category_id is not None and expense.category_id != category_id:
                return False
            if search and search not in expense.description.lower() and search not in expense.category_name.lower():
                return False
            return True

        return filter(matches, records)


class SavingsService(_DocumentService[SavingsItem]):
    """Manages savings goals."""

    key = SAVINGS_KEY
    label = "Savings"

    def __init__(self, storage: JSONStorage) -> None:
        super().__init__(storage, SavingsItem.from_dict)

    def add(self, payload: Dict[str, object]) -> SavingsItem:
        item = SavingsItem(**self._validate_payload(payload))
        logger.info("Added savings goal %s", item.id)
        return self._store(item)

    def update(self, savings_id: str, changes: Dict[str, object]) -> SavingsItem:
        existing = self._get_or_raise(savings_id)
        merged_payload = {**existing.to_dict(), **changes}
        return self._store(SavingsItem(**self._validate_payload(merged_payload, current=existing)))

    def list(self) -> List[SavingsItem]:
        return sorted(self._records.values(), key=lambda item: item.created_at)

    def totals(self) -> summaries.SavingsTotals:
        return summaries.savings_totals(self.list())

    def _validate_payload(
        self, payload: Dict[str, object], *, current: Optional[SavingsItem] = None
    ) -> Dict[str, object]:
        form = FormValidator()
        raw_current = payload.get("current_amount")
        if raw_current is None or (isinstance(raw_current, str) and not raw_current.strip()):
            raw_current = 0
        data = {
            "name": form.check(
                validate_required_str, payload.get("name"), "name", 100, "Savings name is required"
            ),
            "type": form.check(
                validate_enum, payload.get("type"), "type", SAVINGS_TYPES, "Please select a savings type"
            ),
            "bank_name": form.check(
                validate_required_str, payload.get("bank_name"), "bank_name", 100, "Bank name is required"
            ),
            "account_number": form.check(
                validate_optional_str, payload.get("account_number"), "account_number", 34
            ),
            "current_amount": form.check(
                parse_amount,
                raw_current,
                "current_amount",
                "Current amount must be 0 or greater",
                allow_zero=True,
            ),
            "goal_amount": form.check(
                parse_amount, payload.get("goal_amount"), "goal_amount", "Goal amount must be greater than 0"
            ),
            "notes": form.check(validate_optional_str, payload.get("notes"), "notes", 500),
        }
        form.raise_for_issues()

        now = _utcnow()
        data["id"] = current.id if current else str(uuid4())
        data["created_at"] = current.created_at if current else now
        data["updated_at"] = now
        return data


class QuickIncomeService(_DocumentService[IncomeItem]):
    """Holds the quick-add income entries, replaced as a whole on each submit."""

    key = INCOME_KEY
    label = "Income"

    def __init__(self, storage: JSONStorage) -> None:
        super().__init__(storage, IncomeItem.from_dict)

    def replace(self, entries: Iterable[Dict[str, object]]) -> List[IncomeItem]:
        items: List[IncomeItem] = []
        issues = []
        for index, entry in enumerate(entries):
            payload = dict(entry)
            if not payload.get("income_name") and isinstance(payload.get("source"), str):
                payload["income_name"] = INCOME_SOURCES.get(payload["source"].strip().lower(), payload["source"])
            try:
                data = validate_income_payload(payload)
            except ValidationError as exc:
                issues.extend(
                    {"path": f"{index}.{issue['path']}", "message": issue["message"]} for issue in exc.issues
                )
                continue
            now = _utcnow()
            items.append(IncomeItem(id=str(uuid4()), created_at=now, updated_at=now, **data))
        if issues:
            raise ValidationError(issues[0]["message"] or "Invalid income entries", issues=issues)

        self._records = {item.id: item for item in items}
        self._persist()
        return items

    def list(self) -> List[IncomeItem]:
        return sorted(self._records.values(), key=lambda item: item.created_at)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
