"""Server actions: per-user income CRUD against the database and account reads.

Every action returns an :class:`ActionResult` rather than raising, so a caller
without a session gets the same ``Unauthorized`` envelope from every action.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from budgety.exceptions import PersistenceError, ValidationError
from budgety.models import IncomeItem
from budgety.services import ExpenseService, SavingsService
from budgety.validators import validate_income_payload

from .database import Income, User, db, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionResult:
    error: Optional[str]
    message: str
    data: Any = None
    status: int = 200
    issues: Optional[List[Dict[str, Optional[str]]]] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": self.error, "message": self.message, "data": self.data}
        if self.issues:
            payload["issues"] = self.issues
        return payload


UNAUTHORIZED = ActionResult(error="Unauthorized", message="Unauthorized", status=401)


def _authenticated(user: Optional[User]) -> bool:
    return user is not None and bool(getattr(user, "is_authenticated", False))


def _owned_income(user: User, income_id: str) -> Optional[Income]:
    return db.session.execute(
        db.select(Income).filter_by(id=income_id, user_id=user.id)
    ).scalar_one_or_none()


def list_income_items(user: User) -> List[IncomeItem]:
    rows = db.session.execute(
        db.select(Income).filter_by(user_id=user.id).order_by(Income.created_at.desc())
    ).scalars()
    return [row.to_item() for row in rows]


def get_income(user: Optional[User]) -> ActionResult:
    if not _authenticated(user):
        return UNAUTHORIZED
    try:
        items = list_income_items(user)
    except SQLAlchemyError as exc:
        logger.error("Error getting income: %s", exc)
        return ActionResult(error="Failed to get income", message="Failed to get income", status=500)
    return ActionResult(
        error=None,
        message="Income fetched successfully",
        data=[item.to_dict() for item in items],
    )


def submit_new_income(user: Optional[User], form: Mapping[str, object]) -> ActionResult:
    if not _authenticated(user):
        return UNAUTHORIZED
    try:
        data = validate_income_payload(dict(form))
    except ValidationError as exc:
        return ActionResult(
            error=str(exc), message="Failed to submit new income", status=400, issues=exc.issues
        )

    try:
        income = Income(user_id=user.id, **data)
        db.session.add(income)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Error submitting new income: %s", exc)
        return ActionResult(
            error="Failed to submit new income", message="Failed to submit new income", status=500
        )

    logger.info("Stored new income %s for user %s", income.id, user.id)
    return ActionResult(
        error=None,
        message="New income submitted successfully",
        data=income.to_item().to_dict(),
        status=201,
    )


def edit_income(user: Optional[User], form: Mapping[str, object], income_id: Optional[str]) -> ActionResult:
    if not _authenticated(user):
        return UNAUTHORIZED
    if not income_id:
        return ActionResult(error="Income ID is required", message="Income ID is required", status=400)
    try:
        data = validate_income_payload(dict(form))
    except ValidationError as exc:
        return ActionResult(error=str(exc), message="Invalid data", status=400, issues=exc.issues)

    try:
        income = _owned_income(user, income_id)
        if income is None:
            return ActionResult(
                error="Failed to update income", message="Failed to update income", status=404
            )
        for field, value in data.items():
            setattr(income, field, value)
        income.updated_at = utcnow()
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Error updating income: %s", exc)
        return ActionResult(error="Failed to update income", message="Failed to update income", status=500)

    return ActionResult(
        error=None, message="Income updated successfully", data=income.to_item().to_dict()
    )


def delete_income(user: Optional[User], income_id: str) -> ActionResult:
    if not _authenticated(user):
        return UNAUTHORIZED
    try:
        income = _owned_income(user, income_id)
        if income is None:
            return ActionResult(
                error="Failed to delete income", message="Failed to delete income", status=404
            )
        deleted = income.to_item().to_dict()
        db.session.delete(income)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Error deleting income: %s", exc)
        return ActionResult(error="Failed to delete income", message="Failed to delete income", status=500)

    return ActionResult(error=None, message="Income deleted successfully", data=deleted)


def get_expenses(user: Optional[User], expenses: Optional[ExpenseService]) -> ActionResult:
    if not _authenticated(user) or expenses is None:
        return UNAUTHORIZED
    try:
        items = expenses.list()
    except PersistenceError as exc:
        logger.error("Error getting expenses: %s", exc)
        return ActionResult(error="Failed to get expenses", message="Failed to get expenses", status=500)
    if items:
        return ActionResult(
            error=None,
            message="Expenses fetched successfully",
            data=[expense.to_dict() for expense in items],
        )
    return ActionResult(error=None, message="No expenses found", data=[])


def get_user_info(
    user: Optional[User],
    expenses: Optional[ExpenseService],
    savings: Optional[SavingsService],
) -> ActionResult:
    if not _authenticated(user) or expenses is None or savings is None:
        return UNAUTHORIZED
    try:
        info = user.to_dict()
        info["incomes"] = [item.to_dict() for item in list_income_items(user)]
        info["expenses"] = [expense.to_dict() for expense in expenses.list()]
        info["savings"] = [item.to_dict() for item in savings.list()]
    except (SQLAlchemyError, PersistenceError) as exc:
        logger.error("Error getting user info: %s", exc)
        return ActionResult(error="Failed to get user info", message="Failed to get user info", status=500)
    return ActionResult(error=None, message="User info fetched successfully", data=info)
