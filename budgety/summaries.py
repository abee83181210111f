"""Dashboard arithmetic: totals, per-period income conversion and breakdowns."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from .catalog import (
    CATEGORIES,
    DEFAULT_CHART_COLOR,
    INCOME_SOURCE_COLORS,
    INCOME_SOURCES,
    PER_MONTH,
    PER_WEEK,
    PER_YEAR,
    find_category,
)
from .models import ExpenseItem, IncomeItem, SavingsItem, isoformat_utc

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# Multipliers taking an amount from one period to another. Weeks and months
# use the 4-weeks-per-month convention of the income detail view.
_CONVERSIONS: Dict[str, Dict[str, Decimal]] = {
    PER_WEEK: {PER_WEEK: Decimal(1), PER_MONTH: Decimal(4), PER_YEAR: Decimal(52)},
    PER_MONTH: {PER_WEEK: Decimal(1) / Decimal(4), PER_MONTH: Decimal(1), PER_YEAR: Decimal(12)},
    PER_YEAR: {PER_WEEK: Decimal(1) / Decimal(52), PER_MONTH: Decimal(1) / Decimal(12), PER_YEAR: Decimal(1)},
}


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _percent(part: Decimal, whole: Decimal) -> Decimal:
    if whole <= 0:
        return Decimal("0.0")
    return (part / whole * HUNDRED).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


def sum_amounts(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, start=ZERO)


@dataclass(frozen=True)
class IncomeTotals:
    per_week: Decimal
    per_month: Decimal
    per_year: Decimal
    total: Decimal
    count: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "per_week": f"{self.per_week:.2f}",
            "per_month": f"{self.per_month:.2f}",
            "per_year": f"{self.per_year:.2f}",
            "total": f"{self.total:.2f}",
            "count": self.count,
        }


def income_totals(items: Sequence[IncomeItem]) -> IncomeTotals:
    """Sum income amounts grouped by their own frequency.

    ``total`` is the raw sum of every amount regardless of frequency; use
    :func:`normalized_income` for a figure expressed in one period.
    """
    by_frequency: Dict[str, Decimal] = {}
    for item in items:
        by_frequency[item.frequency] = by_frequency.get(item.frequency, ZERO) + item.amount
    return IncomeTotals(
        per_week=by_frequency.get(PER_WEEK, ZERO),
        per_month=by_frequency.get(PER_MONTH, ZERO),
        per_year=by_frequency.get(PER_YEAR, ZERO),
        total=sum_amounts(by_frequency.values()),
        count=len(items),
    )


def convert_amount(amount: Decimal, from_frequency: str, to_frequency: str) -> Decimal:
    """Express ``amount`` received ``from_frequency`` as a ``to_frequency`` amount."""
    try:
        factor = _CONVERSIONS[from_frequency][to_frequency]
    except KeyError as exc:
        raise ValueError(f"Unknown frequency conversion {from_frequency!r} -> {to_frequency!r}") from exc
    return _money(amount * factor)


def normalized_income(items: Iterable[IncomeItem], period: str = PER_MONTH) -> Decimal:
    return sum_amounts(convert_amount(item.amount, item.frequency, period) for item in items)


def equivalents(item: IncomeItem) -> Dict[str, str]:
    """Weekly, monthly and yearly equivalents shown on the income detail view."""
    return {
        period: f"{convert_amount(item.amount, item.frequency, period):.2f}"
        for period in (PER_WEEK, PER_MONTH, PER_YEAR)
    }


@dataclass(frozen=True)
class SourceSlice:
    source: str
    label: str
    amount: Decimal
    fill: str

    def to_dict(self) -> Dict[str, object]:
        return {"source": self.source, "label": self.label, "amount": f"{self.amount:.2f}", "fill": self.fill}


def income_by_source(items: Iterable[IncomeItem]) -> List[SourceSlice]:
    """Merge income amounts per source for the income pie chart."""
    merged: "OrderedDict[str, Decimal]" = OrderedDict()
    for item in items:
        merged[item.source] = merged.get(item.source, ZERO) + item.amount
    return [
        SourceSlice(
            source=source,
            label=INCOME_SOURCES.get(source, source),
            amount=amount,
            fill=INCOME_SOURCE_COLORS.get(source, DEFAULT_CHART_COLOR),
        )
        for source, amount in merged.items()
    ]


@dataclass(frozen=True)
class ExpenseStats:
    total: Decimal
    category_totals: Dict[int, Decimal]
    top_category_id: int
    top_category_name: str
    top_category_total: Decimal

    def to_dict(self) -> Dict[str, object]:
        return {
            "total": f"{self.total:.2f}",
            "category_totals": {str(key): f"{value:.2f}" for key, value in self.category_totals.items()},
            "top_category": {
                "category_id": self.top_category_id,
                "category_name": self.top_category_name,
                "total": f"{self.top_category_total:.2f}",
            },
        }


def expense_stats(expenses: Iterable[ExpenseItem]) -> ExpenseStats:
    category_totals: Dict[int, Decimal] = {}
    for expense in expenses:
        category_totals[expense.category_id] = category_totals.get(expense.category_id, ZERO) + expense.amount

    top_id, top_name, top_total = 0, "", ZERO
    for category_id, total in category_totals.items():
        if total > top_total:
            category = find_category(category_id)
            top_id, top_name, top_total = category_id, category.name if category else "Unknown", total

    return ExpenseStats(
        total=sum_amounts(category_totals.values()),
        category_totals=category_totals,
        top_category_id=top_id,
        top_category_name=top_name,
        top_category_total=top_total,
    )


@dataclass(frozen=True)
class CategoryBreakdown:
    category_id: int
    category_name: str
    total: Decimal
    transaction_count: int
    average: Decimal
    percentage: Decimal
    last_expense_date: Optional[datetime]
    color: str
    background_color: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "category_id": self.category_id,
            "category_name": self.category_name,
            "total": f"{self.total:.2f}",
            "transaction_count": self.transaction_count,
            "average": f"{self.average:.2f}",
            "percentage": f"{self.percentage:.1f}",
            "last_expense_date": isoformat_utc(self.last_expense_date) if self.last_expense_date else None,
            "color": self.color,
            "background_color": self.background_color,
        }


def category_breakdown(expenses: Sequence[ExpenseItem]) -> List[CategoryBreakdown]:
    """Per-category totals over the whole catalog, largest first."""
    grand_total = sum_amounts(expense.amount for expense in expenses)
    breakdowns = []
    for category in CATEGORIES:
        matching = [expense for expense in expenses if expense.category_id == category.id]
        total = sum_amounts(expense.amount for expense in matching)
        breakdowns.append(
            CategoryBreakdown(
                category_id=category.id,
                category_name=category.name,
                total=total,
                transaction_count=len(matching),
                average=_money(total / len(matching)) if matching else ZERO,
                percentage=_percent(total, grand_total),
                last_expense_date=max((expense.date for expense in matching), default=None),
                color=category.color,
                background_color=category.background_color,
            )
        )
    # sorted() is stable, so equal totals keep catalog order.
    return sorted(breakdowns, key=lambda item: item.total, reverse=True)


def savings_progress(current: Decimal, goal: Decimal) -> Decimal:
    """Percentage of ``goal`` reached, capped at 100."""
    if goal == 0:
        return Decimal("0.0")
    return min(HUNDRED, _percent(current, goal))


@dataclass(frozen=True)
class SavingsTotals:
    total_current: Decimal
    total_goal: Decimal
    total_remaining: Decimal
    overall_progress: Decimal

    def to_dict(self) -> Dict[str, str]:
        return {
            "total_current": f"{self.total_current:.2f}",
            "total_goal": f"{self.total_goal:.2f}",
            "total_remaining": f"{self.total_remaining:.2f}",
            "overall_progress": f"{self.overall_progress:.1f}",
        }


def savings_totals(items: Sequence[SavingsItem]) -> SavingsTotals:
    total_current = sum_amounts(item.current_amount for item in items)
    total_goal = sum_amounts(item.goal_amount for item in items)
    return SavingsTotals(
        total_current=total_current,
        total_goal=total_goal,
        total_remaining=total_goal - total_current,
        overall_progress=_percent(total_current, total_goal),
    )


@dataclass(frozen=True)
class DashboardSummary:
    total_income: Decimal
    total_expenses: Decimal
    total_savings: Decimal
    remaining_balance: Decimal
    income_sources: List[SourceSlice]
    breakdown: List[CategoryBreakdown]

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_income": f"{self.total_income:.2f}",
            "total_expenses": f"{self.total_expenses:.2f}",
            "total_savings": f"{self.total_savings:.2f}",
            "remaining_balance": f"{self.remaining_balance:.2f}",
            "income_sources": [slice_.to_dict() for slice_ in self.income_sources],
            "breakdown": [item.to_dict() for item in self.breakdown],
        }


def dashboard_summary(
    incomes: Sequence[IncomeItem],
    expenses: Sequence[ExpenseItem],
    savings: Sequence[SavingsItem],
    period: str = PER_MONTH,
) -> DashboardSummary:
    """Income normalised to ``period`` against all recorded expenses and savings."""
    total_income = normalized_income(incomes, period)
    total_expenses = sum_amounts(expense.amount for expense in expenses)
    total_savings = sum_amounts(item.current_amount for item in savings)
    return DashboardSummary(
        total_income=total_income,
        total_expenses=total_expenses,
        total_savings=total_savings,
        remaining_balance=total_income - total_expenses,
        income_sources=income_by_source(incomes),
        breakdown=category_breakdown(expenses),
    )
