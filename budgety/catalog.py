"""Fixed catalogs: expense categories, income sources, frequencies and savings types."""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from .models import Category

PER_WEEK = "per-week"
PER_MONTH = "per-month"
PER_YEAR = "per-year"

FREQUENCIES = (PER_WEEK, PER_MONTH, PER_YEAR)

FREQUENCY_LABELS: Dict[str, str] = {
    PER_WEEK: "Weekly",
    PER_MONTH: "Monthly",
    PER_YEAR: "Yearly",
}

CATEGORIES: Tuple[Category, ...] = (
    Category(id=1, name="Food", icon="pizza", color="#1a64db", background_color="#e7effb"),
    Category(id=2, name="Transportation", icon="bus", color="#f59e42", background_color="#fff5e6"),
    Category(id=3, name="Entertainment", icon="movie", color="#e44e68", background_color="#fde4ec"),
    Category(id=4, name="Bills", icon="receipt", color="#60b27e", background_color="#e7f7ee"),
    Category(id=5, name="Savings", icon="cash-banknote", color="#ffd600", background_color="#fffbe7"),
    Category(id=6, name="Other", icon="plus", color="#60b27e", background_color="#e7f7ee"),
)


INCOME_SOURCES: Dict[str, str] = {
    "salary": "Salary",
    "freelance": "Freelance",
    "investment": "Investments",
    "business": "Business",
    "other": "Other Sources",
}

INCOME_SOURCE_COLORS: Dict[str, str] = {
    "salary": "#3b82f6",
    "freelance": "#a855f7",
    "investment": "#10b981",
    "business": "#f97316",
    "other": "#6366f1",
}

DEFAULT_CHART_COLOR = "#6b7280"

SAVINGS_TYPES: Dict[str, str] = {
    "emergency": "Emergency Fund",
    "vacation": "Vacation",
    "house": "House Down Payment",
    "car": "Car Purchase",
    "retirement": "Retirement",
    "wedding": "Wedding",
    "education": "Education",
    "other": "Other",
}

SAVINGS_COLORS: Dict[str, Tuple[str, str]] = {
    "emergency": ("#e44e68", "#fde4ec"),
    "vacation": ("#1a64db", "#e7effb"),
    "house": ("#f59e42", "#fff5e6"),
    "car": ("#60b27e", "#e7f7ee"),
    "retirement": ("#9b59b6", "#f4ecf7"),
    "wedding": ("#e44e68", "#fde4ec"),
    "education": ("#1a64db", "#e7effb"),
    "other": ("#60b27e", "#e7f7ee"),
}


def find_category(category_id: object) -> Optional[Category]:
    for category in CATEGORIES:
        if category.id == category_id:
            return category
    return None

