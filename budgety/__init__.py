"""Core business logic package for Budgety."""

from .exceptions import (
    AuthenticationError,
    EmailDeliveryError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from .models import Category, ExpenseItem, IncomeItem, SavingsItem, UserCategory
from .optimistic import Action, OptimisticIncomeList, apply_action
from .services import CategoryService, ExpenseService, QuickIncomeService, SavingsService
from .storage import JSONStorage

__all__ = [
    "Action",
    "Category",
    "CategoryService",
    "ExpenseItem",
    "ExpenseService",
    "IncomeItem",
    "JSONStorage",
    "OptimisticIncomeList",
    "QuickIncomeService",
    "SavingsItem",
    "SavingsService",
    "UserCategory",
    "apply_action",
    "AuthenticationError",
    "EmailDeliveryError",
    "PersistenceError",
    "RecordNotFoundError",
    "ValidationError",
]
