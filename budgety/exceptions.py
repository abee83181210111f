"""Domain-specific exceptions for the Budgety core services."""

from typing import Dict, List, Optional


class ValidationError(ValueError):
    """Raised when provided data does not meet validation requirements.

    ``issues`` holds one ``{"path": field, "message": text}`` entry per failing
    field so callers can show a message beneath each form input.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        issues: Optional[List[Dict[str, Optional[str]]]] = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        if issues is None:
            issues = [{"path": field, "message": message}]
        self.issues = issues

    def message_for(self, field: str) -> Optional[str]:
        for issue in self.issues:
            if issue["path"] == field:
                return issue["message"]
        return None


class RecordNotFoundError(LookupError):
    """Raised when an expense, savings, income or category record cannot be located."""


class PersistenceError(IOError):
    """Raised when the persistence layer encounters unrecoverable issues."""


class AuthenticationError(PermissionError):
    """Raised when credentials, sessions or one-time codes are rejected."""

    def __init__(self, message: str, status: int = 401) -> None:
        super().__init__(message)
        self.status = status


class EmailDeliveryError(RuntimeError):
    """Raised when the email API refuses or fails to send a message."""
