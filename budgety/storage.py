"""Per-user JSON documents standing in for the browser's local storage."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)

# Collection keys, one JSON array each.
CATEGORIES_KEY = "selectedCategory"
EXPENSES_KEY = "expenses"
INCOME_KEY = "income"
SAVINGS_KEY = "savings"

_USER_DIR_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def resource_for(key: str) -> str:
    return f"{key}.json"


class JSONStorage:
    """Whole-array JSON documents under one directory, written via a temp file."""

    def __init__(self, base_path: Path) -> None:
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)

    def load(self, resource: str) -> List[Dict[str, Any]]:
        path = self._path(resource)
        if not path.is_file():
            return []
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupted JSON document {path}") from exc
        except OSError as exc:
            raise PersistenceError(f"Unable to read {path}") from exc

        if not isinstance(payload, list):
            raise PersistenceError(f"Expected a JSON array in {path}")
        return payload

    def save(self, resource: str, records: Iterable[Dict[str, Any]]) -> None:
        path = self._path(resource)
        staging = path.with_name(path.name + ".tmp")
        documents = list(records)
        try:
            staging.write_text(json.dumps(documents, indent=2), encoding="utf-8")
            # Atomic on POSIX: readers see the old or the new array, never half of one.
            staging.replace(path)
        except OSError as exc:
            raise PersistenceError(f"Unable to write {path}") from exc
        logger.debug("Saved %d records to %s", len(documents), path)

    def for_user(self, user_id: str) -> "JSONStorage":
        """Return a storage rooted in the user's own directory."""
        if not isinstance(user_id, str) or not _USER_DIR_PATTERN.fullmatch(user_id):
            raise PersistenceError(f"Invalid storage owner {user_id!r}")
        return JSONStorage(self._base_path / "users" / user_id)

    def _path(self, resource: str) -> Path:
        return self._base_path / resource

    @property
    def base_path(self) -> Path:
        return self._base_path
