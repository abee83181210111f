"""Optimistic income updates reconciled against later server responses."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence

from .models import IncomeItem

logger = logging.getLogger(__name__)

ADD = "add"
EDIT = "edit"
DELETE = "delete"


@dataclass(frozen=True)
class Action:
    type: str
    item: Optional[IncomeItem] = None
    id: Optional[str] = None

    @classmethod
    def add(cls, item: IncomeItem) -> "Action":
        return cls(type=ADD, item=item)

    @classmethod
    def edit(cls, item: IncomeItem) -> "Action":
        return cls(type=EDIT, item=item)

    @classmethod
    def delete(cls, item_id: str) -> "Action":
        return cls(type=DELETE, id=item_id)


def apply_action(state: Sequence[IncomeItem], action: Action) -> List[IncomeItem]:
    """Return a new list with ``action`` applied; ``state`` is left untouched."""
    if action.type == DELETE:
        return [item for item in state if item.id != action.id]
    if action.type == ADD and action.item is not None:
        return sorted([*state, action.item], key=lambda item: item.created_at, reverse=True)
    if action.type == EDIT and action.item is not None:
        edited = action.item
        return [
            replace(item, **_changed_fields(edited)) if item.id == edited.id else item
            for item in state
        ]
    return list(state)


def _changed_fields(item: IncomeItem) -> Dict[str, object]:
    return {
        "amount": item.amount,
        "source": item.source,
        "frequency": item.frequency,
        "income_name": item.income_name,
        "updated_at": item.updated_at,
    }


class OptimisticIncomeList:
    """Server-confirmed income plus the local actions still awaiting a response.

    ``view`` is what the income screen shows. Each :meth:`push` returns a
    token; the caller later reports the outcome with :meth:`settle` (the
    server call succeeded, so fresh server state replaces the cache) or
    :meth:`fail` (the action is dropped and the view falls back to the last
    confirmed state).
    """

    def __init__(self, server_items: Sequence[IncomeItem] = ()) -> None:
        self._server: List[IncomeItem] = list(server_items)
        self._pending: Dict[int, Action] = {}
        self._tokens = itertools.count(1)

    @property
    def server_items(self) -> List[IncomeItem]:
        return list(self._server)

    @property
    def pending(self) -> List[Action]:
        return [self._pending[token] for token in sorted(self._pending)]

    @property
    def view(self) -> List[IncomeItem]:
        state: List[IncomeItem] = list(self._server)
        for action in self.pending:
            state = apply_action(state, action)
        return state

    def push(self, action: Action) -> int:
        token = next(self._tokens)
        self._pending[token] = action
        return token

    def settle(self, token: int, server_items: Optional[Sequence[IncomeItem]] = None) -> None:
        self._pending.pop(token, None)
        if server_items is not None:
            self._server = list(server_items)

    def fail(self, token: int) -> Optional[Action]:
        action = self._pending.pop(token, None)
        if action is not None:
            logger.warning("Rolled back optimistic %s after a failed server call", action.type)
        return action

    def refresh(self, server_items: Sequence[IncomeItem]) -> None:
        self._server = list(server_items)
