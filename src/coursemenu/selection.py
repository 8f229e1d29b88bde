"""
Selection state for confirmed entities.

Two policies share one interface:
- multi: ordered list of names, duplicates allowed, insertion order kept
- single: at most one name; adding replaces it
"""
from __future__ import annotations

from enum import Enum
from typing import Protocol


class SelectionPolicy(str, Enum):
    MULTI = "multi"
    SINGLE = "single"


class EntitySelection(Protocol):
    policy: SelectionPolicy

    @property
    def names(self) -> tuple[str, ...]:
        ...

    @property
    def accepts_more(self) -> bool:
        ...

    def add(self, name: str):
        ...

    def remove(self, name: str) -> bool:
        ...

    def remove_most_recent(self) -> str | None:
        ...

    def clear(self):
        ...

    def __len__(self) -> int:
        ...


class MultiSelection:
    policy = SelectionPolicy.MULTI

    def __init__(self):
        self._names: list[str] = []

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._names)

    @property
    def accepts_more(self) -> bool:
        return True

    def add(self, name: str):
        self._names.append(str(name))

    def remove(self, name: str) -> bool:
        """Removes every occurrence of name."""
        before = len(self._names)
        self._names = [existing for existing in self._names if existing != name]
        return len(self._names) != before

    def remove_most_recent(self) -> str | None:
        if not self._names:
            return None
        return self._names.pop()

    def clear(self):
        self._names.clear()

    def __len__(self) -> int:
        return len(self._names)


class SingleSelection:
    policy = SelectionPolicy.SINGLE

    def __init__(self):
        self._name: str | None = None

    @property
    def names(self) -> tuple[str, ...]:
        return (self._name,) if self._name is not None else ()

    @property
    def accepts_more(self) -> bool:
        return self._name is None

    def add(self, name: str):
        self._name = str(name)

    def remove(self, name: str) -> bool:
        if self._name is None or self._name != name:
            return False
        self._name = None
        return True

    def remove_most_recent(self) -> str | None:
        removed, self._name = self._name, None
        return removed

    def clear(self):
        self._name = None

    def __len__(self) -> int:
        return 0 if self._name is None else 1


def make_selection(policy: SelectionPolicy | str) -> EntitySelection:
    if SelectionPolicy(policy) is SelectionPolicy.SINGLE:
        return SingleSelection()
    return MultiSelection()
