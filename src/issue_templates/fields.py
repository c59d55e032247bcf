"""Form field bindings the application engine reads from and writes to."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol


class FieldBinding(Protocol):
    """A bidirectional text binding (the issue subject or description)."""

    def get(self) -> str: ...

    def set(self, value: str) -> None: ...


class TextField:
    """Plain in-memory text field, optionally notifying a listener on writes."""

    def __init__(self, value: str = "", *, on_change: Callable[[str], None] | None = None) -> None:
        self._value = value
        self._on_change = on_change

    def get(self) -> str:
        return self._value

    def set(self, value: str) -> None:
        self._value = value
        if self._on_change is not None:
            self._on_change(value)

    def __repr__(self) -> str:
        return f"TextField({self._value!r})"
