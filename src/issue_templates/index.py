"""In-memory title search over a resolved template set."""

from __future__ import annotations

from collections.abc import Iterable

from issue_templates.models import Template


class TemplateIndex:
    """Case-insensitive substring search by title, order-preserving.

    Resolved sets are small (tens of items), so the index is a flat tuple
    rebuilt whenever the project or tracker changes.
    """

    def __init__(self, templates: Iterable[Template] = ()) -> None:
        self._templates: tuple[Template, ...] = tuple(templates)
        self._keys: tuple[str, ...] = tuple(t.title.casefold() for t in self._templates)

    @classmethod
    def build(cls, templates: Iterable[Template]) -> TemplateIndex:
        return cls(templates)

    def __len__(self) -> int:
        return len(self._templates)

    @property
    def templates(self) -> tuple[Template, ...]:
        return self._templates

    def search(self, query: str) -> tuple[Template, ...]:
        """Templates whose title contains *query*, compared case-insensitively.

        Whitespace around *query* is ignored, so ``" bug "`` matches the same
        titles as ``"bug"`` and a whitespace-only query returns everything.
        """
        needle = query.strip().casefold()
        if not needle:
            return self._templates
        return tuple(tpl for tpl, key in zip(self._templates, self._keys, strict=True) if needle in key)
