"""Scope resolution -- which templates a project/tracker context can see.

The resolver walks the precomputed inheritance chain of a project, asks the
repository for each level's templates, drops orphans and disabled records,
and removes title collisions in favour of the closest project.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol

from issue_templates.errors import InvalidScopeError
from issue_templates.hierarchy import ProjectCatalog
from issue_templates.models import SpecificTracker, Template
from issue_templates.validation import normalize_title

logger = logging.getLogger(__name__)


class TemplateRepository(Protocol):
    """Read side of template storage, as the resolver consumes it."""

    def find_by_project_and_tracker(self, project_id: str, tracker_id: str) -> list[Template]: ...

    def find_all_for_project(self, project_id: str) -> list[Template]: ...


@dataclass(frozen=True)
class ResolvedTemplates:
    """Ordered, deduplicated templates visible for one project/tracker pair."""

    project_id: str
    tracker_id: str
    templates: tuple[Template, ...] = ()

    def __iter__(self) -> Iterator[Template]:
        return iter(self.templates)

    def __len__(self) -> int:
        return len(self.templates)

    def __bool__(self) -> bool:
        return bool(self.templates)

    def get(self, template_id: str) -> Template | None:
        for tpl in self.templates:
            if tpl.id == template_id:
                return tpl
        return None

    def default(self) -> Template | None:
        """The single default template, or None when there are zero or several."""
        defaults = [t for t in self.templates if t.is_default]
        if len(defaults) == 1:
            return defaults[0]
        if len(defaults) > 1:
            logger.debug(
                "Ignoring %d default templates for %s/%s: ambiguous",
                len(defaults),
                self.project_id,
                self.tracker_id,
            )
        return None

    def groups(self) -> list[tuple[str, tuple[Template, ...]]]:
        """Templates grouped per owning project, closest project first."""
        by_project: dict[str, list[Template]] = {}
        for tpl in self.templates:
            by_project.setdefault(tpl.project_id, []).append(tpl)
        ordered = list(by_project.items())
        ordered.reverse()
        return [(pid, tuple(tpls)) for pid, tpls in ordered]


class ScopeResolver:
    """Computes the visible template set for a project/tracker context."""

    def __init__(self, repository: TemplateRepository, catalog: ProjectCatalog) -> None:
        self.repository = repository
        self.catalog = catalog

    def _check_project(self, project_id: str | None) -> str:
        if not project_id or self.catalog.get_project(project_id) is None:
            logger.warning("Invalid scope: unknown project %r", project_id)
            raise InvalidScopeError(f"Unknown project: {project_id!r}", project_id=project_id)
        return project_id

    def _is_orphan(self, template: Template) -> bool:
        tracker = template.tracker
        if isinstance(tracker, SpecificTracker):
            return not self.catalog.has_tracker(tracker.tracker_id)
        return False

    def _contributing_levels(self, project_id: str) -> list[str]:
        """Inheritance chain root-to-self, minus ancestors without the template module."""
        chain = self.catalog.inheritance_chain(project_id)
        levels = []
        for pid in chain:
            project = self.catalog.get_project(pid)
            if pid != project_id and (project is None or not project.module_enabled):
                continue
            levels.append(pid)
        return levels

    def resolve_templates(self, project_id: str, tracker_id: str) -> ResolvedTemplates:
        """Ordered, deduplicated templates visible for *project_id* and *tracker_id*.

        Raises InvalidScopeError for an unknown project or tracker.
        Raises RepositoryUnavailable when the repository cannot be read.
        """
        project_id = self._check_project(project_id)
        if not tracker_id or not self.catalog.has_tracker(tracker_id):
            logger.warning("Invalid scope: unknown tracker %r for project %s", tracker_id, project_id)
            raise InvalidScopeError(f"Unknown tracker: {tracker_id!r}", project_id=project_id, tracker_id=tracker_id)

        levels: list[list[Template]] = []
        for pid in self._contributing_levels(project_id):
            fetched = [t for t in self.repository.find_by_project_and_tracker(pid, tracker_id) if t.enabled and not self._is_orphan(t)]
            specific = [t for t in fetched if not t.is_global]
            global_ = [t for t in fetched if t.is_global]
            levels.append(specific + global_)

        # Closest level claims a title first; farther levels lose collisions.
        seen: set[str] = set()
        kept_levels: list[list[Template]] = []
        for level in reversed(levels):
            kept: list[Template] = []
            for tpl in level:
                key = normalize_title(tpl.title)
                if key in seen:
                    continue
                seen.add(key)
                kept.append(tpl)
            kept_levels.append(kept)
        kept_levels.reverse()

        result = tuple(t for level in kept_levels for t in level)
        logger.debug("Resolved %d template(s) for %s/%s", len(result), project_id, tracker_id)
        return ResolvedTemplates(project_id=project_id, tracker_id=tracker_id, templates=result)

    def resolve_orphaned(self, project_id: str) -> tuple[Template, ...]:
        """Templates of *project_id* whose tracker no longer exists."""
        project_id = self._check_project(project_id)
        orphans = tuple(t for t in self.repository.find_all_for_project(project_id) if self._is_orphan(t))
        if orphans:
            logger.info("Project %s has %d orphaned template(s)", project_id, len(orphans))
        return orphans
