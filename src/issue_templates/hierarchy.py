"""Project tree and tracker catalog as id-indexed maps.

Projects reference their parent by id only. Inheritance chains are
computed once when the catalog is built, so the resolver never walks
parent pointers at query time.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from issue_templates.models import Project, Tracker

logger = logging.getLogger(__name__)


class ProjectCatalog:
    """Immutable snapshot of projects and trackers, addressed by id."""

    def __init__(self, projects: Iterable[Project] = (), trackers: Iterable[Tracker] = ()) -> None:
        self._projects: dict[str, Project] = {p.id: p for p in projects}
        self._trackers: dict[str, Tracker] = {t.id: t for t in trackers}
        self._chains: dict[str, tuple[str, ...]] = {pid: self._compute_chain(pid) for pid in self._projects}

    def _compute_chain(self, project_id: str) -> tuple[str, ...]:
        """Walk upward while each project inherits from its parent; return root-to-self."""
        chain = [project_id]
        seen = {project_id}
        current = self._projects[project_id]
        while current.inherit_templates and current.parent_id is not None:
            parent = self._projects.get(current.parent_id)
            if parent is None:
                logger.warning("Project %s references missing parent %s", current.id, current.parent_id)
                break
            if parent.id in seen:
                logger.warning("Cycle in project hierarchy at %s", parent.id)
                break
            chain.append(parent.id)
            seen.add(parent.id)
            current = parent
        chain.reverse()
        return tuple(chain)

    # -- Projects ------------------------------------------------------------

    def get_project(self, project_id: str) -> Project | None:
        return self._projects.get(project_id)

    def inheritance_chain(self, project_id: str) -> tuple[str, ...]:
        """Project ids whose templates *project_id* sees, root first, self last.

        Raises KeyError for an unknown project.
        """
        return self._chains[project_id]

    # -- Trackers ------------------------------------------------------------

    def has_tracker(self, tracker_id: str) -> bool:
        return tracker_id in self._trackers
