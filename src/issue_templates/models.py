"""Domain types for issue templates -- templates, trackers, projects, snapshots.

Template records are configuration data and use frozen dataclasses so they
can be shared between the resolver, the index and the engine without
accidental mutation. The tracker a template targets is a tagged variant
(``SpecificTracker`` or ``AllTrackers``) rather than a nullable id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# ---------------------------------------------------------------------------
# Tracker scope (tagged variant)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SpecificTracker:
    """Template applies to exactly one tracker."""

    tracker_id: str


@dataclass(frozen=True)
class AllTrackers:
    """Template applies to every tracker of its project."""


ALL_TRACKERS = AllTrackers()

TrackerScope = SpecificTracker | AllTrackers


def scope_from_tracker_id(tracker_id: str | None) -> TrackerScope:
    """Map a stored tracker id (NULL meaning all trackers) to a TrackerScope."""
    if tracker_id is None:
        return ALL_TRACKERS
    return SpecificTracker(tracker_id)


def scope_to_tracker_id(scope: TrackerScope) -> str | None:
    if isinstance(scope, SpecificTracker):
        return scope.tracker_id
    return None


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Template:
    """A reusable (title, issue title, description) triple."""

    id: str
    project_id: str
    tracker: TrackerScope
    title: str
    description: str = ""
    issue_title: str | None = None
    is_default: bool = False
    position: int = 0
    enabled: bool = True

    @property
    def is_global(self) -> bool:
        return isinstance(self.tracker, AllTrackers)

    @property
    def tracker_id(self) -> str | None:
        return scope_to_tracker_id(self.tracker)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "tracker_id": self.tracker_id,
            "title": self.title,
            "issue_title": self.issue_title,
            "description": self.description,
            "is_default": self.is_default,
            "position": self.position,
            "enabled": self.enabled,
        }


@dataclass(frozen=True)
class Project:
    """A node in the project tree. Parents are referenced by id only."""

    id: str
    name: str
    parent_id: str | None = None
    inherit_templates: bool = False
    module_enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "parent_id": self.parent_id,
            "inherit_templates": self.inherit_templates,
            "module_enabled": self.module_enabled,
        }


@dataclass(frozen=True)
class Tracker:
    id: str
    name: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class TemplateSetting:
    """Per-project application behaviour."""

    project_id: str
    should_replace: bool = False


@dataclass(frozen=True)
class FieldSnapshot:
    """Subject/description captured immediately before an apply.

    ``restores_subject`` is False when the applied template had no issue
    title, in which case revert leaves the subject field alone.
    """

    subject: str
    description: str
    restores_subject: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "description": self.description,
            "restores_subject": self.restores_subject,
        }
