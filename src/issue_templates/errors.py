"""Exceptions raised by the template resolution and application engine."""

from __future__ import annotations


class TemplateEngineError(Exception):
    """Base class for every error raised by issue_templates."""


class InvalidScopeError(TemplateEngineError, ValueError):
    """Raised when a project or tracker passed to the resolver does not exist."""

    def __init__(self, message: str, *, project_id: str | None = None, tracker_id: str | None = None) -> None:
        self.project_id = project_id
        self.tracker_id = tracker_id
        super().__init__(message)


class InvalidTemplateError(TemplateEngineError, ValueError):
    """Raised when apply is requested for a template outside the resolved set."""

    def __init__(self, template_id: str) -> None:
        self.template_id = template_id
        super().__init__(f"Template '{template_id}' is not available for the current project/tracker. Re-resolve and pick again.")


class RepositoryUnavailable(TemplateEngineError, RuntimeError):
    """Raised when the template repository cannot be read."""
