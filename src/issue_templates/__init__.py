"""issue-templates: reusable issue subject/description templates with merge and revert."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("issue-templates")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from issue_templates.core import TemplateDB
from issue_templates.engine import ApplicationEngine, EngineState
from issue_templates.errors import InvalidScopeError, InvalidTemplateError, RepositoryUnavailable
from issue_templates.index import TemplateIndex
from issue_templates.models import ALL_TRACKERS, AllTrackers, SpecificTracker, Template
from issue_templates.resolver import ResolvedTemplates, ScopeResolver
from issue_templates.session import IssueFormSession

__all__ = [
    "ALL_TRACKERS",
    "AllTrackers",
    "ApplicationEngine",
    "EngineState",
    "InvalidScopeError",
    "InvalidTemplateError",
    "IssueFormSession",
    "RepositoryUnavailable",
    "ResolvedTemplates",
    "ScopeResolver",
    "SpecificTracker",
    "Template",
    "TemplateDB",
    "TemplateIndex",
    "__version__",
]
