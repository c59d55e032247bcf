"""Issue form session -- wires resolver, index and engine for one open form.

The session runs on an asyncio event loop. Fetching the resolved set is the
only suspension point; every scope change takes a new request token and a
response is only used if its token is still the latest when it arrives
(last-request-wins). Everything else runs synchronously between awaits, so
no locking is needed.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from time import perf_counter

from issue_templates.engine import ApplicationEngine
from issue_templates.errors import InvalidTemplateError
from issue_templates.fields import FieldBinding
from issue_templates.index import TemplateIndex
from issue_templates.models import Template
from issue_templates.resolver import ResolvedTemplates, ScopeResolver

logger = logging.getLogger(__name__)

TemplateLoader = Callable[[str, str], Awaitable[ResolvedTemplates]]
OrphanLoader = Callable[[str], Awaitable[tuple[Template, ...]]]


def resolver_loaders(resolver: ScopeResolver) -> tuple[TemplateLoader, OrphanLoader]:
    """Wrap a synchronous resolver in the async loader signatures the session awaits."""

    async def load_templates(project_id: str, tracker_id: str) -> ResolvedTemplates:
        return resolver.resolve_templates(project_id, tracker_id)

    async def load_orphaned(project_id: str) -> tuple[Template, ...]:
        return resolver.resolve_orphaned(project_id)

    return load_templates, load_orphaned


class IssueFormSession:
    """Template picker state for a single issue form."""

    def __init__(
        self,
        engine: ApplicationEngine,
        loader: TemplateLoader,
        *,
        orphan_loader: OrphanLoader | None = None,
    ) -> None:
        self.engine = engine
        self._loader = loader
        self._orphan_loader = orphan_loader
        self.resolved: ResolvedTemplates | None = None
        self.index = TemplateIndex()
        self.loading = False
        self.project_id: str | None = None
        self.tracker_id: str | None = None
        self._request_seq = 0
        self._opened = False

    @classmethod
    def for_resolver(
        cls,
        resolver: ScopeResolver,
        subject: FieldBinding,
        description: FieldBinding,
        *,
        should_replace: bool = False,
    ) -> IssueFormSession:
        load_templates, load_orphaned = resolver_loaders(resolver)
        engine = ApplicationEngine(subject, description, should_replace=should_replace)
        return cls(engine, load_templates, orphan_loader=load_orphaned)

    # -- Scope ---------------------------------------------------------------

    async def open(self, project_id: str, tracker_id: str) -> Template | None:
        """Initial load of the form: resolve, then auto-apply a lone default template.

        Only the first successful load performs the default apply. A load that
        fails or is superseded leaves the form unopened, so a retried open()
        still auto-applies. Later scope changes go through change_scope() and
        never auto-apply.
        """
        if not await self.change_scope(project_id, tracker_id):
            return None
        if self._opened:
            return None
        self._opened = True
        return self.engine.apply_default()

    async def change_scope(self, project_id: str, tracker_id: str) -> bool:
        """Re-resolve for a new project/tracker.

        Returns True if this response became the visible set, False if a newer
        request superseded it. Errors from a superseded request are dropped;
        errors from the latest request propagate with prior state intact.
        """
        self._request_seq += 1
        token = self._request_seq
        self.loading = True
        started = perf_counter()
        try:
            result = await self._loader(project_id, tracker_id)
        except Exception:
            if token != self._request_seq:
                logger.debug("Dropping failure from superseded request %d for %s/%s", token, project_id, tracker_id, exc_info=True)
                return False
            self.loading = False
            raise

        if token != self._request_seq:
            logger.debug("Discarding stale response %d for %s/%s (latest is %d)", token, project_id, tracker_id, self._request_seq)
            return False

        self.project_id = project_id
        self.tracker_id = tracker_id
        self.resolved = result
        self.index = TemplateIndex.build(result.templates)
        self.engine.set_available(result.templates)
        self.loading = False
        logger.debug(
            "Scope %s/%s resolved to %d template(s)",
            project_id,
            tracker_id,
            len(result),
            extra={
                "event": "resolve",
                "project_id": project_id,
                "tracker_id": tracker_id,
                "duration_ms": round((perf_counter() - started) * 1000, 2),
            },
        )
        return True

    # -- Picker --------------------------------------------------------------

    @property
    def templates(self) -> tuple[Template, ...]:
        return self.resolved.templates if self.resolved is not None else ()

    def search(self, query: str) -> tuple[Template, ...]:
        return self.index.search(query)

    async def select(self, template_id: str) -> Template | None:
        """Apply the picked template.

        A pick that is no longer in the resolved set is treated as a stale
        selection: the scope is re-resolved and the apply is dropped.
        """
        try:
            return self.engine.apply(template_id)
        except InvalidTemplateError:
            logger.info("Stale template selection %s; re-resolving", template_id)
            if self.project_id is not None and self.tracker_id is not None:
                await self.change_scope(self.project_id, self.tracker_id)
            return None

    def revert(self) -> bool:
        return self.engine.revert()

    async def orphaned(self, project_id: str | None = None) -> tuple[Template, ...]:
        """Orphaned templates of *project_id* (default: the current project), fetched on demand."""
        target = project_id or self.project_id
        if self._orphan_loader is None or target is None:
            return ()
        return await self._orphan_loader(target)
