"""JSON API backing the template picker UI.

Serves the three selection surfaces of an issue form: the grouped dropdown
(resolved templates), the searchable modal list (resolved templates filtered
by title) and the orphaned-templates panel. A stateless apply endpoint
returns the merged subject/description and the snapshot the client keeps
for revert.

A module-level ``_db`` is set at startup (or by test fixtures) and injected
via ``Depends(_get_db)``.

Usage:
    issue-templates dashboard               # Serves at localhost:8377
    issue-templates dashboard --port 9000   # Custom port
"""

from __future__ import annotations

import json
import logging
from time import perf_counter
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fastapi.responses import JSONResponse
    from starlette.requests import Request

from issue_templates.core import DB_FILENAME, TemplateDB, find_root
from issue_templates.engine import ApplicationEngine
from issue_templates.errors import InvalidScopeError, InvalidTemplateError, RepositoryUnavailable
from issue_templates.fields import TextField
from issue_templates.index import TemplateIndex
from issue_templates.logging import setup_logging
from issue_templates.permissions import DBPermissionGate
from issue_templates.resolver import ScopeResolver
from issue_templates.validation import sanitize_user

DEFAULT_PORT = 8377

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level state, set by main() or test fixtures
# ---------------------------------------------------------------------------

_db: TemplateDB | None = None


def _get_db() -> TemplateDB:
    """Return the active database connection."""
    from fastapi import HTTPException

    if _db is None:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return _db


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _error_response(
    message: str,
    code: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Return a structured error response and log the error."""
    from fastapi.responses import JSONResponse

    logger.warning("API error [%s] %s: %s", status_code, code, message)
    return JSONResponse(
        {"error": {"message": message, "code": code, "details": details or {}}},
        status_code=status_code,
    )


async def _parse_json_body(request: Request) -> dict[str, Any] | JSONResponse:
    """Parse and validate a JSON object body, returning 400 on failure."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, ValueError, UnicodeDecodeError):
        return _error_response("Invalid JSON body", "VALIDATION_ERROR", 400)
    if not isinstance(body, dict):
        return _error_response("Request body must be a JSON object", "VALIDATION_ERROR", 400)
    return body


def _authorize_view(db: TemplateDB, raw_user: Any, project_id: str) -> str | JSONResponse:
    """Validate *raw_user* and check view permission on *project_id*."""
    user, err = sanitize_user(raw_user if raw_user is not None else "")
    if err is not None:
        return _error_response(err, "VALIDATION_ERROR", 400, {"param": "user"})
    if not DBPermissionGate(db).can_view(user, project_id):
        return _error_response(
            f"{user} may not view templates of {project_id}",
            "PERMISSION_DENIED",
            403,
            {"user": user, "project_id": project_id},
        )
    return user


def _scope_error(exc: InvalidScopeError) -> JSONResponse:
    details = {k: v for k, v in (("project_id", exc.project_id), ("tracker_id", exc.tracker_id)) if v is not None}
    return _error_response(str(exc), "INVALID_SCOPE", 404, details)


def _repository_error(exc: RepositoryUnavailable) -> JSONResponse:
    return _error_response(str(exc), "REPOSITORY_UNAVAILABLE", 503)


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


def _create_router() -> Any:
    """Build the APIRouter for catalog and template endpoints.

    NOTE: Handlers are async despite doing synchronous SQLite I/O. This
    serializes DB access on the event loop thread instead of racing on the
    shared connection from FastAPI's thread pool.
    """
    from fastapi import APIRouter, Depends, Request
    from fastapi.responses import JSONResponse

    # Expose Request/JSONResponse in module globals so PEP 563 deferred annotations resolve
    globals()["Request"] = Request
    globals()["JSONResponse"] = JSONResponse

    router = APIRouter()

    @router.get("/projects")
    async def api_projects(db: TemplateDB = Depends(_get_db)) -> JSONResponse:
        return JSONResponse([p.to_dict() for p in db.list_projects()])

    @router.get("/trackers")
    async def api_trackers(db: TemplateDB = Depends(_get_db)) -> JSONResponse:
        return JSONResponse([t.to_dict() for t in db.list_trackers()])

    @router.get("/projects/{project_id}/templates")
    async def api_templates(project_id: str, request: Request, db: TemplateDB = Depends(_get_db)) -> JSONResponse:
        """Resolved templates for the dropdown, optionally filtered by ``q`` for the modal list."""
        params = request.query_params
        user = _authorize_view(db, params.get("user"), project_id)
        if not isinstance(user, str):
            return user
        tracker_id = params.get("tracker_id", "")
        if not tracker_id:
            return _error_response("tracker_id is required", "VALIDATION_ERROR", 400, {"param": "tracker_id"})
        try:
            resolved = ScopeResolver(db, db.load_catalog()).resolve_templates(project_id, tracker_id)
        except InvalidScopeError as exc:
            return _scope_error(exc)
        except RepositoryUnavailable as exc:
            return _repository_error(exc)

        query = params.get("q", "")
        matches = TemplateIndex.build(resolved).search(query)
        default = resolved.default()
        return JSONResponse(
            {
                "project_id": project_id,
                "tracker_id": tracker_id,
                "query": query,
                "templates": [t.to_dict() for t in matches],
                "groups": [{"project_id": pid, "template_ids": [t.id for t in tpls]} for pid, tpls in resolved.groups()],
                "default_template_id": default.id if default else None,
                "total": len(resolved),
            }
        )

    @router.get("/projects/{project_id}/templates/orphaned")
    async def api_orphaned(project_id: str, request: Request, db: TemplateDB = Depends(_get_db)) -> JSONResponse:
        """Templates whose tracker has been deleted. Loaded only when the panel is opened."""
        user = _authorize_view(db, request.query_params.get("user"), project_id)
        if not isinstance(user, str):
            return user
        try:
            orphans = ScopeResolver(db, db.load_catalog()).resolve_orphaned(project_id)
        except InvalidScopeError as exc:
            return _scope_error(exc)
        except RepositoryUnavailable as exc:
            return _repository_error(exc)
        return JSONResponse({"project_id": project_id, "templates": [t.to_dict() for t in orphans]})

    @router.post("/projects/{project_id}/templates/{template_id}/apply")
    async def api_apply(project_id: str, template_id: str, request: Request, db: TemplateDB = Depends(_get_db)) -> JSONResponse:
        """Merge a template into the posted subject/description.

        Body: ``{"user", "tracker_id", "subject", "description", "replace"?}``.
        The response carries the snapshot to restore on revert.
        """
        body = await _parse_json_body(request)
        if not isinstance(body, dict):
            return body
        user = _authorize_view(db, body.get("user"), project_id)
        if not isinstance(user, str):
            return user
        tracker_id = body.get("tracker_id")
        subject = body.get("subject", "")
        description = body.get("description", "")
        if not isinstance(tracker_id, str) or not tracker_id:
            return _error_response("tracker_id must be a non-empty string", "VALIDATION_ERROR", 400, {"param": "tracker_id"})
        if not isinstance(subject, str) or not isinstance(description, str):
            return _error_response("subject and description must be strings", "VALIDATION_ERROR", 400)
        replace = body.get("replace")
        if replace is not None and not isinstance(replace, bool):
            return _error_response("replace must be a boolean", "VALIDATION_ERROR", 400, {"param": "replace"})

        try:
            resolved = ScopeResolver(db, db.load_catalog()).resolve_templates(project_id, tracker_id)
        except InvalidScopeError as exc:
            return _scope_error(exc)
        except RepositoryUnavailable as exc:
            return _repository_error(exc)

        should_replace = db.get_setting(project_id).should_replace if replace is None else replace
        subject_field = TextField(subject)
        description_field = TextField(description)
        engine = ApplicationEngine(subject_field, description_field, should_replace=should_replace, available=resolved)
        try:
            applied = engine.apply(template_id)
        except InvalidTemplateError as exc:
            return _error_response(str(exc), "TEMPLATE_NOT_FOUND", 404, {"template_id": template_id})

        snapshot = engine.snapshot
        return JSONResponse(
            {
                "template": applied.to_dict(),
                "subject": subject_field.get(),
                "description": description_field.get(),
                "mode": "replace" if should_replace else "merge",
                "snapshot": snapshot.to_dict() if snapshot else None,
            }
        )

    return router


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app() -> Any:
    """Create the FastAPI application with all API endpoints under ``/api``."""
    from fastapi import FastAPI
    from starlette.middleware.base import BaseHTTPMiddleware

    app = FastAPI(title="issue-templates", docs_url=None, redoc_url=None)

    class TimingMiddleware(BaseHTTPMiddleware):
        async def dispatch(self, request: Any, call_next: Any) -> Any:
            started = perf_counter()
            response = await call_next(request)
            logger.info(
                "%s %s -> %s",
                request.method,
                request.url.path,
                response.status_code,
                extra={
                    "event": "api",
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": round((perf_counter() - started) * 1000, 2),
                },
            )
            return response

    app.add_middleware(TimingMiddleware)
    app.include_router(_create_router(), prefix="/api")
    return app


def main(port: int = DEFAULT_PORT) -> None:
    """Start the API server for the discovered .issue-templates/ directory."""
    import uvicorn

    global _db

    data_dir = find_root()
    setup_logging(data_dir)
    _db = TemplateDB(data_dir / DB_FILENAME, check_same_thread=False)
    _db.initialize()

    app = create_app()
    print(f"issue-templates API: http://localhost:{port}/api")
    uvicorn.run(app, host="127.0.0.1", port=port, log_level="warning")
