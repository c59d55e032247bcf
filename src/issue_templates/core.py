"""SQLite-backed template repository and convention-based project discovery.

``TemplateDB`` stores projects, trackers, templates, per-project settings
and memberships. The resolver only needs the two finder methods and
``load_catalog()``; the remaining methods are administrative operations
used by the CLI, the JSON API and the tests.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypedDict

from issue_templates.db_schema import CURRENT_SCHEMA_VERSION, SCHEMA_SQL
from issue_templates.errors import RepositoryUnavailable
from issue_templates.hierarchy import ProjectCatalog
from issue_templates.models import (
    ALL_TRACKERS,
    Project,
    Template,
    TemplateSetting,
    Tracker,
    TrackerScope,
    scope_from_tracker_id,
    scope_to_tracker_id,
)
from issue_templates.validation import sanitize_title, sanitize_user, validate_identifier

logger = logging.getLogger(__name__)


class ProjectConfig(TypedDict, total=False):
    """Shape of .issue-templates/config.json."""

    name: str
    version: int
    default_project: str
    default_tracker: str
    default_user: str


# ---------------------------------------------------------------------------
# Convention-based discovery
# ---------------------------------------------------------------------------

DATA_DIR_NAME = ".issue-templates"
DB_FILENAME = "templates.db"
CONFIG_FILENAME = "config.json"

PERMISSION_VIEW = "show_issue_templates"
PERMISSION_EDIT = "edit_issue_templates"
VALID_PERMISSIONS: frozenset[str] = frozenset({PERMISSION_VIEW, PERMISSION_EDIT})


def find_root(start: Path | None = None) -> Path:
    """Walk up from start (default cwd) looking for .issue-templates/.

    Returns the data directory path (not the project root).
    """
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        candidate = parent / DATA_DIR_NAME
        if candidate.is_dir():
            return candidate
    msg = f"No {DATA_DIR_NAME}/ directory found in {current} or any parent"
    raise FileNotFoundError(msg)


def read_config(data_dir: Path) -> ProjectConfig:
    """Read config.json. Returns defaults if missing or corrupt."""
    defaults = ProjectConfig(name=data_dir.resolve().parent.name, version=1)
    config_path = data_dir / CONFIG_FILENAME
    if not config_path.exists():
        return defaults
    try:
        result = json.loads(config_path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s, using defaults: %s", config_path, exc)
        return defaults
    if not isinstance(result, dict):
        logger.warning("Ignoring %s: expected a JSON object", config_path)
        return defaults
    merged: ProjectConfig = {**defaults, **result}  # type: ignore[typeddict-item]
    return merged


def write_config(data_dir: Path, config: dict[str, Any] | ProjectConfig) -> None:
    config_path = data_dir / CONFIG_FILENAME
    config_path.write_text(json.dumps(config, indent=2) + "\n")


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


# ---------------------------------------------------------------------------
# TemplateDB
# ---------------------------------------------------------------------------


class TemplateDB:
    """Direct SQLite operations for template records. No daemon, no sync."""

    def __init__(self, db_path: str | Path, *, check_same_thread: bool = True) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._check_same_thread = check_same_thread

    @classmethod
    def from_project(cls, project_path: Path | None = None) -> TemplateDB:
        """Create a TemplateDB by discovering .issue-templates/ from project_path (or cwd)."""
        data_dir = find_root(project_path)
        db = cls(data_dir / DB_FILENAME)
        db.initialize()
        return db

    def __enter__(self) -> TemplateDB:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                isolation_level="DEFERRED",
                check_same_thread=self._check_same_thread,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.execute("PRAGMA busy_timeout=5000")
        return self._conn

    def initialize(self) -> None:
        """Create tables for a fresh database and stamp the schema version."""
        current_version = self.get_schema_version()
        if current_version == 0:
            self.conn.executescript(SCHEMA_SQL)
            self.conn.execute(f"PRAGMA user_version = {CURRENT_SCHEMA_VERSION}")
        elif current_version > CURRENT_SCHEMA_VERSION:
            msg = f"Database schema v{current_version} is newer than this release supports (v{CURRENT_SCHEMA_VERSION})"
            raise RuntimeError(msg)
        self.conn.commit()

    def get_schema_version(self) -> int:
        result: int = self.conn.execute("PRAGMA user_version").fetchone()[0]
        return result

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def reconnect(self, *, check_same_thread: bool = True) -> None:
        """Close the current connection and reopen lazily with new settings."""
        self.close()
        self._check_same_thread = check_same_thread

    def _generate_template_id(self) -> str:
        for _ in range(10):
            candidate = f"tpl-{uuid.uuid4().hex[:10]}"
            if self.conn.execute("SELECT 1 FROM templates WHERE id = ?", (candidate,)).fetchone() is None:
                return candidate
        return f"tpl-{uuid.uuid4().hex[:16]}"

    # -- Row builders --------------------------------------------------------

    @staticmethod
    def _build_template(row: sqlite3.Row) -> Template:
        return Template(
            id=row["id"],
            project_id=row["project_id"],
            tracker=scope_from_tracker_id(row["tracker_id"]),
            title=row["title"],
            issue_title=row["issue_title"],
            description=row["description"],
            is_default=bool(row["is_default"]),
            position=row["position"],
            enabled=bool(row["enabled"]),
        )

    @staticmethod
    def _build_project(row: sqlite3.Row) -> Project:
        return Project(
            id=row["id"],
            name=row["name"],
            parent_id=row["parent_id"],
            inherit_templates=bool(row["inherit_templates"]),
            module_enabled=bool(row["module_enabled"]),
        )

    # -- Projects ------------------------------------------------------------

    def create_project(
        self,
        project_id: str,
        name: str = "",
        *,
        parent_id: str | None = None,
        inherit_templates: bool = False,
        module_enabled: bool = True,
    ) -> Project:
        validate_identifier(project_id, "project")
        if self.conn.execute("SELECT 1 FROM projects WHERE id = ?", (project_id,)).fetchone() is not None:
            msg = f"Project already exists: {project_id}"
            raise ValueError(msg)
        if parent_id is not None and self.conn.execute("SELECT 1 FROM projects WHERE id = ?", (parent_id,)).fetchone() is None:
            msg = f"Parent project not found: {parent_id}"
            raise ValueError(msg)
        self.conn.execute(
            "INSERT INTO projects (id, name, parent_id, inherit_templates, module_enabled, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (project_id, name or project_id, parent_id, int(inherit_templates), int(module_enabled), _now_iso()),
        )
        self.conn.commit()
        return self.get_project(project_id)

    def get_project(self, project_id: str) -> Project:
        row = self.conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
        if row is None:
            raise KeyError(project_id)
        return self._build_project(row)

    def list_projects(self) -> list[Project]:
        rows = self.conn.execute("SELECT * FROM projects ORDER BY created_at, id").fetchall()
        return [self._build_project(r) for r in rows]

    def set_module_enabled(self, project_id: str, enabled: bool) -> Project:
        cursor = self.conn.execute("UPDATE projects SET module_enabled = ? WHERE id = ?", (int(enabled), project_id))
        if cursor.rowcount == 0:
            raise KeyError(project_id)
        self.conn.commit()
        return self.get_project(project_id)

    def set_inherit_templates(self, project_id: str, inherit: bool) -> Project:
        cursor = self.conn.execute("UPDATE projects SET inherit_templates = ? WHERE id = ?", (int(inherit), project_id))
        if cursor.rowcount == 0:
            raise KeyError(project_id)
        self.conn.commit()
        return self.get_project(project_id)

    # -- Trackers ------------------------------------------------------------

    def create_tracker(self, tracker_id: str, name: str = "") -> Tracker:
        validate_identifier(tracker_id, "tracker")
        try:
            self.conn.execute(
                "INSERT INTO trackers (id, name, created_at) VALUES (?, ?, ?)",
                (tracker_id, name or tracker_id, _now_iso()),
            )
        except sqlite3.IntegrityError:
            self.conn.rollback()
            msg = f"Tracker already exists: {tracker_id}"
            raise ValueError(msg) from None
        self.conn.commit()
        return Tracker(id=tracker_id, name=name or tracker_id)

    def list_trackers(self) -> list[Tracker]:
        rows = self.conn.execute("SELECT id, name FROM trackers ORDER BY created_at, id").fetchall()
        return [Tracker(id=r["id"], name=r["name"]) for r in rows]

    def delete_tracker(self, tracker_id: str) -> int:
        """Delete a tracker. Its templates stay behind as orphans.

        Returns the number of templates orphaned by the deletion.
        """
        cursor = self.conn.execute("DELETE FROM trackers WHERE id = ?", (tracker_id,))
        if cursor.rowcount == 0:
            raise KeyError(tracker_id)
        orphaned: int = self.conn.execute("SELECT COUNT(*) FROM templates WHERE tracker_id = ?", (tracker_id,)).fetchone()[0]
        self.conn.commit()
        if orphaned:
            logger.info("Deleted tracker %s, orphaning %d template(s)", tracker_id, orphaned)
        return orphaned

    # -- Templates -----------------------------------------------------------

    def create_template(
        self,
        project_id: str,
        title: str,
        *,
        tracker: TrackerScope = ALL_TRACKERS,
        description: str = "",
        issue_title: str | None = None,
        is_default: bool = False,
        position: int | None = None,
        enabled: bool = True,
    ) -> Template:
        cleaned, err = sanitize_title(title)
        if err is not None:
            raise ValueError(err)
        self.get_project(project_id)
        tracker_id = scope_to_tracker_id(tracker)
        if tracker_id is not None and self.conn.execute("SELECT 1 FROM trackers WHERE id = ?", (tracker_id,)).fetchone() is None:
            msg = f"Tracker not found: {tracker_id}"
            raise ValueError(msg)
        if issue_title is not None and not issue_title.strip():
            issue_title = None
        if position is None:
            position = self.conn.execute(
                "SELECT COALESCE(MAX(position), 0) + 1 FROM templates WHERE project_id = ?", (project_id,)
            ).fetchone()[0]

        template_id = self._generate_template_id()
        now = _now_iso()
        if is_default:
            self._clear_default(project_id, tracker_id)
        self.conn.execute(
            "INSERT INTO templates (id, project_id, tracker_id, title, issue_title, description, is_default, "
            "position, enabled, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (template_id, project_id, tracker_id, cleaned, issue_title, description, int(is_default), position, int(enabled), now, now),
        )
        self.conn.commit()
        return self.get_template(template_id)

    def _clear_default(self, project_id: str, tracker_id: str | None) -> None:
        """Unset the current default for (project, tracker); one default per pair."""
        if tracker_id is None:
            self.conn.execute("UPDATE templates SET is_default = 0 WHERE project_id = ? AND tracker_id IS NULL", (project_id,))
        else:
            self.conn.execute("UPDATE templates SET is_default = 0 WHERE project_id = ? AND tracker_id = ?", (project_id, tracker_id))

    def get_template(self, template_id: str) -> Template:
        row = self.conn.execute("SELECT * FROM templates WHERE id = ?", (template_id,)).fetchone()
        if row is None:
            raise KeyError(template_id)
        return self._build_template(row)

    def update_template(
        self,
        template_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        issue_title: str | None = None,
        is_default: bool | None = None,
        position: int | None = None,
        enabled: bool | None = None,
    ) -> Template:
        current = self.get_template(template_id)
        updates: dict[str, Any] = {}
        if title is not None:
            cleaned, err = sanitize_title(title)
            if err is not None:
                raise ValueError(err)
            updates["title"] = cleaned
        if description is not None:
            updates["description"] = description
        if issue_title is not None:
            updates["issue_title"] = issue_title if issue_title.strip() else None
        if position is not None:
            updates["position"] = position
        if enabled is not None:
            updates["enabled"] = int(enabled)
        if is_default is not None:
            if is_default and not current.is_default:
                self._clear_default(current.project_id, current.tracker_id)
            updates["is_default"] = int(is_default)
        if not updates:
            return current
        updates["updated_at"] = _now_iso()
        assignments = ", ".join(f"{col} = ?" for col in updates)
        self.conn.execute(f"UPDATE templates SET {assignments} WHERE id = ?", (*updates.values(), template_id))
        self.conn.commit()
        return self.get_template(template_id)

    def delete_template(self, template_id: str) -> None:
        cursor = self.conn.execute("DELETE FROM templates WHERE id = ?", (template_id,))
        if cursor.rowcount == 0:
            raise KeyError(template_id)
        self.conn.commit()

    # -- Repository interface (used by the resolver) -------------------------

    def find_by_project_and_tracker(self, project_id: str, tracker_id: str) -> list[Template]:
        """Templates of *project_id* for *tracker_id* plus its all-tracker templates."""
        try:
            rows = self.conn.execute(
                "SELECT * FROM templates WHERE project_id = ? AND (tracker_id = ? OR tracker_id IS NULL) ORDER BY position, title, id",
                (project_id, tracker_id),
            ).fetchall()
        except sqlite3.Error as exc:
            logger.error("Template lookup failed for %s/%s", project_id, tracker_id, exc_info=True)
            raise RepositoryUnavailable(f"Cannot read templates for project {project_id}: {exc}") from exc
        return [self._build_template(r) for r in rows]

    def find_all_for_project(self, project_id: str) -> list[Template]:
        try:
            rows = self.conn.execute(
                "SELECT * FROM templates WHERE project_id = ? ORDER BY position, title, id",
                (project_id,),
            ).fetchall()
        except sqlite3.Error as exc:
            logger.error("Template scan failed for %s", project_id, exc_info=True)
            raise RepositoryUnavailable(f"Cannot read templates for project {project_id}: {exc}") from exc
        return [self._build_template(r) for r in rows]

    def load_catalog(self) -> ProjectCatalog:
        """Snapshot projects and trackers into an id-indexed catalog."""
        try:
            return ProjectCatalog(self.list_projects(), self.list_trackers())
        except sqlite3.Error as exc:
            logger.error("Catalog load failed", exc_info=True)
            raise RepositoryUnavailable(f"Cannot read projects/trackers: {exc}") from exc

    # -- Settings ------------------------------------------------------------

    def get_setting(self, project_id: str) -> TemplateSetting:
        row = self.conn.execute("SELECT should_replace FROM template_settings WHERE project_id = ?", (project_id,)).fetchone()
        if row is None:
            return TemplateSetting(project_id=project_id)
        return TemplateSetting(project_id=project_id, should_replace=bool(row["should_replace"]))

    def set_should_replace(self, project_id: str, should_replace: bool) -> TemplateSetting:
        self.get_project(project_id)
        self.conn.execute(
            "INSERT INTO template_settings (project_id, should_replace) VALUES (?, ?) "
            "ON CONFLICT(project_id) DO UPDATE SET should_replace = excluded.should_replace",
            (project_id, int(should_replace)),
        )
        self.conn.commit()
        return TemplateSetting(project_id=project_id, should_replace=should_replace)

    # -- Members -------------------------------------------------------------

    def add_member(self, user: str, project_id: str, permissions: list[str]) -> None:
        cleaned, err = sanitize_user(user)
        if err is not None:
            raise ValueError(err)
        unknown = sorted(set(permissions) - VALID_PERMISSIONS)
        if unknown:
            msg = f"Unknown permission(s): {', '.join(unknown)}. Valid: {', '.join(sorted(VALID_PERMISSIONS))}"
            raise ValueError(msg)
        self.get_project(project_id)
        self.conn.execute(
            "INSERT INTO members (user_name, project_id, permissions) VALUES (?, ?, ?) "
            "ON CONFLICT(user_name, project_id) DO UPDATE SET permissions = excluded.permissions",
            (cleaned, project_id, json.dumps(sorted(set(permissions)))),
        )
        self.conn.commit()

    def get_permissions(self, user: str, project_id: str) -> frozenset[str]:
        row = self.conn.execute(
            "SELECT permissions FROM members WHERE user_name = ? AND project_id = ?",
            (user, project_id),
        ).fetchone()
        if row is None:
            return frozenset()
        try:
            perms = json.loads(row["permissions"])
        except json.JSONDecodeError:
            logger.warning("Corrupt permissions for %s on %s", user, project_id)
            return frozenset()
        return frozenset(p for p in perms if isinstance(p, str))
