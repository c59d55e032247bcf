"""Database schema definitions for issue-templates.

Contains the canonical SQL schema and the current schema version constant.
"""

from __future__ import annotations

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS projects (
    id                TEXT PRIMARY KEY,
    name              TEXT NOT NULL,
    parent_id         TEXT REFERENCES projects(id),
    inherit_templates INTEGER NOT NULL DEFAULT 0,
    module_enabled    INTEGER NOT NULL DEFAULT 1,
    created_at        TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_projects_parent ON projects(parent_id);

CREATE TABLE IF NOT EXISTS trackers (
    id         TEXT PRIMARY KEY,
    name       TEXT NOT NULL,
    created_at TEXT NOT NULL
);

-- tracker_id is not a foreign key: deleting a tracker leaves
-- its templates in place as orphans. NULL means "all trackers".
CREATE TABLE IF NOT EXISTS templates (
    id          TEXT PRIMARY KEY,
    project_id  TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    tracker_id  TEXT,
    title       TEXT NOT NULL,
    issue_title TEXT,
    description TEXT NOT NULL DEFAULT '',
    is_default  INTEGER NOT NULL DEFAULT 0,
    position    INTEGER NOT NULL DEFAULT 0,
    enabled     INTEGER NOT NULL DEFAULT 1,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_templates_project_tracker ON templates(project_id, tracker_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_templates_one_default
  ON templates(project_id, coalesce(tracker_id, '')) WHERE is_default = 1;

CREATE TABLE IF NOT EXISTS template_settings (
    project_id     TEXT PRIMARY KEY REFERENCES projects(id) ON DELETE CASCADE,
    should_replace INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS members (
    user_name   TEXT NOT NULL,
    project_id  TEXT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
    permissions TEXT NOT NULL DEFAULT '[]',
    PRIMARY KEY (user_name, project_id)
);
"""

CURRENT_SCHEMA_VERSION = 1
