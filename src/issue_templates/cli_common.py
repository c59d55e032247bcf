"""Shared CLI helpers.

Provides ``get_db()`` and ``fail()`` so that ``cli.py`` and the
``cli_commands/*.py`` modules can share them without circular imports.
"""

from __future__ import annotations

import json as json_mod
import sys
from typing import NoReturn

import click

from issue_templates.core import DATA_DIR_NAME, DB_FILENAME, ProjectConfig, TemplateDB, find_root, read_config


def get_db() -> TemplateDB:
    """Discover .issue-templates/ and return an initialized TemplateDB."""
    try:
        data_dir = find_root()
    except FileNotFoundError:
        click.echo(f"No {DATA_DIR_NAME}/ found. Run 'issue-templates init' first.", err=True)
        sys.exit(1)
    db = TemplateDB(data_dir / DB_FILENAME)
    db.initialize()
    return db


def get_config() -> ProjectConfig:
    """Config of the discovered data dir, or empty when there is none."""
    try:
        return read_config(find_root())
    except FileNotFoundError:
        return ProjectConfig()


def fail(message: str, *, as_json: bool = False) -> NoReturn:
    """Report an error in the requested output format and exit 1."""
    if as_json:
        click.echo(json_mod.dumps({"error": message}))
    else:
        click.echo(f"Error: {message}", err=True)
    sys.exit(1)
