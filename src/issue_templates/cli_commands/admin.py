"""CLI commands for admin: init, dashboard."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from issue_templates.core import DATA_DIR_NAME, DB_FILENAME, TemplateDB, read_config, write_config


@click.command()
@click.option("--name", default=None, help="Display name (default: directory name)")
@click.option("--default-project", default=None, help="Project used when commands omit --project")
@click.option("--default-tracker", default=None, help="Tracker used when commands omit --tracker")
def init(name: str | None, default_project: str | None, default_tracker: str | None) -> None:
    """Initialize .issue-templates/ in the current directory."""
    cwd = Path.cwd()
    data_dir = cwd / DATA_DIR_NAME

    if data_dir.exists():
        click.echo(f"{DATA_DIR_NAME}/ already exists in {cwd}")
        existing = read_config(data_dir)
        if default_project is not None:
            existing["default_project"] = default_project
        if default_tracker is not None:
            existing["default_tracker"] = default_tracker
        write_config(data_dir, existing)
        with TemplateDB(data_dir / DB_FILENAME) as db:
            db.initialize()
        return

    data_dir.mkdir()
    config: dict[str, object] = {"name": name or cwd.name, "version": 1}
    if default_project:
        config["default_project"] = default_project
    if default_tracker:
        config["default_tracker"] = default_tracker
    write_config(data_dir, config)

    with TemplateDB(data_dir / DB_FILENAME) as db:
        db.initialize()

    click.echo(f"Initialized {DATA_DIR_NAME}/ in {cwd}")
    click.echo(f"  Database: {data_dir / DB_FILENAME}")
    click.echo("\nNext: issue-templates project add <id>")


@click.command()
@click.option("--port", default=8377, type=int, help="Port to listen on")
def dashboard(port: int) -> None:
    """Serve the template picker JSON API (requires issue-templates[dashboard])."""
    try:
        import fastapi  # noqa: F401
        import uvicorn  # noqa: F401
    except ImportError:
        click.echo('Dashboard requires extra dependencies. Install with: pip install "issue-templates[dashboard]"', err=True)
        sys.exit(1)

    from issue_templates.dashboard import main as dashboard_main

    dashboard_main(port=port)


def register(cli: click.Group) -> None:
    """Register admin commands with the CLI group."""
    cli.add_command(init)
    cli.add_command(dashboard)
