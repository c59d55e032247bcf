"""CLI commands for templates: add, list, show, remove, orphaned, search, apply."""

from __future__ import annotations

import json as json_mod
from collections.abc import Iterable

import click

from issue_templates.cli_common import fail, get_config, get_db
from issue_templates.core import TemplateDB
from issue_templates.engine import ApplicationEngine
from issue_templates.errors import InvalidScopeError, InvalidTemplateError, RepositoryUnavailable
from issue_templates.fields import TextField
from issue_templates.index import TemplateIndex
from issue_templates.models import ALL_TRACKERS, SpecificTracker, Template
from issue_templates.permissions import DBPermissionGate
from issue_templates.resolver import ScopeResolver


def _resolver(db: TemplateDB) -> ScopeResolver:
    return ScopeResolver(db, db.load_catalog())


def _echo_templates(templates: Iterable[Template], as_json: bool) -> None:
    items = list(templates)
    if as_json:
        click.echo(json_mod.dumps([t.to_dict() for t in items], indent=2))
        return
    if not items:
        click.echo("No templates.")
        return
    for t in items:
        tracker = t.tracker_id or "*"
        marker = " [default]" if t.is_default else ""
        click.echo(f"{t.id}  {t.project_id}/{tracker:<12} {t.title}{marker}")


def _scope(project_id: str | None, tracker_id: str | None, as_json: bool) -> tuple[str, str]:
    config = get_config()
    project_id = project_id or config.get("default_project")
    tracker_id = tracker_id or config.get("default_tracker")
    if not project_id or not tracker_id:
        fail("Both --project and --tracker are required (or set default_project/default_tracker in config.json)", as_json=as_json)
    return project_id, tracker_id


@click.group()
def template() -> None:
    """Manage and query issue templates."""


@template.command("add")
@click.argument("project_id")
@click.argument("title")
@click.option("--tracker", "tracker_id", default=None, help="Tracker id (omit for all trackers)")
@click.option("--description", "-d", default="", help="Text written into the issue description")
@click.option("--issue-title", default=None, help="Text written into the issue subject")
@click.option("--default", "is_default", is_flag=True, help="Apply automatically when a new issue form opens")
@click.option("--position", default=None, type=int, help="Display position (default: last)")
@click.option("--disabled", is_flag=True, help="Create disabled")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def template_add(
    project_id: str,
    title: str,
    tracker_id: str | None,
    description: str,
    issue_title: str | None,
    is_default: bool,
    position: int | None,
    disabled: bool,
    as_json: bool,
) -> None:
    """Create a template in PROJECT_ID."""
    scope = SpecificTracker(tracker_id) if tracker_id else ALL_TRACKERS
    with get_db() as db:
        try:
            tpl = db.create_template(
                project_id,
                title,
                tracker=scope,
                description=description,
                issue_title=issue_title,
                is_default=is_default,
                position=position,
                enabled=not disabled,
            )
        except KeyError:
            fail(f"Project not found: {project_id}", as_json=as_json)
        except ValueError as e:
            fail(str(e), as_json=as_json)
    if as_json:
        click.echo(json_mod.dumps(tpl.to_dict(), indent=2))
    else:
        click.echo(f"Created {tpl.id}: {tpl.title}")


@template.command("list")
@click.argument("project_id")
@click.option("--tracker", "tracker_id", default=None, help="Resolve for this tracker (includes inherited templates)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def template_list(project_id: str, tracker_id: str | None, as_json: bool) -> None:
    """List templates. With --tracker, lists the resolved set a new issue would see."""
    with get_db() as db:
        if tracker_id is None:
            try:
                db.get_project(project_id)
            except KeyError:
                fail(f"Project not found: {project_id}", as_json=as_json)
            _echo_templates(db.find_all_for_project(project_id), as_json)
            return
        try:
            resolved = _resolver(db).resolve_templates(project_id, tracker_id)
        except (InvalidScopeError, RepositoryUnavailable) as e:
            fail(str(e), as_json=as_json)
    _echo_templates(resolved, as_json)


@template.command("search")
@click.argument("project_id")
@click.argument("tracker_id")
@click.argument("query", default="")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def template_search(project_id: str, tracker_id: str, query: str, as_json: bool) -> None:
    """Filter the resolved templates by title substring (case-insensitive)."""
    with get_db() as db:
        try:
            resolved = _resolver(db).resolve_templates(project_id, tracker_id)
        except (InvalidScopeError, RepositoryUnavailable) as e:
            fail(str(e), as_json=as_json)
    _echo_templates(TemplateIndex.build(resolved).search(query), as_json)


@template.command("orphaned")
@click.argument("project_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def template_orphaned(project_id: str, as_json: bool) -> None:
    """List templates whose tracker no longer exists."""
    with get_db() as db:
        try:
            orphans = _resolver(db).resolve_orphaned(project_id)
        except (InvalidScopeError, RepositoryUnavailable) as e:
            fail(str(e), as_json=as_json)
    _echo_templates(orphans, as_json)


@template.command("show")
@click.argument("template_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def template_show(template_id: str, as_json: bool) -> None:
    """Show a template."""
    with get_db() as db:
        try:
            tpl = db.get_template(template_id)
        except KeyError:
            fail(f"Not found: {template_id}", as_json=as_json)
    if as_json:
        click.echo(json_mod.dumps(tpl.to_dict(), indent=2))
        return
    click.echo(f"ID:          {tpl.id}")
    click.echo(f"Title:       {tpl.title}")
    click.echo(f"Project:     {tpl.project_id}")
    click.echo(f"Tracker:     {tpl.tracker_id or '(all trackers)'}")
    if tpl.issue_title:
        click.echo(f"Issue title: {tpl.issue_title}")
    if tpl.is_default:
        click.echo("Default:     yes")
    if not tpl.enabled:
        click.echo("Enabled:     no")
    if tpl.description:
        click.echo(f"\n{tpl.description}")


@template.command("remove")
@click.argument("template_id")
def template_remove(template_id: str) -> None:
    """Delete a template."""
    with get_db() as db:
        try:
            db.delete_template(template_id)
        except KeyError:
            fail(f"Not found: {template_id}")
    click.echo(f"Removed {template_id}")


@click.command()
@click.argument("template_id")
@click.option("--project", "project_id", default=None, help="Project id (default: config default_project)")
@click.option("--tracker", "tracker_id", default=None, help="Tracker id (default: config default_tracker)")
@click.option("--subject", "-s", default="", help="Current issue subject")
@click.option("--description", "-d", default="", help="Current issue description")
@click.option("--replace/--merge", default=None, help="Override the project's replace setting")
@click.option("--user", default=None, help="Check this member's view permission (default: config default_user)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def apply(
    template_id: str,
    project_id: str | None,
    tracker_id: str | None,
    subject: str,
    description: str,
    replace: bool | None,
    user: str | None,
    as_json: bool,
) -> None:
    """Apply a template to the given subject/description and print the result."""
    project_id, tracker_id = _scope(project_id, tracker_id, as_json)
    user = user or get_config().get("default_user")
    with get_db() as db:
        if user and not DBPermissionGate(db).can_view(user, project_id):
            fail(f"{user} may not view templates of {project_id}", as_json=as_json)
        try:
            resolved = _resolver(db).resolve_templates(project_id, tracker_id)
        except (InvalidScopeError, RepositoryUnavailable) as e:
            fail(str(e), as_json=as_json)
        should_replace = db.get_setting(project_id).should_replace if replace is None else replace

    subject_field = TextField(subject)
    description_field = TextField(description)
    engine = ApplicationEngine(subject_field, description_field, should_replace=should_replace, available=resolved)
    try:
        tpl = engine.apply(template_id)
    except InvalidTemplateError as e:
        fail(str(e), as_json=as_json)

    if as_json:
        click.echo(
            json_mod.dumps(
                {
                    "template_id": tpl.id,
                    "subject": subject_field.get(),
                    "description": description_field.get(),
                    "replaced": should_replace,
                },
                indent=2,
            )
        )
        return
    click.echo(f"Subject: {subject_field.get()}")
    click.echo("Description:")
    click.echo(description_field.get())


def register(cli: click.Group) -> None:
    """Register template commands with the CLI group."""
    cli.add_command(template)
    cli.add_command(apply)
