"""CLI commands for the project/tracker catalog, memberships and settings."""

from __future__ import annotations

import json as json_mod

import click

from issue_templates.cli_common import fail, get_db
from issue_templates.core import VALID_PERMISSIONS

# ---------------------------------------------------------------------------
# project
# ---------------------------------------------------------------------------


@click.group()
def project() -> None:
    """Manage projects."""


@project.command("add")
@click.argument("project_id")
@click.option("--name", default="", help="Display name (default: the id)")
@click.option("--parent", default=None, help="Parent project id")
@click.option("--inherit/--no-inherit", default=False, help="Inherit templates from the parent project")
@click.option("--disabled", is_flag=True, help="Create with the template module disabled")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def project_add(project_id: str, name: str, parent: str | None, inherit: bool, disabled: bool, as_json: bool) -> None:
    """Register a project."""
    with get_db() as db:
        try:
            proj = db.create_project(project_id, name, parent_id=parent, inherit_templates=inherit, module_enabled=not disabled)
        except ValueError as e:
            fail(str(e), as_json=as_json)
    if as_json:
        click.echo(json_mod.dumps(proj.to_dict(), indent=2))
    else:
        click.echo(f"Created project {proj.id}")


@project.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def project_list(as_json: bool) -> None:
    """List projects."""
    with get_db() as db:
        projects = db.list_projects()
    if as_json:
        click.echo(json_mod.dumps([p.to_dict() for p in projects], indent=2))
        return
    if not projects:
        click.echo("No projects.")
        return
    for p in projects:
        flags = []
        if p.parent_id:
            flags.append(f"parent={p.parent_id}")
        if p.inherit_templates:
            flags.append("inherits")
        if not p.module_enabled:
            flags.append("module disabled")
        suffix = f"  ({', '.join(flags)})" if flags else ""
        click.echo(f"{p.id:<20} {p.name}{suffix}")


def _set_module(project_id: str, enabled: bool) -> None:
    with get_db() as db:
        try:
            db.set_module_enabled(project_id, enabled)
        except KeyError:
            fail(f"Project not found: {project_id}")
    click.echo(f"Template module {'enabled' if enabled else 'disabled'} for {project_id}")


@project.command("enable")
@click.argument("project_id")
def project_enable(project_id: str) -> None:
    """Enable the template module for a project."""
    _set_module(project_id, True)


@project.command("disable")
@click.argument("project_id")
def project_disable(project_id: str) -> None:
    """Disable the template module for a project."""
    _set_module(project_id, False)


@project.command("inherit")
@click.argument("project_id")
@click.argument("mode", type=click.Choice(["on", "off"]))
def project_inherit(project_id: str, mode: str) -> None:
    """Inherit (on) or stop inheriting (off) templates from the parent project."""
    with get_db() as db:
        try:
            proj = db.set_inherit_templates(project_id, mode == "on")
        except KeyError:
            fail(f"Project not found: {project_id}")
    if proj.inherit_templates and not proj.parent_id:
        click.echo(f"{project_id}: inherits templates (no parent project, nothing to inherit yet)")
    else:
        click.echo(f"{project_id}: {'inherits' if proj.inherit_templates else 'does not inherit'} templates")


# ---------------------------------------------------------------------------
# tracker
# ---------------------------------------------------------------------------


@click.group()
def tracker() -> None:
    """Manage trackers."""


@tracker.command("add")
@click.argument("tracker_id")
@click.option("--name", default="", help="Display name (default: the id)")
def tracker_add(tracker_id: str, name: str) -> None:
    """Register a tracker."""
    with get_db() as db:
        try:
            trk = db.create_tracker(tracker_id, name)
        except ValueError as e:
            fail(str(e))
    click.echo(f"Created tracker {trk.id}")


@tracker.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def tracker_list(as_json: bool) -> None:
    """List trackers."""
    with get_db() as db:
        trackers = db.list_trackers()
    if as_json:
        click.echo(json_mod.dumps([t.to_dict() for t in trackers], indent=2))
        return
    for t in trackers:
        click.echo(f"{t.id:<20} {t.name}")


@tracker.command("remove")
@click.argument("tracker_id")
def tracker_remove(tracker_id: str) -> None:
    """Delete a tracker. Its templates become orphaned."""
    with get_db() as db:
        try:
            orphaned = db.delete_tracker(tracker_id)
        except KeyError:
            fail(f"Tracker not found: {tracker_id}")
    click.echo(f"Removed tracker {tracker_id}")
    if orphaned:
        click.echo(f"  {orphaned} template(s) orphaned. See: issue-templates template orphaned <project>")


# ---------------------------------------------------------------------------
# member / setting
# ---------------------------------------------------------------------------


@click.group()
def member() -> None:
    """Manage project memberships."""


@member.command("add")
@click.argument("user")
@click.argument("project_id")
@click.option(
    "--permission",
    "-p",
    "permissions",
    multiple=True,
    type=click.Choice(sorted(VALID_PERMISSIONS)),
    help="Permission to grant (repeatable)",
)
def member_add(user: str, project_id: str, permissions: tuple[str, ...]) -> None:
    """Grant USER template permissions on PROJECT_ID."""
    with get_db() as db:
        try:
            db.add_member(user, project_id, list(permissions))
        except KeyError:
            fail(f"Project not found: {project_id}")
        except ValueError as e:
            fail(str(e))
    click.echo(f"{user} on {project_id}: {', '.join(sorted(permissions)) or '(no permissions)'}")


@click.group()
def setting() -> None:
    """Per-project template settings."""


@setting.command("replace")
@click.argument("project_id")
@click.argument("mode", type=click.Choice(["on", "off"]))
def setting_replace(project_id: str, mode: str) -> None:
    """Replace (on) or merge into (off) existing issue text when applying."""
    with get_db() as db:
        try:
            db.set_should_replace(project_id, mode == "on")
        except KeyError:
            fail(f"Project not found: {project_id}")
    click.echo(f"{project_id}: templates {'replace' if mode == 'on' else 'merge into'} existing text")


def register(cli: click.Group) -> None:
    """Register catalog command groups with the CLI."""
    cli.add_command(project)
    cli.add_command(tracker)
    cli.add_command(member)
    cli.add_command(setting)
