"""CLI for issue-templates.

Convention-based: discovers .issue-templates/ by walking up from cwd.

Usage:
    issue-templates init                                   # Initialize .issue-templates/ in cwd
    issue-templates project add ecookbook                  # Register a project
    issue-templates project add sub --parent ecookbook --inherit
    issue-templates tracker add bug --name Bug             # Register a tracker
    issue-templates tracker remove bug                     # Delete a tracker (orphans its templates)
    issue-templates template add ecookbook "Bug report" --tracker bug -d "Steps..."
    issue-templates template list ecookbook --tracker bug  # Resolved templates (with inheritance)
    issue-templates template search ecookbook bug "report" # Filter resolved templates by title
    issue-templates template orphaned ecookbook            # Templates whose tracker is gone
    issue-templates apply <template-id> -s "Subject" -d "Body"
    issue-templates dashboard                              # JSON API for the picker UI
"""

from __future__ import annotations

import logging

import click

from issue_templates import __version__
from issue_templates.cli_commands import admin, catalog, templates
from issue_templates.core import find_root
from issue_templates.logging import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="issue-templates")
@click.option("--verbose", "-v", is_flag=True, help="Log debug records to the project log file")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """issue-templates: reusable issue subject/description templates."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    try:
        data_dir = find_root()
    except FileNotFoundError:
        return
    setup_logging(data_dir, level=logging.DEBUG if verbose else logging.INFO)


admin.register(cli)
catalog.register(cli)
templates.register(cli)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
