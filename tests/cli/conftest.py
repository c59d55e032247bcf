"""Fixtures for CLI interface tests."""

from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from issue_templates.cli import cli


@pytest.fixture
def cli_in_project(tmp_path: Path, cli_runner: CliRunner) -> Generator[tuple[CliRunner, Path], None, None]:
    """Initialize .issue-templates/ in tmp_path and return (runner, project_root)."""
    original_cwd = os.getcwd()
    os.chdir(str(tmp_path))
    result = cli_runner.invoke(cli, ["init"])
    assert result.exit_code == 0
    yield cli_runner, tmp_path
    os.chdir(original_cwd)


@pytest.fixture
def cli_with_catalog(cli_in_project: tuple[CliRunner, Path]) -> tuple[CliRunner, Path]:
    """Project with ecookbook <- subproject1 (inheriting) and bug/feature trackers."""
    runner, root = cli_in_project
    for args in (
        ["project", "add", "ecookbook", "--name", "eCookbook"],
        ["project", "add", "subproject1", "--parent", "ecookbook", "--inherit"],
        ["tracker", "add", "bug", "--name", "Bug"],
        ["tracker", "add", "feature"],
    ):
        result = runner.invoke(cli, args)
        assert result.exit_code == 0, result.output
    return runner, root


def _extract_id(create_output: str) -> str:
    """Extract template ID from 'Created tpl-abc123: Title' output."""
    return create_output.split(":")[0].replace("Created ", "").strip()
