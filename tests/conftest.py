"""Shared pytest fixtures for issue-templates tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from issue_templates.core import TemplateDB
from issue_templates.resolver import ScopeResolver
from tests._db_factory import SeededDB, make_db, seed_ecookbook


@pytest.fixture
def db(tmp_path: Path) -> Generator[TemplateDB, None, None]:
    """Fresh TemplateDB for each test."""
    d = make_db(tmp_path)
    yield d
    d.close()


@pytest.fixture
def seeded(db: TemplateDB) -> SeededDB:
    """TemplateDB pre-populated with the ecookbook project tree (see seed_ecookbook)."""
    return seed_ecookbook(db)


@pytest.fixture
def resolver(seeded: SeededDB) -> ScopeResolver:
    return ScopeResolver(seeded.db, seeded.db.load_catalog())


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()
