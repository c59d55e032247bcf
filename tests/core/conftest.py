"""Fixtures for core session tests."""

from __future__ import annotations

import pytest

from issue_templates.fields import TextField
from issue_templates.resolver import ScopeResolver
from issue_templates.session import IssueFormSession


@pytest.fixture
def fields() -> tuple[TextField, TextField]:
    """(subject, description) bindings for one issue form."""
    return TextField(), TextField()


@pytest.fixture
def session(resolver: ScopeResolver, fields: tuple[TextField, TextField]) -> IssueFormSession:
    subject, description = fields
    return IssueFormSession.for_resolver(resolver, subject, description)
