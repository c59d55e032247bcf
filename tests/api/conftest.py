"""Fixtures for HTTP API tests (FastAPI)."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

import issue_templates.dashboard as dash_module
from issue_templates.core import PERMISSION_EDIT, PERMISSION_VIEW
from issue_templates.dashboard import create_app
from tests._db_factory import SeededDB


@pytest.fixture
def api_db(seeded: SeededDB) -> SeededDB:
    """Seeded DB with members, reconnected so handlers may run off the creating thread.

    alice may view ecookbook and subproject1; bob may edit ecookbook; nobody
    has access to onlinestore.
    """
    db = seeded.db
    db.add_member("alice", "ecookbook", [PERMISSION_VIEW])
    db.add_member("alice", "subproject1", [PERMISSION_VIEW])
    db.add_member("bob", "ecookbook", [PERMISSION_EDIT])
    db.reconnect(check_same_thread=False)
    return seeded


@pytest.fixture
async def client(api_db: SeededDB) -> AsyncIterator[AsyncClient]:
    dash_module._db = api_db.db
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    dash_module._db = None
