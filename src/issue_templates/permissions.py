"""Permission gate consulted before a form session is created."""

from __future__ import annotations

from typing import Protocol

from issue_templates.core import PERMISSION_EDIT, PERMISSION_VIEW, TemplateDB


class PermissionGate(Protocol):
    def can_view(self, user: str, project_id: str) -> bool: ...

    def can_edit(self, user: str, project_id: str) -> bool: ...


class DBPermissionGate:
    """Membership-based gate. Edit permission implies view permission."""

    def __init__(self, db: TemplateDB) -> None:
        self.db = db

    def can_view(self, user: str, project_id: str) -> bool:
        perms = self.db.get_permissions(user, project_id)
        return PERMISSION_VIEW in perms or PERMISSION_EDIT in perms

    def can_edit(self, user: str, project_id: str) -> bool:
        return PERMISSION_EDIT in self.db.get_permissions(user, project_id)
