from __future__ import annotations

from typing import TYPE_CHECKING

from app.devicemgt.constants import UI_PERMISSIONS
from app.devicemgt.rbac import user_has_permission

if TYPE_CHECKING:
    from app.devicemgt.models import User


def permission_keys(user: "User | None") -> set[str]:
    """All permission keys granted to the user through their roles."""
    if not user or not user.is_active:
        return set()
    return {perm.key for role in user.roles for perm in role.permissions}


class UserModule:
    """Authorization queries for the signed-in user."""

    def __init__(self, user: "User | None") -> None:
        self.user = user

    def is_authorized(self, permission_key: str) -> bool:
        return user_has_permission(self.user, permission_key)

    def get_ui_permissions(self) -> list[str]:
        granted = permission_keys(self.user)
        return [ui_key for perm_key, ui_key in UI_PERMISSIONS.items() if perm_key in granted]
