"""Tests for the user authorization collaborator."""
from app.devicemgt.models import Permission, Role, User
from app.devicemgt.modules.users.service import UserModule, permission_keys


def _user(*perm_keys, is_active=True):
    role = Role(key="r", name="Role")
    for key in perm_keys:
        role.permissions.append(Permission(key=key, name=key))
    u = User(email="u@example.com", password_hash="x", is_active=is_active)
    u.roles.append(role)
    return u


def test_ui_permissions_follow_mapping_order():
    users = UserModule(_user("groups.create", "devices.add", "devices.view", "unrelated.key"))
    assert users.get_ui_permissions() == ["LIST_OWN_DEVICES", "ADD_DEVICE", "ADD_GROUP"]


def test_is_authorized():
    users = UserModule(_user("devices.add"))
    assert users.is_authorized("devices.add") is True
    assert users.is_authorized("devices.remove") is False


def test_inactive_or_missing_user_has_nothing():
    inactive = _user("devices.add", is_active=False)
    assert permission_keys(inactive) == set()
    assert UserModule(inactive).is_authorized("devices.add") is False
    assert UserModule(None).get_ui_permissions() == []
