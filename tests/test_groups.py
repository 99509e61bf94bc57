"""Tests for device groups: service functions, group device counts and group routes."""
import json

import pytest
from werkzeug.security import generate_password_hash

from app.devicemgt import create_app
from app.devicemgt.db import session_scope
from app.devicemgt.models import AuditEvent, Base, Permission, Role, User
from app.devicemgt.modules.devices.models import Device, DeviceType
from app.devicemgt.modules.devices.service import enroll_device, remove_device
from app.devicemgt.modules.groups.models import DeviceGroup
from app.devicemgt.modules.groups.service import GroupModule, add_device_to_group, create_group

CSRF = "test-csrf-token"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.delenv("DEVICE_TYPE_CONFIG_DIR", raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        r = Role(key="admin", name="Administrator")
        for key in ("devices.view", "devices.add", "groups.view", "groups.create", "groups.assign"):
            r.permissions.append(Permission(key=key, name=key))
        u = User(email="admin@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(r)
        s.add_all([r, u, DeviceType(name="android")])

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client):
    client.post("/auth/login", data={"email": "admin@example.com", "password": "pw"}, follow_redirects=True)
    with client.session_transaction() as sess:
        sess["csrf_token"] = CSRF


def _admin(s):
    return s.query(User).filter(User.email == "admin@example.com").one()


def _enroll(s, user, identifier):
    return enroll_device(s, {"name": identifier, "device_identifier": identifier, "device_type": "android"}, user)


def test_create_group_defaults_owner(app):
    with session_scope(app) as s:
        group = create_group(s, {"name": "Sales"}, _admin(s))
        assert group.owner == "admin@example.com"
        s.flush()
        assert s.query(AuditEvent).filter(AuditEvent.action == "group.create").count() == 1


def test_create_group_rejects_blank_and_duplicate(app):
    with session_scope(app) as s:
        u = _admin(s)
        with pytest.raises(ValueError, match="name is required"):
            create_group(s, {"name": "  "}, u)
        create_group(s, {"name": "Sales"}, u)
        with pytest.raises(ValueError, match="already exists"):
            create_group(s, {"name": "Sales", "owner": "ADMIN@example.com"}, u)
        # same name, different owner is a different group
        create_group(s, {"name": "Sales", "owner": "bob@example.com"}, u)


def test_group_device_count(app):
    with session_scope(app) as s:
        u = _admin(s)
        group = create_group(s, {"name": "Sales"}, u)
        d1 = _enroll(s, u, "IMEI-1")
        d2 = _enroll(s, u, "IMEI-2")
        _enroll(s, u, "IMEI-3")
        add_device_to_group(s, group, d1, u)
        add_device_to_group(s, group, d2, u)
        add_device_to_group(s, group, d2, u)  # no-op

        groups = GroupModule(s)
        assert groups.get_group_device_count("Sales", "admin@example.com") == 2

        remove_device(s, d2, u)
        assert groups.get_group_device_count("Sales", "admin@example.com") == 1


def test_unknown_group_counts_zero(app):
    with session_scope(app) as s:
        assert GroupModule(s).get_group_device_count("Nope", "nobody@example.com") == 0


def test_group_page_uses_group_count(client, app):
    with session_scope(app) as s:
        u = _admin(s)
        group = create_group(s, {"name": "Sales", "owner": "bob@example.com"}, u)
        d1 = _enroll(s, u, "IMEI-1")
        _enroll(s, u, "IMEI-2")
        add_device_to_group(s, group, d1, u)

    _login(client)
    page = client.get("/devices/page.json", query_string={"groupName": "Sales", "groupOwner": "bob@example.com"}).json
    assert page["title"] == "Sales Devices"
    assert page["groupOwner"] == "bob@example.com"
    assert page["deviceCount"] == 1
    assert len(json.loads(page["deviceTypes"])) == 1

    # without an owner the user's own devices are counted
    page = client.get("/devices/page.json", query_string={"groupName": "Sales"}).json
    assert page["deviceCount"] == 2
    assert "groupOwner" not in page


def test_group_routes(client, app):
    _login(client)
    r = client.post("/groups", data={"name": "Lab", "csrf_token": CSRF})
    assert r.status_code == 302
    assert "groupName=Lab" in r.headers["Location"]

    with session_scope(app) as s:
        u = _admin(s)
        device = _enroll(s, u, "IMEI-9")
        device_id = device.id
        group_id = s.query(DeviceGroup).filter(DeviceGroup.name == "Lab").one().id

    r = client.post(f"/groups/{group_id}/devices", data={"device_id": device_id, "csrf_token": CSRF}, follow_redirects=True)
    assert r.status_code == 200
    assert b"Added IMEI-9 to Lab" in r.data
    assert b"Showing 1 device" in r.data

    r = client.post("/groups/999/devices", data={"device_id": device_id, "csrf_token": CSRF})
    assert r.status_code == 404
