"""Tests for the devices page routes and device enrollment/removal."""
import json

import pytest
from werkzeug.security import generate_password_hash

from app.devicemgt import create_app
from app.devicemgt.db import session_scope
from app.devicemgt.models import AuditEvent, Base, Permission, Role, User
from app.devicemgt.modules.devices.models import Device, DeviceType

CSRF = "test-csrf-token"


def _seed_all_permissions(s):
    """Seed the permissions needed for device tests."""
    perm_keys = [
        ("devices.view", "Devices: view own"),
        ("devices.add", "Devices: enroll"),
        ("devices.remove", "Devices: remove"),
    ]
    perms = []
    for key, name in perm_keys:
        p = Permission(key=key, name=name)
        s.add(p)
        perms.append(p)
    return perms


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
        perms = _seed_all_permissions(s)
        r = Role(key="user", name="Device owner")
        for p in perms:
            r.permissions.append(p)
        u = User(email="owner@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        u.roles.append(r)
        viewer = User(email="viewer@example.com", password_hash=generate_password_hash("pw"), is_active=True)
        s.add_all([r, u, viewer, DeviceType(name="android"), DeviceType(name="ios")])

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email="owner@example.com"):
    client.post("/auth/login", data={"email": email, "password": "pw"}, follow_redirects=True)
    with client.session_transaction() as sess:
        sess["csrf_token"] = CSRF


def _page(client, **params):
    r = client.get("/devices/page.json", query_string=params)
    assert r.status_code == 200
    return r.json


def _enroll(client, name="Pixel", identifier="IMEI-1", device_type="android"):
    return client.post(
        "/devices/enroll",
        data={"name": name, "device_identifier": identifier, "device_type": device_type, "csrf_token": CSRF},
        follow_redirects=True,
    )


def test_devices_page_anonymous(client):
    r = client.get("/devices")
    assert r.status_code == 200
    assert b"log in" in r.data
    assert _page(client) == {"title": "Devices"}


def test_devices_page_anonymous_group_title(client):
    assert _page(client, groupName="Sales") == {"title": "Sales Devices", "groupName": "Sales"}


def test_devices_page_no_devices(client):
    _login(client)
    page = _page(client)
    assert page["title"] == "Devices"
    assert page["permissions"]["enroll"] is True
    assert json.loads(page["permissions"]["list"]) == ["LIST_OWN_DEVICES", "ADD_DEVICE", "REMOVE_DEVICE"]
    assert "deviceCount" not in page
    assert "deviceTypes" not in page


def test_enroll_then_page_lists_types(client, app):
    _login(client)
    r = _enroll(client)
    assert r.status_code == 200
    assert b"Enrolled Pixel" in r.data
    assert b"Showing 1 device" in r.data

    page = _page(client)
    assert page["deviceCount"] == 1
    device_types = json.loads(page["deviceTypes"])
    assert [t["type"] for t in device_types] == ["android", "ios"]
    assert device_types[1] == {"type": "ios", "category": "mobile", "label": "iOS"}

    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "device.enroll").one()
        assert ev.actor_user_email == "owner@example.com"


def test_enroll_rejects_unknown_type_and_duplicates(client, app):
    _login(client)
    r = _enroll(client, device_type="toaster")
    assert b"Unknown device type: toaster" in r.data

    _enroll(client)
    r = _enroll(client, name="Pixel again")
    assert b"already enrolled" in r.data

    with session_scope(app) as s:
        assert s.query(Device).count() == 1


def test_enroll_requires_csrf(client):
    _login(client)
    r = client.post("/devices/enroll", data={"name": "x", "device_identifier": "y", "device_type": "android"})
    assert r.status_code == 400


def test_enroll_requires_auth(client):
    with client.session_transaction() as sess:
        sess["csrf_token"] = CSRF
    r = client.post("/devices/enroll", data={"csrf_token": CSRF})
    assert r.status_code == 302
    assert "/auth/login" in r.headers["Location"]


def test_enroll_requires_permission(client):
    _login(client, "viewer@example.com")
    page = _page(client)
    assert "enroll" not in page["permissions"]
    assert json.loads(page["permissions"]["list"]) == []
    r = _enroll(client)
    assert r.status_code == 403


def test_removed_devices_not_counted(client, app):
    _login(client)
    _enroll(client)
    _enroll(client, name="iPhone", identifier="UDID-1", device_type="ios")
    assert _page(client)["deviceCount"] == 2

    with session_scope(app) as s:
        device_id = s.query(Device).filter(Device.name == "iPhone").one().id

    r = client.post(f"/devices/{device_id}/remove", data={"csrf_token": CSRF}, follow_redirects=True)
    assert r.status_code == 200
    assert _page(client)["deviceCount"] == 1


def test_missing_device_type_config_is_500(client, app):
    with session_scope(app) as s:
        s.add(DeviceType(name="toaster"))
    _login(client)
    _enroll(client)
    r = client.get("/devices")
    assert r.status_code == 500
