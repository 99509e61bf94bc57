from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, request, url_for

from app.devicemgt.db import db_session
from app.devicemgt.models import User
from app.devicemgt.modules.devices.models import Device
from app.devicemgt.modules.groups.models import DeviceGroup
from app.devicemgt.modules.groups.service import add_device_to_group, create_group
from app.devicemgt.rbac import require_permission

bp = Blueprint("groups", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _group_devices_url(group: DeviceGroup) -> str:
    return url_for("devices_page.devices", groupName=group.name, groupOwner=group.owner)


@bp.post("/groups")
@require_permission("groups.create")
def group_create_post():
    s = db_session()
    u = _current_user()

    payload = {
        "name": request.form.get("name"),
        "owner": request.form.get("owner"),
        "description": request.form.get("description"),
    }
    try:
        group = create_group(s, payload, u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("devices_page.devices"))

    s.commit()
    flash(f"Created group {group.name}.", "success")
    return redirect(_group_devices_url(group))


@bp.post("/groups/<int:group_id>/devices")
@require_permission("groups.assign")
def group_add_device_post(group_id: int):
    s = db_session()
    u = _current_user()

    group = s.get(DeviceGroup, group_id)
    if not group:
        abort(404)
    device_id = request.form.get("device_id", type=int)
    device = s.get(Device, device_id) if device_id else None
    if not device:
        flash("Device not found.", "danger")
        return redirect(_group_devices_url(group))

    add_device_to_group(s, group, device, u)
    s.commit()
    flash(f"Added {device.name} to {group.name}.", "success")
    return redirect(_group_devices_url(group))
