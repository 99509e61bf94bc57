from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, request, url_for

from app.devicemgt.db import db_session
from app.devicemgt.models import User
from app.devicemgt.modules.devices.models import Device
from app.devicemgt.modules.devices.service import enroll_device, remove_device
from app.devicemgt.rbac import require_permission, user_has_permission

bp = Blueprint("devices", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


@bp.post("/devices/enroll")
@require_permission("devices.add")
def device_enroll_post():
    s = db_session()
    u = _current_user()

    payload = {
        "name": request.form.get("name"),
        "device_identifier": request.form.get("device_identifier"),
        "device_type": request.form.get("device_type"),
    }
    try:
        device = enroll_device(s, payload, u)
    except ValueError as e:
        flash(str(e), "danger")
        return redirect(url_for("devices_page.devices"))

    s.commit()
    flash(f"Enrolled {device.name}.", "success")
    return redirect(url_for("devices_page.devices"))


@bp.post("/devices/<int:device_id>/remove")
@require_permission("devices.remove")
def device_remove_post(device_id: int):
    s = db_session()
    u = _current_user()

    device = s.get(Device, device_id)
    if not device:
        abort(404)
    # Only owners may remove their devices unless the user can see all devices.
    if device.owner_user_id != u.id and not user_has_permission(u, "devices.list_all"):
        g.missing_permission = "devices.list_all"
        abort(403)

    reason = (request.form.get("reason") or "").strip() or None
    remove_device(s, device, u, reason=reason)
    s.commit()
    flash(f"Removed {device.name}.", "success")
    return redirect(url_for("devices_page.devices"))
