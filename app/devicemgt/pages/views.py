from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, render_template, request, session

from app.devicemgt.db import db_session
from app.devicemgt.modules.device_types.utility import DeviceTypeConfigRegistry, registry_from_config
from app.devicemgt.modules.devices.service import DeviceModule
from app.devicemgt.modules.groups.service import GroupModule
from app.devicemgt.modules.users.service import UserModule
from app.devicemgt.pages.devices import DevicePageServices, PageContext, build_devices_page

bp = Blueprint("devices_page", __name__)


def device_type_registry() -> DeviceTypeConfigRegistry:
    """App-wide registry, built on first use from DEVICE_TYPE_CONFIG_DIR."""
    registry = current_app.extensions.get("device_type_registry")
    if registry is None:
        registry = registry_from_config(current_app.config)
        current_app.extensions["device_type_registry"] = registry
    return registry


def request_services() -> DevicePageServices:
    s = db_session()
    user = getattr(g, "current_user", None)
    return DevicePageServices(
        users=UserModule(user),
        devices=DeviceModule(s, user),
        groups=GroupModule(s),
        device_types=device_type_registry(),
    )


def request_context() -> PageContext:
    return PageContext(params=request.args, session=session)


@bp.get("/devices")
def devices():
    page = build_devices_page(request_context(), request_services())
    return render_template("devices/listing.html", page=page)


@bp.get("/devices/page.json")
def devices_page_json():
    return jsonify(build_devices_page(request_context(), request_services()))
