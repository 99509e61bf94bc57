from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from app.devicemgt.constants import ENROLL_PERMISSION, USER_SESSION_KEY

if TYPE_CHECKING:
    from app.devicemgt.modules.device_types.utility import DeviceTypeConfigRegistry
    from app.devicemgt.modules.devices.service import DeviceModule
    from app.devicemgt.modules.groups.service import GroupModule
    from app.devicemgt.modules.users.service import UserModule


@dataclass(frozen=True)
class PageContext:
    """Request-scoped inputs: query parameters and the session mapping."""

    params: Mapping[str, str]
    session: Mapping[str, Any]


@dataclass(frozen=True)
class DevicePageServices:
    users: "UserModule"
    devices: "DeviceModule"
    groups: "GroupModule"
    device_types: "DeviceTypeConfigRegistry"


def _param(params: Mapping[str, str], key: str) -> str | None:
    return params.get(key) or None


def build_devices_page(ctx: PageContext, services: DevicePageServices) -> dict:
    """
    Assemble the view-model for the device listing page.

    Anonymous requests get the title (and echoed group name) only. Collaborator errors
    are not handled here.
    """
    group_name = _param(ctx.params, "groupName")
    group_owner = _param(ctx.params, "groupOwner")

    page: dict[str, Any] = {}
    title = "Devices"
    if group_name:
        title = f"{group_name} {title}"
        page["groupName"] = group_name
    page["title"] = title

    current_user = ctx.session.get(USER_SESSION_KEY)
    if not current_user:
        return page

    permissions: dict[str, Any] = {"list": json.dumps(services.users.get_ui_permissions())}
    if services.users.is_authorized(ENROLL_PERMISSION):
        permissions["enroll"] = True
    page["permissions"] = permissions
    page["currentUser"] = current_user

    if group_name and group_owner:
        device_count = services.groups.get_group_device_count(group_name, group_owner)
        page["groupOwner"] = group_owner
    else:
        device_count = services.devices.get_own_devices_count()

    if device_count > 0:
        page["deviceCount"] = device_count
        device_types = []
        for record in services.devices.get_device_types() or []:
            type_name = record["name"]
            device_type = services.device_types.get_device_type_config(type_name)["deviceType"]
            device_types.append(
                {
                    "type": type_name,
                    "category": device_type["category"],
                    "label": device_type["label"],
                }
            )
        page["deviceTypes"] = json.dumps(device_types)
    return page
