from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from app.devicemgt.audit import record_event
from app.devicemgt.constants import DEVICE_STATUS_REMOVED
from app.devicemgt.modules.devices.models import Device
from app.devicemgt.modules.groups.models import DeviceGroup, DeviceGroupMember

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.devicemgt.models import User

logger = logging.getLogger(__name__)


def find_group(s: "Session", name: str, owner: str) -> DeviceGroup | None:
    return s.query(DeviceGroup).filter(DeviceGroup.name == name, DeviceGroup.owner == owner).one_or_none()


class GroupModule:
    """Group membership queries."""

    def __init__(self, s: "Session") -> None:
        self.s = s

    def get_group_device_count(self, name: str, owner: str) -> int:
        group = find_group(self.s, name, owner)
        if group is None:
            logger.warning("Device group not found (name=%s owner=%s)", name, owner)
            return 0
        stmt = (
            select(func.count(DeviceGroupMember.id))
            .join(Device, Device.id == DeviceGroupMember.device_id)
            .where(DeviceGroupMember.group_id == group.id)
            .where(Device.status != DEVICE_STATUS_REMOVED)
        )
        return int(self.s.execute(stmt).scalar_one())


def create_group(s: "Session", payload: dict, user: "User") -> DeviceGroup:
    """Create a device group. The owner defaults to the creating user. Raises ValueError on invalid payload."""
    name = (payload.get("name") or "").strip()
    owner = (payload.get("owner") or "").strip().lower() or user.email
    if not name:
        raise ValueError("Group name is required.")
    if find_group(s, name, owner) is not None:
        raise ValueError(f"Group {name} owned by {owner} already exists.")

    group = DeviceGroup(
        name=name,
        owner=owner,
        description=(payload.get("description") or "").strip() or None,
        created_by_user_id=user.id,
    )
    s.add(group)
    s.flush()

    record_event(
        s,
        actor=user,
        action="group.create",
        entity_type="DeviceGroup",
        entity_id=str(group.id),
        metadata={"name": group.name, "owner": group.owner},
    )
    return group


def add_device_to_group(s: "Session", group: DeviceGroup, device: Device, user: "User") -> DeviceGroupMember:
    """Add a device to a group; adding an existing member is a no-op."""
    for member in group.members:
        if member.device_id == device.id:
            return member

    member = DeviceGroupMember(group_id=group.id, device_id=device.id, added_by_user_id=user.id)
    s.add(member)
    group.members.append(member)
    s.flush()

    record_event(
        s,
        actor=user,
        action="group.add_device",
        entity_type="DeviceGroup",
        entity_id=str(group.id),
        metadata={"device_id": device.id, "device_identifier": device.device_identifier},
    )
    return member
