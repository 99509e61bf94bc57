from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select

from app.devicemgt.audit import record_event
from app.devicemgt.constants import DEVICE_STATUS_ACTIVE, DEVICE_STATUS_REMOVED
from app.devicemgt.modules.devices.models import Device, DeviceType

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.devicemgt.models import User


class DeviceModule:
    """Device inventory queries scoped to the signed-in user."""

    def __init__(self, s: "Session", user: "User | None") -> None:
        self.s = s
        self.user = user

    def get_own_devices_count(self) -> int:
        if self.user is None:
            return 0
        stmt = (
            select(func.count(Device.id))
            .where(Device.owner_user_id == self.user.id)
            .where(Device.status != DEVICE_STATUS_REMOVED)
        )
        return int(self.s.execute(stmt).scalar_one())

    def get_device_types(self) -> list[dict]:
        names = self.s.execute(select(DeviceType.name).order_by(DeviceType.name.asc())).scalars().all()
        return [{"name": name} for name in names]


def validate_enrollment_payload(s: "Session", payload: dict) -> list[str]:
    """Validate device enrollment payload. Returns list of errors."""
    errors = []
    name = (payload.get("name") or "").strip()
    identifier = (payload.get("device_identifier") or "").strip()
    type_name = (payload.get("device_type") or "").strip()
    if not name:
        errors.append("Device name is required.")
    if not identifier:
        errors.append("Device identifier is required.")
    if not type_name:
        errors.append("Device type is required.")
        return errors

    device_type = get_device_type_by_name(s, type_name)
    if device_type is None:
        errors.append(f"Unknown device type: {type_name}")
    elif identifier:
        existing = (
            s.query(Device)
            .filter(Device.device_type_id == device_type.id, Device.device_identifier == identifier)
            .one_or_none()
        )
        if existing is not None:
            errors.append(f"A {type_name} device with identifier {identifier} is already enrolled.")
    return errors


def get_device_type_by_name(s: "Session", name: str) -> DeviceType | None:
    return s.query(DeviceType).filter(DeviceType.name == name.strip()).one_or_none()


def ensure_device_type(s: "Session", name: str) -> DeviceType:
    """Register a device type if it is not registered yet."""
    device_type = get_device_type_by_name(s, name)
    if device_type is None:
        device_type = DeviceType(name=name.strip())
        s.add(device_type)
        s.flush()
    return device_type


def enroll_device(s: "Session", payload: dict, user: "User") -> Device:
    """Enroll a device owned by `user`. Raises ValueError on invalid payload."""
    errors = validate_enrollment_payload(s, payload)
    if errors:
        raise ValueError("; ".join(errors))

    device_type = get_device_type_by_name(s, payload["device_type"])
    now = datetime.utcnow()
    device = Device(
        device_identifier=payload["device_identifier"].strip(),
        name=payload["name"].strip(),
        status=DEVICE_STATUS_ACTIVE,
        device_type_id=device_type.id,
        owner_user_id=user.id,
        enrolled_at=now,
        updated_at=now,
    )
    s.add(device)
    s.flush()

    record_event(
        s,
        actor=user,
        action="device.enroll",
        entity_type="Device",
        entity_id=str(device.id),
        metadata={"device_type": device_type.name, "device_identifier": device.device_identifier, "name": device.name},
    )
    return device


def remove_device(s: "Session", device: Device, user: "User", reason: str | None = None) -> Device:
    """Soft-remove a device; removed devices no longer count anywhere."""
    old_status = device.status
    device.status = DEVICE_STATUS_REMOVED
    device.updated_at = datetime.utcnow()
    s.flush()
    record_event(
        s,
        actor=user,
        action="device.remove",
        entity_type="Device",
        entity_id=str(device.id),
        reason=reason,
        metadata={"changes": {"status": {"old": old_status, "new": DEVICE_STATUS_REMOVED}}},
    )
    return device
