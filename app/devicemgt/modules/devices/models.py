from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.devicemgt.constants import DEVICE_STATUS_ACTIVE
from app.devicemgt.models import Base

if TYPE_CHECKING:
    from app.devicemgt.models import User


class DeviceType(Base):
    __tablename__ = "device_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)  # e.g. "android"
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    devices: Mapped[list["Device"]] = relationship("Device", back_populates="device_type", lazy="select")


class Device(Base):
    __tablename__ = "devices"
    __table_args__ = (
        UniqueConstraint("device_type_id", "device_identifier", name="uq_devices_type_identifier"),
        Index("idx_devices_owner", "owner_user_id"),
        Index("idx_devices_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    device_identifier: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. IMEI, UDID
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=DEVICE_STATUS_ACTIVE)  # ACTIVE, REMOVED

    device_type_id: Mapped[int] = mapped_column(ForeignKey("device_types.id", ondelete="RESTRICT"), nullable=False)
    owner_user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    device_type: Mapped[DeviceType] = relationship("DeviceType", back_populates="devices", lazy="selectin")
    owner: Mapped["User"] = relationship("User", lazy="selectin")
