"""ORM models."""
from typing import List

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from geata_core.db import Base, utcnow

ROLES = ("admin", "operator")
COMMAND_TYPES = ("OPEN", "AUX1", "AUX2")

STATUS_QUEUED = "queued"
STATUS_COMPLETED = "completed"


class Device(Base):
    __tablename__ = "devices"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)

    memberships = relationship("Membership", back_populates="device", cascade="all, delete-orphan")
    secret = relationship("DeviceSecret", uselist=False, cascade="all, delete-orphan")
    settings = relationship("DeviceSettingsRow", uselist=False, cascade="all, delete-orphan")


class User(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    phone = Column(String, unique=True, index=True, nullable=True)  # e.g. "+353861234567"
    password_hash = Column(String, nullable=True)

    memberships = relationship("Membership", back_populates="user", cascade="all, delete-orphan")


class Membership(Base):
    __tablename__ = "device_users"
    device_id = Column(String, ForeignKey("devices.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role = Column(String, nullable=False, default="operator")
    # No FK: deleting a schedule must leave the reference dangling (denies)
    # rather than nulling it (which would grant 24/7 access).
    schedule_id = Column(Integer, nullable=True, index=True)

    device = relationship("Device", back_populates="memberships")
    user = relationship("User", back_populates="memberships")


class Schedule(Base):
    __tablename__ = "schedules"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    slots = relationship(
        "ScheduleSlot",
        back_populates="schedule",
        order_by="ScheduleSlot.position",
        cascade="all, delete-orphan",
    )


class ScheduleSlot(Base):
    __tablename__ = "schedule_slots"
    id = Column(Integer, primary_key=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    days = Column(String, nullable=True)  # e.g. "1,2,3,4,5" (0=Sunday); empty = every day
    start = Column(String, nullable=False)  # e.g. "08:00"
    end = Column(String, nullable=False)

    schedule = relationship("Schedule", back_populates="slots")

    @property
    def days_of_week(self) -> List[int]:
        if not self.days:
            return []
        return [int(d) for d in self.days.split(",") if d.strip()]

    @days_of_week.setter
    def days_of_week(self, values) -> None:
        self.days = ",".join(str(int(d)) for d in sorted(set(values or []))) or None


class Command(Base):
    __tablename__ = "commands"
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, unique=True, nullable=False, index=True)
    device_id = Column(String, nullable=False)
    user_id = Column(String, nullable=True)  # NULL for admin test pulses
    type = Column(String, nullable=False)
    status = Column(String, nullable=False, default=STATUS_QUEUED)
    requested_at = Column(DateTime, nullable=False, default=utcnow)
    completed_at = Column(DateTime, nullable=True)
    result = Column(String, nullable=True)
    duration_ms = Column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_commands_device_status_requested", "device_id", "status", "requested_at"),
    )


class Event(Base):
    __tablename__ = "device_events"
    id = Column(Integer, primary_key=True, autoincrement=True)
    device_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=True, index=True)
    event_type = Column(String, nullable=False)
    at = Column(DateTime, nullable=False, default=utcnow, index=True)
    details = Column(Text, nullable=True)


class DeviceSecret(Base):
    __tablename__ = "device_secrets"
    device_id = Column(String, ForeignKey("devices.id", ondelete="CASCADE"), primary_key=True)
    secret = Column(String, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class DeviceSettingsRow(Base):
    __tablename__ = "device_settings"
    device_id = Column(String, ForeignKey("devices.id", ondelete="CASCADE"), primary_key=True)
    settings = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class NotificationSubscription(Base):
    __tablename__ = "device_notifications_subscriptions"
    id = Column(Integer, primary_key=True)
    device_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    event_type = Column(String, nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("device_id", "user_id", "event_type", name="uq_subscription"),
    )


__all__ = [
    "Device",
    "User",
    "Membership",
    "Schedule",
    "ScheduleSlot",
    "Command",
    "Event",
    "DeviceSecret",
    "DeviceSettingsRow",
    "NotificationSubscription",
    "ROLES",
    "COMMAND_TYPES",
    "STATUS_QUEUED",
    "STATUS_COMPLETED",
]
