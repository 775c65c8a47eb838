"""Devices, memberships (device x user) and per-device poll secrets."""
from __future__ import annotations

import logging
import secrets
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select

from geata_core.db import Storage
from geata_core.errors import ConflictError, MalformedInputError, NotFoundError
from geata_core.models import (
    ROLES,
    Device,
    DeviceSecret,
    DeviceSettingsRow,
    Membership,
    NotificationSubscription,
    Schedule,
    User,
)
from geata_core.users import ImportResult, UserDirectory

logger = logging.getLogger("geata_core.devices")


def _check_role(role: Optional[str]) -> str:
    role = role or "operator"
    if role not in ROLES:
        raise MalformedInputError(f"invalid role: {role!r}")
    return role


def membership_to_dict(m: Membership) -> Dict:
    return {
        "deviceId": m.device_id,
        "userId": m.user_id,
        "role": m.role,
        "scheduleId": m.schedule_id,
    }


class DeviceDirectory:
    def __init__(self, storage: Storage):
        self.storage = storage

    # -- devices --

    def list(self) -> List[Dict]:
        with self.storage.session() as db:
            return [{"id": d.id, "name": d.name} for d in db.scalars(select(Device).order_by(Device.id))]

    def get(self, device_id: str) -> Device:
        with self.storage.session() as db:
            device = db.get(Device, device_id)
        if device is None:
            raise NotFoundError("device", device_id)
        return device

    def exists(self, device_id: str) -> bool:
        with self.storage.session() as db:
            return db.get(Device, device_id) is not None

    def create(self, device_id: str, name: str) -> Dict:
        if not device_id or not name:
            raise MalformedInputError("id and name required")
        with self.storage.transaction() as db:
            if db.get(Device, device_id) is not None:
                raise ConflictError("Device with this id already exists")
            db.add(Device(id=device_id, name=name))
        logger.info("device.create id=%s", device_id)
        return {"id": device_id, "name": name}

    def delete(self, device_id: str) -> None:
        with self.storage.transaction() as db:
            device = db.get(Device, device_id)
            if device is None:
                raise NotFoundError("device", device_id)
            db.query(NotificationSubscription).filter(NotificationSubscription.device_id == device_id).delete()
            db.delete(device)  # memberships, secret and settings cascade
        logger.info("device.delete id=%s", device_id)

    # -- memberships --

    def members(self, device_id: str) -> List[Dict]:
        with self.storage.session() as db:
            if db.get(Device, device_id) is None:
                raise NotFoundError("device", device_id)
            rows = db.scalars(select(Membership).where(Membership.device_id == device_id).order_by(Membership.user_id))
            out = []
            for m in rows:
                item = membership_to_dict(m)
                item.update({"name": m.user.name, "email": m.user.email, "phone": m.user.phone})
                out.append(item)
            return out

    def membership(self, device_id: str, user_id: str) -> Optional[Dict]:
        with self.storage.session() as db:
            m = db.get(Membership, (device_id, user_id))
            return membership_to_dict(m) if m else None

    def attach_user(self, device_id: str, user_id: str, role: Optional[str] = None,
                    schedule_id: Optional[int] = None) -> Dict:
        """Create or update the membership for (device, user)."""
        role = _check_role(role)
        with self.storage.transaction() as db:
            if db.get(Device, device_id) is None:
                raise NotFoundError("device", device_id)
            if db.get(User, user_id) is None:
                raise NotFoundError("user", user_id)
            if schedule_id is not None and db.get(Schedule, schedule_id) is None:
                raise NotFoundError("schedule", str(schedule_id))
            m = db.get(Membership, (device_id, user_id))
            if m is None:
                m = Membership(device_id=device_id, user_id=user_id, role=role, schedule_id=schedule_id)
                db.add(m)
                logger.info("membership.attach device=%s user=%s role=%s", device_id, user_id, role)
            else:
                m.role = role
                if schedule_id is not None:
                    m.schedule_id = schedule_id
                logger.info("membership.update device=%s user=%s role=%s", device_id, user_id, role)
            db.flush()
            return membership_to_dict(m)

    def detach_user(self, device_id: str, user_id: str) -> None:
        with self.storage.transaction() as db:
            m = db.get(Membership, (device_id, user_id))
            if m is None:
                raise NotFoundError("membership", f"{device_id}/{user_id}")
            db.delete(m)
        logger.info("membership.detach device=%s user=%s", device_id, user_id)

    def schedule_assignment(self, device_id: str, user_id: str) -> Optional[int]:
        m = self.membership(device_id, user_id)
        return m["scheduleId"] if m else None

    def set_schedule_assignment(self, device_id: str, user_id: str, schedule_id: Optional[int]) -> Dict:
        """Assign (or clear, with ``None``) the schedule gating a membership.

        A missing membership is created with the default role.
        """
        with self.storage.transaction() as db:
            if db.get(Device, device_id) is None:
                raise NotFoundError("device", device_id)
            if db.get(User, user_id) is None:
                raise NotFoundError("user", user_id)
            if schedule_id is not None and db.get(Schedule, schedule_id) is None:
                raise NotFoundError("schedule", str(schedule_id))
            m = db.get(Membership, (device_id, user_id))
            if m is None:
                m = Membership(device_id=device_id, user_id=user_id, role="operator")
                db.add(m)
            m.schedule_id = schedule_id
            db.flush()
            out = membership_to_dict(m)
        logger.info("membership.schedule device=%s user=%s schedule=%s", device_id, user_id, schedule_id)
        return out

    def import_members(self, device_id: str, users: UserDirectory, rows: Iterable[Dict]) -> ImportResult:
        """Find-or-create each row's user and attach it to ``device_id``."""
        rows = list(rows or [])
        if not rows:
            raise MalformedInputError("rows array is required")
        if not self.exists(device_id):
            raise NotFoundError("device", device_id)
        roles = {}
        for row in rows:
            _check_role(row.get("role"))
        result = users.import_rows(rows)
        for row in rows:
            found = users.find(email=row.get("email"), phone=row.get("phone"))
            if found is not None:
                roles[found.id] = row.get("role") or "operator"
        for user_id, role in roles.items():
            self.attach_user(device_id, user_id, role)
        return result

    # -- poll secrets --

    def set_secret(self, device_id: str, secret: Optional[str] = None) -> str:
        """Store (or generate) the shared secret a device presents on poll."""
        value = secret or secrets.token_urlsafe(24)
        with self.storage.transaction() as db:
            if db.get(Device, device_id) is None:
                raise NotFoundError("device", device_id)
            row = db.get(DeviceSecret, device_id)
            if row is None:
                db.add(DeviceSecret(device_id=device_id, secret=value))
            else:
                row.secret = value
        logger.info("device.secret set device=%s", device_id)
        return value

    def get_secret(self, device_id: str) -> Optional[str]:
        with self.storage.session() as db:
            row = db.get(DeviceSecret, device_id)
            return row.secret if row else None

    # -- free-form settings --

    def get_settings(self, device_id: str) -> Dict:
        with self.storage.session() as db:
            if db.get(Device, device_id) is None:
                raise NotFoundError("device", device_id)
            row = db.get(DeviceSettingsRow, device_id)
            return dict(row.settings or {}) if row else {}

    def set_settings(self, device_id: str, settings: Optional[Dict]) -> Dict:
        """Replace the settings document stored for ``device_id``."""
        if settings is None:
            settings = {}
        if not isinstance(settings, dict):
            raise MalformedInputError("settings must be an object")
        with self.storage.transaction() as db:
            if db.get(Device, device_id) is None:
                raise NotFoundError("device", device_id)
            row = db.get(DeviceSettingsRow, device_id)
            if row is None:
                db.add(DeviceSettingsRow(device_id=device_id, settings=dict(settings)))
            else:
                row.settings = dict(settings)
        logger.info("device.settings device=%s keys=%d", device_id, len(settings))
        return dict(settings)


__all__ = ["DeviceDirectory", "membership_to_dict"]
