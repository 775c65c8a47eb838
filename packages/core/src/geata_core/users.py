"""User registration, lookup and credential handling."""
from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from sqlalchemy import or_, select

from geata_core.auth import hash_password, verify_password
from geata_core.db import Storage
from geata_core.errors import ConflictError, MalformedInputError, NotFoundError
from geata_core.models import Membership, NotificationSubscription, User

logger = logging.getLogger("geata_core.users")

_PHONE_JUNK = re.compile(r"[\s\-()]")


def normalize_phone(raw: Optional[str], default_country_code: str = "+353") -> Optional[str]:
    """Canonical international form of a phone number.

    Strips spaces, dashes and parentheses; ``00`` becomes ``+``; a single
    leading ``0`` is replaced with ``default_country_code``.
    """
    if raw is None:
        return None
    s = _PHONE_JUNK.sub("", str(raw).strip())
    if not s:
        return None
    if s.startswith("00"):
        s = "+" + s[2:]
    elif s.startswith("+"):
        pass
    elif s.startswith("0"):
        s = default_country_code + s[1:]
    return s


def normalize_email(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


def new_user_id() -> str:
    return f"u_{uuid.uuid4().hex}"


def user_to_dict(user: User) -> Dict:
    return {"id": user.id, "name": user.name, "email": user.email, "phone": user.phone}


@dataclass
class ImportResult:
    created: List[str]
    reused: List[str]
    skipped: int = 0


class UserDirectory:
    def __init__(self, storage: Storage, default_country_code: str = "+353"):
        self.storage = storage
        self.default_country_code = default_country_code

    def _phone(self, raw: Optional[str]) -> Optional[str]:
        return normalize_phone(raw, self.default_country_code)

    def get(self, user_id: str) -> User:
        with self.storage.session() as db:
            user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    def find(self, email: Optional[str] = None, phone: Optional[str] = None) -> Optional[User]:
        """Look a user up by phone first, then email."""
        p = self._phone(phone)
        e = normalize_email(email)
        with self.storage.session() as db:
            if p:
                user = db.scalars(select(User).where(User.phone == p)).first()
                if user:
                    return user
            if e:
                return db.scalars(select(User).where(User.email == e)).first()
        return None

    def create(
        self,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        p = self._phone(phone)
        e = normalize_email(email)
        if not p and not e:
            raise MalformedInputError("phone or email required")
        if self.find(email=e, phone=p) is not None:
            raise ConflictError("User with this phone/email already exists")
        uid = new_user_id()
        user = User(
            id=uid,
            name=(name or "").strip() or e or p or uid,
            email=e,
            phone=p,
            password_hash=hash_password(password) if password else None,
        )
        with self.storage.transaction() as db:
            db.add(user)
        logger.info("user.create id=%s", uid)
        return user

    def register(self, name: Optional[str], email: Optional[str], phone: Optional[str], password: str) -> User:
        if not password:
            raise MalformedInputError("password required")
        return self.create(name=name, email=email, phone=phone, password=password)

    def authenticate(self, password: str, email: Optional[str] = None, phone: Optional[str] = None) -> Optional[User]:
        user = self.find(email=email, phone=phone)
        if user is None or not user.password_hash:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    def update(
        self,
        user_id: str,
        name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        password: Optional[str] = None,
    ) -> User:
        with self.storage.transaction() as db:
            user = db.get(User, user_id)
            if user is None:
                raise NotFoundError("user", user_id)
            new_email = normalize_email(email) if email is not None else user.email
            new_phone = self._phone(phone) if phone is not None else user.phone
            if not new_email and not new_phone:
                raise MalformedInputError("phone or email required")
            clash = []
            if new_email and new_email != user.email:
                clash.append(User.email == new_email)
            if new_phone and new_phone != user.phone:
                clash.append(User.phone == new_phone)
            if clash and db.scalars(select(User).where(or_(*clash), User.id != user_id)).first() is not None:
                raise ConflictError("User with this phone/email already exists")
            if name is not None:
                user.name = name
            user.email = new_email
            user.phone = new_phone
            if password:
                user.password_hash = hash_password(password)
        logger.info("user.update id=%s", user_id)
        return user

    def delete(self, user_id: str) -> None:
        with self.storage.transaction() as db:
            user = db.get(User, user_id)
            if user is None:
                raise NotFoundError("user", user_id)
            db.query(NotificationSubscription).filter(NotificationSubscription.user_id == user_id).delete()
            db.delete(user)  # memberships cascade
        logger.info("user.delete id=%s", user_id)

    def search(self, term: Optional[str] = None) -> List[Dict]:
        """Users (optionally filtered by name/email/phone) with their devices."""
        with self.storage.session() as db:
            stmt = select(User)
            if term:
                like = f"%{term}%"
                stmt = stmt.where(or_(User.name.like(like), User.email.like(like), User.phone.like(like)))
            users = list(db.scalars(stmt.order_by(User.name)))
            out = []
            for u in users:
                item = user_to_dict(u)
                item["devices"] = [
                    {"deviceId": m.device_id, "deviceName": m.device.name, "role": m.role, "scheduleId": m.schedule_id}
                    for m in sorted(u.memberships, key=lambda m: m.device_id)
                ]
                out.append(item)
            return out

    def devices_for(self, user_id: str) -> List[Dict]:
        with self.storage.session() as db:
            rows = db.scalars(
                select(Membership).where(Membership.user_id == user_id).order_by(Membership.device_id)
            )
            return [{"id": m.device_id, "name": m.device.name, "role": m.role} for m in rows]

    def profile(self, user_id: str) -> Dict:
        """The user plus, per enrolled device, role, schedule and alert subscriptions."""
        with self.storage.session() as db:
            user = db.get(User, user_id)
            if user is None:
                raise NotFoundError("user", user_id)
            subs: Dict[str, List[str]] = {}
            for device_id, event_type in db.execute(
                select(NotificationSubscription.device_id, NotificationSubscription.event_type)
                .where(NotificationSubscription.user_id == user_id, NotificationSubscription.enabled.is_(True))
                .order_by(NotificationSubscription.event_type)
            ):
                subs.setdefault(device_id, []).append(event_type)
            devices = [
                {
                    "deviceId": m.device_id,
                    "deviceName": m.device.name,
                    "role": m.role,
                    "scheduleId": m.schedule_id,
                    "notifications": {"eventTypes": subs.get(m.device_id, [])},
                }
                for m in sorted(user.memberships, key=lambda m: m.device_id)
            ]
            return {"user": user_to_dict(user), "devices": devices}

    def import_rows(self, rows: Iterable[Dict]) -> ImportResult:
        """Find-or-create users for ``rows`` of ``{name, email, phone}``.

        Rows without phone and email are skipped. Returns ids per outcome.
        """
        result = ImportResult(created=[], reused=[])
        for row in rows:
            email = normalize_email(row.get("email"))
            phone = self._phone(row.get("phone"))
            if not email and not phone:
                result.skipped += 1
                continue
            user = self.find(email=email, phone=phone)
            if user is None:
                user = self.create(name=row.get("name"), email=email, phone=phone)
                result.created.append(user.id)
            else:
                result.reused.append(user.id)
        return result


__all__ = ["UserDirectory", "ImportResult", "normalize_phone", "normalize_email", "user_to_dict"]
