"""Access policy: may a user operate a device right now?"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from geata_core.db import Storage
from geata_core.evaluator import is_schedule_active
from geata_core.models import Membership, Schedule

logger = logging.getLogger("geata_core.access")

ALWAYS = "ALWAYS"
NOT_ASSIGNED = "NOT_ASSIGNED"
SCHEDULE_DENIED = "SCHEDULE_DENIED"


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str

    def to_dict(self) -> dict:
        return {"allowed": self.allowed, "reason": self.reason}


class AccessPolicy:
    """Combines membership facts with schedule evaluation.

    Side-effect free: callers log denials themselves, using ``reason``.
    """

    def __init__(self, storage: Storage):
        self.storage = storage

    def can_operate(self, device_id: str, user_id: str, now: datetime) -> AccessDecision:
        with self.storage.session() as session:
            return self._decide(session, device_id, user_id, now)

    def _decide(self, db: Session, device_id: str, user_id: str, now: datetime) -> AccessDecision:
        membership = db.get(Membership, (device_id, user_id))
        if membership is None:
            return AccessDecision(False, NOT_ASSIGNED)
        if membership.schedule_id is None:
            return AccessDecision(True, ALWAYS)
        schedule = db.get(Schedule, membership.schedule_id)
        if schedule is None or not schedule.slots:
            logger.debug("access.schedule empty_or_missing device=%s user=%s schedule=%s",
                         device_id, user_id, membership.schedule_id)
            return AccessDecision(False, SCHEDULE_DENIED)
        if is_schedule_active(schedule, now):
            return AccessDecision(True, ALWAYS)
        return AccessDecision(False, SCHEDULE_DENIED)


__all__ = [
    "AccessDecision",
    "AccessPolicy",
    "ALWAYS",
    "NOT_ASSIGNED",
    "SCHEDULE_DENIED",
]
