"""Schedule CRUD.

Plain data mutations; admin authorization happens in the API layer. Slot input
is validated here so a malformed slot never reaches storage.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select

from geata_core.db import Storage
from geata_core.errors import MalformedInputError, NotFoundError
from geata_core.evaluator import normalize_days, normalize_hhmm
from geata_core.models import Schedule, ScheduleSlot

logger = logging.getLogger("geata_core.schedules")


def _build_slots(slots: Optional[Iterable[Dict]]) -> List[ScheduleSlot]:
    built = []
    for pos, s in enumerate(slots or []):
        days, start, end = s.get("daysOfWeek"), s.get("start"), s.get("end")
        start, end = normalize_hhmm(start), normalize_hhmm(end)
        if start > end:
            raise MalformedInputError(f"slot start {start} is after end {end}")
        slot = ScheduleSlot(position=pos, start=start, end=end)
        slot.days_of_week = normalize_days(days)
        built.append(slot)
    return built


def schedule_to_dict(schedule: Schedule) -> Dict:
    return {
        "id": schedule.id,
        "name": schedule.name,
        "description": schedule.description,
        "slots": [
            {"daysOfWeek": s.days_of_week, "start": s.start, "end": s.end}
            for s in schedule.slots
        ],
    }


class ScheduleStore:
    def __init__(self, storage: Storage):
        self.storage = storage

    def list(self) -> List[Dict]:
        with self.storage.session() as db:
            rows = db.scalars(select(Schedule).order_by(func.lower(Schedule.name)))
            return [schedule_to_dict(s) for s in rows]

    def get(self, schedule_id: int) -> Dict:
        with self.storage.session() as db:
            schedule = db.get(Schedule, schedule_id)
            if schedule is None:
                raise NotFoundError("schedule", str(schedule_id))
            return schedule_to_dict(schedule)

    def create(self, name: str, description: Optional[str] = None, slots: Optional[Iterable] = None) -> Dict:
        if not name or not str(name).strip():
            raise MalformedInputError("name required")
        built = _build_slots(slots)
        with self.storage.transaction() as db:
            schedule = Schedule(name=str(name).strip(), description=description, slots=built)
            db.add(schedule)
            db.flush()
            out = schedule_to_dict(schedule)
        logger.info("schedule.create id=%s slots=%d", out["id"], len(built))
        return out

    def update(
        self,
        schedule_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        slots: Optional[Iterable] = None,
    ) -> Dict:
        """Update fields; ``slots`` (when given) replaces the whole slot list."""
        built = _build_slots(slots) if slots is not None else None
        with self.storage.transaction() as db:
            schedule = db.get(Schedule, schedule_id)
            if schedule is None:
                raise NotFoundError("schedule", str(schedule_id))
            if name is not None:
                if not str(name).strip():
                    raise MalformedInputError("name must not be empty")
                schedule.name = str(name).strip()
            if description is not None:
                schedule.description = description
            if built is not None:
                schedule.slots = built
            db.flush()
            out = schedule_to_dict(schedule)
        logger.info("schedule.update id=%s", schedule_id)
        return out

    def delete(self, schedule_id: int) -> None:
        # Memberships keep the dangling id and are denied until reassigned.
        with self.storage.transaction() as db:
            schedule = db.get(Schedule, schedule_id)
            if schedule is None:
                raise NotFoundError("schedule", str(schedule_id))
            db.delete(schedule)
        logger.info("schedule.delete id=%s", schedule_id)


__all__ = ["ScheduleStore", "schedule_to_dict"]
