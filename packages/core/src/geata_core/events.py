"""Append-only audit log of access decisions and command lifecycle.

Appending is best effort: a storage failure is logged and swallowed so it can
never fail the operation that triggered it. Successful appends are handed to
registered listeners (notification fan-out and the like), on an executor when
one is configured.
"""
from __future__ import annotations

import logging
from concurrent.futures import Executor
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Set

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from geata_core.db import Storage, utcnow
from geata_core.errors import MalformedInputError
from geata_core.models import Event

logger = logging.getLogger("geata_core.events")

# Access decisions and command lifecycle
OPEN_REQUESTED = "OPEN_REQUESTED"
AUX1_REQUESTED = "AUX1_REQUESTED"
AUX2_REQUESTED = "AUX2_REQUESTED"
ACCESS_DENIED_NOT_ASSIGNED = "ACCESS_DENIED_NOT_ASSIGNED"
ACCESS_DENIED_SCHEDULE = "ACCESS_DENIED_SCHEDULE"
AUX1_DENIED_NOT_ASSIGNED = "AUX1_DENIED_NOT_ASSIGNED"
AUX1_DENIED_SCHEDULE = "AUX1_DENIED_SCHEDULE"
AUX2_DENIED_NOT_ASSIGNED = "AUX2_DENIED_NOT_ASSIGNED"
AUX2_DENIED_SCHEDULE = "AUX2_DENIED_SCHEDULE"
CMD_COMPLETED = "CMD_COMPLETED"

# Reported by field hardware (or simulated from the admin console)
DEVICE_EVENT_TYPES = (
    "GATE_OPENED",
    "GATE_CLOSED",
    "GATE_FORCED_OPEN",
    "DOOR_FORCED_OPEN",
    "GATE_OPEN_TOO_LONG",
    "TAMPER_OPENED",
)

EVENT_TYPES = (
    OPEN_REQUESTED,
    CMD_COMPLETED,
    *DEVICE_EVENT_TYPES,
    ACCESS_DENIED_NOT_ASSIGNED,
    ACCESS_DENIED_SCHEDULE,
    AUX1_REQUESTED,
    AUX2_REQUESTED,
    AUX1_DENIED_NOT_ASSIGNED,
    AUX1_DENIED_SCHEDULE,
    AUX2_DENIED_NOT_ASSIGNED,
    AUX2_DENIED_SCHEDULE,
)

_DENIAL_SUFFIX = {"NOT_ASSIGNED": "NOT_ASSIGNED", "SCHEDULE_DENIED": "SCHEDULE"}


def requested_event(command_type: str) -> str:
    return f"{command_type}_REQUESTED"


def denied_event(command_type: str, reason: str) -> str:
    """Event type for a denied request, e.g. ``ACCESS_DENIED_SCHEDULE``."""
    prefix = "ACCESS" if command_type == "OPEN" else command_type
    return f"{prefix}_DENIED_{_DENIAL_SUFFIX[reason]}"


def event_to_dict(event: Event) -> dict:
    return {
        "id": event.id,
        "deviceId": event.device_id,
        "userId": event.user_id,
        "eventType": event.event_type,
        "at": event.at.isoformat() + "Z" if event.at else None,
        "details": event.details,
    }


EventListener = Callable[[Event], None]


def _as_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class EventLog:
    def __init__(
        self,
        storage: Storage,
        max_limit: int = 1000,
        executor: Optional[Executor] = None,
        clock: Callable = utcnow,
    ):
        self.storage = storage
        self.max_limit = max_limit
        self.executor = executor
        self.clock = clock
        self._listeners: Set[EventListener] = set()

    def add_listener(self, cb: EventListener) -> None:
        self._listeners.add(cb)

    def remove_listener(self, cb: EventListener) -> None:
        self._listeners.discard(cb)

    def append(
        self,
        device_id: str,
        user_id: Optional[str],
        event_type: str,
        details: Optional[str] = None,
    ) -> Optional[Event]:
        event = Event(device_id=device_id, user_id=user_id, event_type=event_type, at=self.clock(), details=details)
        try:
            with self.storage.transaction() as db:
                db.add(event)
        except SQLAlchemyError:
            logger.exception("event.append failed device=%s type=%s", device_id, event_type)
            return None
        logger.info("event.append id=%s device=%s user=%s type=%s", event.id, device_id, user_id, event_type)
        self._dispatch(event)
        return event

    def _dispatch(self, event: Event) -> None:
        for cb in list(self._listeners):
            if self.executor is not None:
                try:
                    self.executor.submit(self._run_listener, cb, event)
                except RuntimeError:
                    # executor already shut down
                    logger.warning("event.dispatch skipped id=%s: executor closed", event.id)
            else:
                self._run_listener(cb, event)

    @staticmethod
    def _run_listener(cb: EventListener, event: Event) -> None:
        try:
            cb(event)
        except Exception:
            logger.exception("event.listener failed id=%s type=%s", event.id, event.event_type)

    def query(
        self,
        device_id: Optional[str] = None,
        user_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        event_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[Event]:
        limit = max(1, min(int(limit or 100), self.max_limit))
        stmt = select(Event)
        if device_id:
            stmt = stmt.where(Event.device_id == device_id)
        if user_id:
            stmt = stmt.where(Event.user_id == user_id)
        if start is not None:
            stmt = stmt.where(Event.at >= _as_utc_naive(start))
        if end is not None:
            stmt = stmt.where(Event.at <= _as_utc_naive(end))
        if event_type:
            stmt = stmt.where(Event.event_type == event_type)
        stmt = stmt.order_by(Event.at.desc(), Event.id.desc()).limit(limit)
        with self.storage.session() as db:
            return list(db.scalars(stmt))

    def purge(self, older_than_days: int) -> int:
        if older_than_days is None or int(older_than_days) < 1:
            raise MalformedInputError("olderThanDays must be >= 1")
        cutoff = self.clock() - timedelta(days=int(older_than_days))
        with self.storage.transaction() as db:
            deleted = db.execute(
                delete(Event).where(Event.at < cutoff).execution_options(synchronize_session=False)
            ).rowcount
        logger.info("event.purge older_than_days=%s deleted=%s", older_than_days, deleted)
        return deleted


__all__ = [
    "EventLog",
    "EVENT_TYPES",
    "DEVICE_EVENT_TYPES",
    "CMD_COMPLETED",
    "OPEN_REQUESTED",
    "ACCESS_DENIED_NOT_ASSIGNED",
    "ACCESS_DENIED_SCHEDULE",
    "requested_event",
    "denied_event",
    "event_to_dict",
]
