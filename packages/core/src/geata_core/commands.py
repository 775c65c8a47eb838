"""Durable per-device command queue.

Commands move ``queued -> completed`` exactly once. Completion is a
compare-and-swap on ``status='queued'`` so duplicate or concurrent reports for
the same command are harmless no-ops. Draining is read-only: a command stays
queued (and keeps being handed to the device) until a poll reports it done.
"""
from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Callable, List, Optional

from sqlalchemy import delete, select, update

from geata_core.db import Storage, utcnow
from geata_core.errors import MalformedInputError
from geata_core.models import COMMAND_TYPES, STATUS_COMPLETED, STATUS_QUEUED, Command

logger = logging.getLogger("geata_core.commands")

MAX_DURATION_MS = 60_000


def new_command_id() -> str:
    return f"cmd_{uuid.uuid4().hex}"


def validate_command(type_: str, duration_ms) -> int:
    if type_ not in COMMAND_TYPES:
        raise MalformedInputError(f"invalid command type: {type_!r}")
    try:
        duration = int(duration_ms)
    except (TypeError, ValueError):
        raise MalformedInputError(f"invalid durationMs: {duration_ms!r}")
    if duration <= 0 or duration > MAX_DURATION_MS:
        raise MalformedInputError(f"durationMs must be between 1 and {MAX_DURATION_MS}")
    return duration


class CommandQueue:
    def __init__(self, storage: Storage, clock: Callable = utcnow):
        self.storage = storage
        self.clock = clock

    def enqueue(self, device_id: str, user_id: Optional[str], type_: str, duration_ms: int) -> Command:
        duration = validate_command(type_, duration_ms)
        cmd = Command(
            id=new_command_id(),
            device_id=device_id,
            user_id=user_id,
            type=type_,
            status=STATUS_QUEUED,
            requested_at=self.clock(),
            duration_ms=duration,
        )
        with self.storage.transaction() as db:
            db.add(cmd)
        logger.info("command.enqueue id=%s device=%s type=%s user=%s", cmd.id, device_id, type_, user_id)
        return cmd

    def drain(self, device_id: str) -> List[Command]:
        with self.storage.session() as db:
            stmt = (
                select(Command)
                .where(Command.device_id == device_id, Command.status == STATUS_QUEUED)
                .order_by(Command.requested_at.asc(), Command.seq.asc())
            )
            return list(db.scalars(stmt))

    def complete(self, device_id: str, command_id: str, result: Optional[str]) -> Optional[Command]:
        with self.storage.transaction() as db:
            res = db.execute(
                update(Command)
                .where(
                    Command.id == command_id,
                    Command.device_id == device_id,
                    Command.status == STATUS_QUEUED,
                )
                .values(status=STATUS_COMPLETED, completed_at=self.clock(), result=result)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount != 1:
                logger.debug("command.complete noop id=%s device=%s", command_id, device_id)
                return None
            cmd = db.scalars(select(Command).where(Command.id == command_id)).one()
        logger.info("command.complete id=%s device=%s result=%s", command_id, device_id, result)
        return cmd

    def get(self, command_id: str) -> Optional[Command]:
        with self.storage.session() as db:
            return db.scalars(select(Command).where(Command.id == command_id)).first()

    def recent(self, limit: int = 20, device_id: Optional[str] = None) -> List[Command]:
        with self.storage.session() as db:
            stmt = select(Command)
            if device_id:
                stmt = stmt.where(Command.device_id == device_id)
            stmt = stmt.order_by(Command.requested_at.desc(), Command.seq.desc()).limit(max(1, min(limit, 500)))
            return list(db.scalars(stmt))

    def purge(self, older_than_days: int, include_queued: bool = False) -> int:
        """Delete commands requested more than ``older_than_days`` ago.

        Queued commands are kept unless ``include_queued`` is set.
        """
        if older_than_days is None or int(older_than_days) < 1:
            raise MalformedInputError("olderThanDays must be >= 1")
        cutoff = self.clock() - timedelta(days=int(older_than_days))
        stmt = delete(Command).where(Command.requested_at < cutoff)
        if not include_queued:
            stmt = stmt.where(Command.status == STATUS_COMPLETED)
        with self.storage.transaction() as db:
            deleted = db.execute(stmt.execution_options(synchronize_session=False)).rowcount
        logger.info("command.purge older_than_days=%s include_queued=%s deleted=%s",
                    older_than_days, include_queued, deleted)
        return deleted



def _iso(value):
    return value.isoformat() + "Z" if value is not None else None


def command_to_dict(cmd: Command) -> dict:
    return {
        "id": cmd.id,
        "deviceId": cmd.device_id,
        "userId": cmd.user_id,
        "type": cmd.type,
        "status": cmd.status,
        "requestedAt": _iso(cmd.requested_at),
        "completedAt": _iso(cmd.completed_at),
        "result": cmd.result,
        "durationMs": cmd.duration_ms,
    }


__all__ = ["CommandQueue", "command_to_dict", "new_command_id", "validate_command", "MAX_DURATION_MS"]
