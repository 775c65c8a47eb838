"""Device poll protocol.

Field controllers have no inbound connectivity, so they call :meth:`poll`
on their own interval. Each call reports results for commands received on
earlier polls and collects whatever is queued now (at-least-once delivery:
a command is handed out on every poll until its completion is reported).
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from geata_core.auth import safe_compare
from geata_core.commands import CommandQueue
from geata_core.devices import DeviceDirectory
from geata_core.errors import DeviceAuthError, NotFoundError
from geata_core.events import CMD_COMPLETED, EventLog

logger = logging.getLogger("geata_core.polling")

DEFAULT_RESULT = "unknown"


@dataclass
class PollResponse:
    commands: List[Dict[str, Any]] = field(default_factory=list)
    completed: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"commands": self.commands}


def _parse_result(entry: Any):
    """``(command_id, result)`` for a well-formed entry, else ``None``."""
    if not isinstance(entry, dict):
        return None
    command_id = entry.get("commandId")
    if not isinstance(command_id, str) or not command_id:
        return None
    result = entry.get("result")
    if result is None or result == "":
        result = DEFAULT_RESULT
    return command_id, str(result)


class DevicePoller:
    def __init__(
        self,
        devices: DeviceDirectory,
        queue: CommandQueue,
        events: EventLog,
        require_secret: bool = False,
    ):
        self.devices = devices
        self.queue = queue
        self.events = events
        self.require_secret = require_secret
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _device_lock(self, device_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(device_id)
            if lock is None:
                lock = self._locks[device_id] = threading.Lock()
            return lock

    def _check_device(self, device_id: str, secret: Optional[str]) -> None:
        if not self.devices.exists(device_id):
            logger.warning("poll.reject unknown device=%s", device_id)
            raise NotFoundError("device", device_id)
        if self.require_secret and not safe_compare(self.devices.get_secret(device_id), secret):
            logger.warning("poll.reject bad secret device=%s", device_id)
            raise DeviceAuthError("Unauthorized device")

    def poll(self, device_id: str, prior_results: Optional[Iterable[Any]] = None,
             secret: Optional[str] = None) -> PollResponse:
        self._check_device(device_id, secret)
        response = PollResponse()
        with self._device_lock(device_id):
            for entry in prior_results or []:
                parsed = _parse_result(entry)
                if parsed is None:
                    logger.debug("poll.skip malformed entry device=%s", device_id)
                    continue
                command_id, result = parsed
                cmd = self.queue.complete(device_id, command_id, result)
                if cmd is None:
                    continue
                response.completed.append(cmd.id)
                self.events.append(
                    device_id,
                    cmd.user_id,
                    CMD_COMPLETED,
                    f"{cmd.type} result={result} command={cmd.id}",
                )
            response.commands = [
                {"commandId": c.id, "type": c.type, "durationMs": c.duration_ms}
                for c in self.queue.drain(device_id)
            ]
        if response.completed or response.commands:
            logger.info("poll device=%s completed=%d queued=%d",
                        device_id, len(response.completed), len(response.commands))
        return response


__all__ = ["DevicePoller", "PollResponse"]
