"""Open/aux request handling: policy check, enqueue and audit in one place."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from geata_core.access import AccessDecision, AccessPolicy
from geata_core.commands import CommandQueue, validate_command
from geata_core.devices import DeviceDirectory
from geata_core.errors import MalformedInputError, NotFoundError
from geata_core.events import DEVICE_EVENT_TYPES, EventLog, denied_event, requested_event
from geata_core.models import Command, Event

logger = logging.getLogger("geata_core.gates")


@dataclass
class GateRequestOutcome:
    decision: AccessDecision
    command: Optional[Command] = None

    @property
    def allowed(self) -> bool:
        return self.decision.allowed


class GateOperator:
    def __init__(self, devices: DeviceDirectory, policy: AccessPolicy, queue: CommandQueue, events: EventLog):
        self.devices = devices
        self.policy = policy
        self.queue = queue
        self.events = events

    def check(self, device_id: str, user_id: str, now: datetime) -> AccessDecision:
        """CanOpen: existence check, then the policy decision (no side effects)."""
        if not self.devices.exists(device_id):
            raise NotFoundError("device", device_id)
        return self.policy.can_operate(device_id, user_id, now)

    def request(self, device_id: str, user_id: str, type_: str, duration_ms: int, now: datetime) -> GateRequestOutcome:
        """Queue ``type_`` for ``device_id`` on behalf of ``user_id`` if allowed.

        A denial is logged as its reason-specific event and creates no command.
        """
        validate_command(type_, duration_ms)
        decision = self.check(device_id, user_id, now)
        if not decision.allowed:
            self.events.append(device_id, user_id, denied_event(type_, decision.reason), None)
            logger.info("gate.denied device=%s user=%s type=%s reason=%s", device_id, user_id, type_, decision.reason)
            return GateRequestOutcome(decision)
        cmd = self.queue.enqueue(device_id, user_id, type_, duration_ms)
        self.events.append(device_id, user_id, requested_event(type_), f"command={cmd.id} durationMs={cmd.duration_ms}")
        return GateRequestOutcome(decision, cmd)

    def test_pulse(self, device_id: str, type_: str, duration_ms: int) -> Command:
        """Admin-triggered pulse; bypasses the policy and carries no user."""
        validate_command(type_, duration_ms)
        if not self.devices.exists(device_id):
            raise NotFoundError("device", device_id)
        cmd = self.queue.enqueue(device_id, None, type_, duration_ms)
        self.events.append(device_id, None, requested_event(type_), f"test pulse command={cmd.id}")
        return cmd

    def simulate(self, device_id: str, event_type: str, details: Optional[str] = None) -> Optional[Event]:
        """Record a hardware event as if the controller had reported it."""
        if event_type not in DEVICE_EVENT_TYPES:
            raise MalformedInputError(f"invalid device event type: {event_type!r}")
        if not self.devices.exists(device_id):
            raise NotFoundError("device", device_id)
        return self.events.append(device_id, None, event_type, f"simulated{': ' + details if details else ''}")


__all__ = ["GateOperator", "GateRequestOutcome"]
