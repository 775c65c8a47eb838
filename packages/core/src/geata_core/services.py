"""Wires the core services around one explicit :class:`Storage`."""
from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Optional

from geata_core.access import AccessPolicy
from geata_core.commands import CommandQueue
from geata_core.config import Settings
from geata_core.db import Storage
from geata_core.devices import DeviceDirectory
from geata_core.events import EventLog
from geata_core.gates import GateOperator
from geata_core.notifications import NotificationFanout, SubscriptionStore
from geata_core.polling import DevicePoller
from geata_core.schedules import ScheduleStore
from geata_core.users import UserDirectory


@dataclass
class Services:
    settings: Settings
    storage: Storage
    users: UserDirectory
    devices: DeviceDirectory
    schedules: ScheduleStore
    policy: AccessPolicy
    queue: CommandQueue
    events: EventLog
    poller: DevicePoller
    gates: GateOperator
    subscriptions: SubscriptionStore


def build_services(storage: Storage, settings: Optional[Settings] = None,
                   executor: Optional[Executor] = None) -> Services:
    settings = settings or Settings()
    users = UserDirectory(storage, default_country_code=settings.default_country_code)
    devices = DeviceDirectory(storage)
    policy = AccessPolicy(storage)
    queue = CommandQueue(storage)
    events = EventLog(storage, max_limit=settings.events_max_limit, executor=executor)
    subscriptions = SubscriptionStore(storage)
    NotificationFanout(subscriptions).attach(events)
    return Services(
        settings=settings,
        storage=storage,
        users=users,
        devices=devices,
        schedules=ScheduleStore(storage),
        policy=policy,
        queue=queue,
        events=events,
        poller=DevicePoller(devices, queue, events, require_secret=settings.poll_require_secret),
        gates=GateOperator(devices, policy, queue, events),
        subscriptions=subscriptions,
    )


__all__ = ["Services", "build_services"]
