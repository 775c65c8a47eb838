"""Alert subscriptions and event fan-out.

:class:`NotificationFanout` registers as an event-log listener. For every
event it resolves the users subscribed to that (device, event type) and passes
each one to a sender. Transport is the sender's business; the default only
logs.
"""
from __future__ import annotations

import logging
from typing import Callable, Iterable, List

from sqlalchemy import delete, select

from geata_core.db import Storage
from geata_core.errors import MalformedInputError
from geata_core.events import EVENT_TYPES, EventLog
from geata_core.models import Event, NotificationSubscription, User

logger = logging.getLogger("geata_core.notifications")

Sender = Callable[[User, Event], None]


def log_sender(user: User, event: Event) -> None:
    logger.info("notify.send user=%s email=%s device=%s type=%s",
                user.id, user.email, event.device_id, event.event_type)


class SubscriptionStore:
    def __init__(self, storage: Storage):
        self.storage = storage

    def event_types(self, device_id: str, user_id: str) -> List[str]:
        with self.storage.session() as db:
            rows = db.scalars(
                select(NotificationSubscription.event_type).where(
                    NotificationSubscription.device_id == device_id,
                    NotificationSubscription.user_id == user_id,
                    NotificationSubscription.enabled.is_(True),
                ).order_by(NotificationSubscription.event_type)
            )
            return list(rows)

    def set_event_types(self, device_id: str, user_id: str, event_types: Iterable[str]) -> List[str]:
        wanted = sorted(set(event_types))
        unknown = [t for t in wanted if t not in EVENT_TYPES]
        if unknown:
            raise MalformedInputError(f"unknown event types: {', '.join(unknown)}")
        with self.storage.transaction() as db:
            db.execute(
                delete(NotificationSubscription).where(
                    NotificationSubscription.device_id == device_id,
                    NotificationSubscription.user_id == user_id,
                )
            )
            for t in wanted:
                db.add(NotificationSubscription(device_id=device_id, user_id=user_id, event_type=t, enabled=True))
        logger.info("notify.subscriptions device=%s user=%s count=%d", device_id, user_id, len(wanted))
        return wanted

    def subscribers(self, device_id: str, event_type: str) -> List[User]:
        with self.storage.session() as db:
            stmt = (
                select(User)
                .join(NotificationSubscription, NotificationSubscription.user_id == User.id)
                .where(
                    NotificationSubscription.device_id == device_id,
                    NotificationSubscription.event_type == event_type,
                    NotificationSubscription.enabled.is_(True),
                )
            )
            return list(db.scalars(stmt))


class NotificationFanout:
    def __init__(self, subscriptions: SubscriptionStore, sender: Sender = log_sender):
        self.subscriptions = subscriptions
        self.sender = sender

    def attach(self, events: EventLog) -> None:
        events.add_listener(self)

    def __call__(self, event: Event) -> None:
        for user in self.subscriptions.subscribers(event.device_id, event.event_type):
            try:
                self.sender(user, event)
            except Exception:
                logger.exception("notify.failed user=%s event=%s", user.id, event.id)


__all__ = ["SubscriptionStore", "NotificationFanout", "log_sender"]
