"""Database initialization helper for Geata.

Creates all tables and, optionally, the two demo gates.
"""
from __future__ import annotations
import os
from sqlalchemy import func, select
from .db import Storage
from .models import Device

DEMO_DEVICES = (("gate1", "Warehouse Gate"), ("gate2", "Yard Barrier"))


def init_db(storage: Storage, seed_devices: bool = False) -> None:
    """Create tables and optional seed records.

    Parameters
    ----------
    storage: Storage
        Target database.
    seed_devices: bool
        If True and no devices exist yet, create the demo gates.
    """
    storage.create_all()
    if not seed_devices:
        return
    with storage.transaction() as db:
        if db.scalar(select(func.count()).select_from(Device)) == 0:
            for device_id, name in DEMO_DEVICES:
                db.add(Device(id=device_id, name=name))


if __name__ == "__main__":  # pragma: no cover
    init_db(Storage(), seed_devices=os.environ.get("GEATA_SEED_DEVICES", "0") in ("1", "true", "yes"))
