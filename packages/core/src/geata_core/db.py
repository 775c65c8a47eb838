"""Database setup.

Provides the declarative base and :class:`Storage`, the explicit storage
context (engine + session factory) that the app factory creates once and hands
to every service. Nothing here opens a connection at import time.

Defaults to an on-disk SQLite database under ``data/geata.db`` at the
repository root, but respects ``GEATA_DB_URL`` (or ``GEATA_DATABASE_URL``) for
testing or custom setups.
"""
from __future__ import annotations

import os
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional
from urllib.parse import urlparse

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from geata_core.config import Settings

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _ensure_sqlite_dir(url: str) -> None:
    # If pointing to a SQLite file, ensure its directory exists
    parsed = urlparse(url)
    if parsed.scheme == "sqlite" and parsed.path and parsed.path not in ("/:memory:", ":memory:"):
        _dir = os.path.dirname(parsed.path)
        if _dir:
            os.makedirs(_dir, exist_ok=True)


class Storage:
    """Engine and session factory shared by the core services."""

    def __init__(self, url: Optional[str] = None, echo: bool = False):
        self.url = url or Settings().effective_database_url()
        kwargs = {}
        if self.url.startswith("sqlite"):
            _ensure_sqlite_dir(self.url)
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in self.url or self.url in ("sqlite://", "sqlite:///"):
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True
        self.engine: Engine = create_engine(self.url, echo=echo, **kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine)

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session that commits on success and rolls back on error."""
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()


__all__ = [
    "Base",
    "Storage",
    "utcnow",
]
