"""Exception taxonomy shared by the core services.

Access denials are *not* errors; see :class:`geata_core.access.AccessDecision`.
"""
from typing import Optional


class GeataError(Exception):
    """Base exception for the access-control core."""


class NotFoundError(GeataError):
    """An addressed device/user/schedule/membership/command does not exist."""

    def __init__(self, entity: str, key: Optional[str] = None):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found" if key is None else f"{entity} not found: {key}")


class MalformedInputError(GeataError):
    """Input rejected at the boundary before any state was touched."""


class ConflictError(GeataError):
    """Creation clashed with an existing unique record."""


class DeviceAuthError(GeataError):
    """A polling device failed the shared-secret check."""


__all__ = [
    "GeataError",
    "NotFoundError",
    "MalformedInputError",
    "ConflictError",
    "DeviceAuthError",
]
