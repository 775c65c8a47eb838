"""Core domain & services for Geata.

Contains schedule evaluation, the access policy, the device command queue and
poll protocol, the audit event log, persistence models and configuration.
"""

from .config import Settings  # noqa: F401
