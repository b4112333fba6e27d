"""
SLA Domain Layer
================

Domain layer for SLA alerting.

Contains:
- Entities: Ticket snapshots and the Alerts raised for them
- Value Objects: AlertLevel, SLAConfig, SLAStatus
- Domain Services: SLAClock (stateless classification)

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from sla_alerts.sla.domain.entities import Ticket, Alert
from sla_alerts.sla.domain.value_objects import (
    AlertLevel,
    SLAClock,
    SLAConfig,
    SLAStatus,
)

__all__ = [
    # Entities
    "Ticket",
    "Alert",
    # Value Objects & Services
    "AlertLevel",
    "SLAClock",
    "SLAConfig",
    "SLAStatus",
]
