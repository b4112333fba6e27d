"""
SLA Application Layer
======================

Application layer for SLA alerting.

Contains:
- Services: alert generation, notification dispatch, polling
- Ports: interfaces implemented by the infrastructure layer
- DTOs: data transfer objects at the engine boundary

This layer depends on the domain layer and port interfaces,
but not on concrete infrastructure implementations.
"""

from sla_alerts.sla.application.dto import (
    TicketSnapshotDTO,
    AlertResponse,
)
from sla_alerts.sla.application.services import (
    AlertGenerator,
    DispatchOutcome,
    NotificationDispatcher,
    SLAPoller,
    format_time_remaining,
    IAlertStore,
    IConfigStore,
    INotificationPort,
    ISLAConfigProvider,
    ITimer,
)

__all__ = [
    # DTOs
    "TicketSnapshotDTO",
    "AlertResponse",
    # Services
    "AlertGenerator",
    "DispatchOutcome",
    "NotificationDispatcher",
    "SLAPoller",
    "format_time_remaining",
    # Port Interfaces
    "IAlertStore",
    "IConfigStore",
    "INotificationPort",
    "ISLAConfigProvider",
    "ITimer",
]
