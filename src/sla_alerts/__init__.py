"""
Ticket SLA Alerts
=================

Real-time SLA monitoring and alerting for support tickets.

    from sla_alerts import SLAAlertEngine

    engine = SLAAlertEngine.from_settings(on_alert_triggered=print)
    engine.set_tickets(tickets)
"""

from sla_alerts.shared.infrastructure import setup_logging
from sla_alerts.sla.domain import Alert, AlertLevel, SLAConfig, Ticket
from sla_alerts.sla.interfaces import SLAAlertEngine

__version__ = "1.0.0"

__all__ = [
    "Alert",
    "AlertLevel",
    "SLAAlertEngine",
    "SLAConfig",
    "Ticket",
    "setup_logging",
]
