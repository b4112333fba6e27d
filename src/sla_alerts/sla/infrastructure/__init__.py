"""
SLA Infrastructure Layer
=========================

Infrastructure implementations for SLA alerting:
- Repositories: YAML config store, JSON acknowledgment store
- External: scheduler, config watcher, notification ports
"""

from sla_alerts.sla.infrastructure.repositories import (
    YAMLConfigStore,
    JSONAlertStore,
)
from sla_alerts.sla.infrastructure.external import (
    APSchedulerTimer,
    CircuitBreaker,
    CircuitState,
    ConfigFileWatcher,
    LoggingNotificationPort,
    WebhookNotificationPort,
    TONE_FREQUENCIES_HZ,
)

__all__ = [
    "YAMLConfigStore",
    "JSONAlertStore",
    "APSchedulerTimer",
    "CircuitBreaker",
    "CircuitState",
    "ConfigFileWatcher",
    "LoggingNotificationPort",
    "WebhookNotificationPort",
    "TONE_FREQUENCIES_HZ",
]
