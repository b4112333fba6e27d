"""
SLA Alert Engine
================

Caller-facing facade over the SLA alerting services.

The engine owns the alert log, the current configuration and the ticket
snapshot, and wires the poller to the stores and notification port.
UI code (dashboards, banners) reads ``alerts``/``active_alerts`` and calls
the acknowledgment operations; it never talks to the stores directly.

Usage:
    settings = get_settings()
    setup_logging(settings.log_level, settings.environment)

    engine = SLAAlertEngine.from_settings(settings, on_alert_triggered=show_banner)
    engine.set_tickets(tickets_from_api)
    ...
    engine.acknowledge(alert.id)
    engine.close()
"""

import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from sla_alerts.config import Settings, get_settings
from sla_alerts.core import ValidationException
from sla_alerts.shared.infrastructure.logging import get_logger
from sla_alerts.sla.application import (
    AlertResponse,
    IAlertStore,
    IConfigStore,
    INotificationPort,
    ISLAConfigProvider,
    ITimer,
    NotificationDispatcher,
    SLAPoller,
    TicketSnapshotDTO,
)
from sla_alerts.sla.domain import Alert, SLAConfig, Ticket
from sla_alerts.sla.infrastructure import (
    APSchedulerTimer,
    ConfigFileWatcher,
    JSONAlertStore,
    LoggingNotificationPort,
    WebhookNotificationPort,
    YAMLConfigStore,
)

logger = get_logger(__name__)


class SLAAlertEngine(ISLAConfigProvider):
    """
    Real-time SLA alerting for a set of tickets.

    Alerts accumulate in an in-memory log until dismissed or cleared;
    acknowledgments are persisted through the alert store.
    """

    def __init__(
        self,
        config_store: IConfigStore,
        alert_store: IAlertStore,
        notification_port: INotificationPort,
        timer: Optional[ITimer] = None,
        on_alert_triggered: Optional[Callable[[Alert], None]] = None,
        ticket_provider: Optional[Callable[[], Iterable[Any]]] = None,
        enabled: bool = True,
        now_provider: Optional[Callable[[], Any]] = None
    ):
        self._lock = threading.RLock()
        self._config_store = config_store
        self._alert_store = alert_store
        self._notification_port = notification_port
        self._ticket_provider = ticket_provider

        self._config = config_store.load()
        self._alerts: List[Alert] = []
        self._tickets: Tuple[Ticket, ...] = ()
        self._enabled = False
        self._watcher: Optional[ConfigFileWatcher] = None

        self._dispatcher = NotificationDispatcher(
            notification_port, self, on_alert_triggered
        )
        self._poller = SLAPoller(
            alert_store=alert_store,
            dispatcher=self._dispatcher,
            config_provider=self,
            timer=timer or APSchedulerTimer(),
            ticket_source=self._current_tickets,
            on_alert=self._record_alert,
            now_provider=now_provider,
            coerce=self._coerce_ticket,
        )

        self.set_enabled(enabled)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        on_alert_triggered: Optional[Callable[[Alert], None]] = None,
        ticket_provider: Optional[Callable[[], Iterable[Any]]] = None,
        notification_port: Optional[INotificationPort] = None,
        timer: Optional[ITimer] = None
    ) -> "SLAAlertEngine":
        """
        Build an engine wired to file-backed stores.

        Uses a webhook notification port when ``webhook_url`` is set, the
        logging port otherwise.
        """
        settings = settings or get_settings()

        if notification_port is None:
            if settings.webhook_url:
                notification_port = WebhookNotificationPort(
                    settings.webhook_url,
                    channel=settings.webhook_channel,
                    timeout_seconds=settings.webhook_timeout_seconds,
                )
            else:
                notification_port = LoggingNotificationPort()

        engine = cls(
            config_store=YAMLConfigStore(settings.sla_config_path),
            alert_store=JSONAlertStore(
                settings.acknowledged_alerts_path,
                retention=settings.acknowledged_retention,
            ),
            notification_port=notification_port,
            timer=timer,
            on_alert_triggered=on_alert_triggered,
            ticket_provider=ticket_provider,
            enabled=False,
        )
        engine.request_permission()

        if settings.watch_config:
            engine.watch_config()
        if settings.start_enabled:
            engine.set_enabled(True)

        logger.info(
            "SLA alert engine ready",
            extra={"app": settings.app_name, "environment": settings.environment}
        )
        return engine

    # ========== State ==========

    def get_config(self) -> SLAConfig:
        """Get current SLA configuration."""
        return self._config

    @property
    def config(self) -> SLAConfig:
        return self._config

    @property
    def alerts(self) -> List[Alert]:
        """Alert log, oldest first."""
        with self._lock:
            return list(self._alerts)

    @property
    def active_alerts(self) -> List[Alert]:
        """Alerts not yet acknowledged."""
        with self._lock:
            return [a for a in self._alerts if not a.acknowledged]

    @property
    def acknowledged_count(self) -> int:
        with self._lock:
            return sum(1 for a in self._alerts if a.acknowledged)

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    @property
    def is_running(self) -> bool:
        return self._poller.is_running

    @property
    def has_permission(self) -> bool:
        return self._dispatcher.has_permission

    @property
    def poller(self) -> SLAPoller:
        return self._poller

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready view of the engine for UI code."""
        with self._lock:
            alerts = [
                AlertResponse.from_domain(a).model_dump(by_alias=True, mode="json")
                for a in self._alerts
            ]
        return {
            "alerts": alerts,
            "activeCount": sum(1 for a in alerts if not a["acknowledged"]),
            "acknowledgedCount": sum(1 for a in alerts if a["acknowledged"]),
            "enabled": self._enabled,
            "hasPermission": self.has_permission,
            "config": self._config.to_record(),
        }

    # ========== Tickets ==========

    @staticmethod
    def _coerce_ticket(item: Any) -> Any:
        if isinstance(item, Ticket):
            return item
        if isinstance(item, dict):
            try:
                return TicketSnapshotDTO.model_validate(item).to_domain()
            except ValidationError as e:
                raise ValidationException(
                    f"Invalid ticket snapshot: {e.error_count()} error(s)",
                    {"errors": e.errors(include_url=False)}
                ) from e
        # Any object exposing the Ticket attributes is accepted as-is.
        return item

    def set_tickets(self, tickets: Iterable[Any]) -> None:
        """
        Replace the ticket snapshot evaluated on each tick.

        Accepts Ticket entities or ticket dicts (validated with
        TicketSnapshotDTO).

        Raises:
            ValidationException: if a ticket dict is invalid
        """
        snapshot = tuple(self._coerce_ticket(t) for t in tickets)
        with self._lock:
            self._tickets = snapshot

    def _current_tickets(self) -> List[Any]:
        if self._ticket_provider is not None:
            # Raw items; the poller coerces each inside its per-ticket guard.
            return list(self._ticket_provider())
        with self._lock:
            return list(self._tickets)

    def check_now(self) -> List[Alert]:
        """Run one evaluation pass immediately and return new alerts."""
        return self._poller.tick()

    def _record_alert(self, alert: Alert) -> None:
        with self._lock:
            # Re-escalation after a return to ok reuses the alert id.
            self._alerts = [a for a in self._alerts if a.id != alert.id]
            self._alerts.append(alert)

    # ========== Actions ==========

    def acknowledge(self, alert_id: str) -> bool:
        """
        Acknowledge an alert and persist the acknowledgment.

        Returns True if the alert was in the log.
        """
        try:
            self._alert_store.acknowledge(alert_id)
        except Exception as e:
            logger.warning(
                "Failed to persist acknowledgment",
                extra={"alert_id": alert_id, "error": str(e)}
            )

        found = False
        with self._lock:
            for index, alert in enumerate(self._alerts):
                if alert.id == alert_id:
                    self._alerts[index] = alert.mark_acknowledged()
                    found = True
        return found

    def acknowledge_all(self) -> int:
        """Acknowledge every alert in the log; returns how many were pending."""
        with self._lock:
            pending = [a.id for a in self._alerts if not a.acknowledged]
            self._alerts = [a.mark_acknowledged() for a in self._alerts]

        if pending:
            try:
                self._alert_store.acknowledge_all(pending)
            except Exception as e:
                logger.warning(
                    "Failed to persist acknowledgments",
                    extra={"count": len(pending), "error": str(e)}
                )
        return len(pending)

    def dismiss(self, alert_id: str) -> bool:
        """Remove an alert from the log without acknowledging it."""
        with self._lock:
            remaining = [a for a in self._alerts if a.id != alert_id]
            removed = len(remaining) != len(self._alerts)
            self._alerts = remaining
        return removed

    def clear_all(self) -> None:
        """Empty the alert log and forget tracked ticket levels."""
        with self._lock:
            self._alerts = []
        self._poller.reset()

    # ========== Configuration ==========

    def update_config(
        self,
        partial: Optional[Dict[str, Any]] = None,
        **changes: Any
    ) -> SLAConfig:
        """
        Merge changes into the config, persist it and apply it.

        Keys may be field names (``danger_threshold_hours``) or record
        aliases (``dangerThresholdHours``).

        Raises:
            ValidationException: if the merged config is invalid; the
                current config is left untouched
        """
        updates = {**(partial or {}), **changes}

        with self._lock:
            previous = self._config
            try:
                new_config = previous.merged(updates)
            except ValueError as e:
                raise ValidationException(
                    f"Invalid SLA config update: {e}",
                    {"fields": sorted(updates)}
                ) from e
            self._config = new_config

        try:
            self._config_store.save(new_config)
        except Exception as e:
            logger.warning("Failed to persist SLA config", extra={"error": str(e)})

        self._apply_config(previous, new_config)
        return new_config

    def _apply_config(self, previous: SLAConfig, current: SLAConfig) -> None:
        if previous.check_interval_ms != current.check_interval_ms and self._poller.is_running:
            self._poller.restart(current.check_interval_ms)

    def _on_config_reloaded(self, config: SLAConfig) -> None:
        with self._lock:
            previous = self._config
            self._config = config
        self._apply_config(previous, config)

    def watch_config(self) -> bool:
        """Hot-reload the config when its YAML file changes on disk."""
        if not isinstance(self._config_store, YAMLConfigStore):
            logger.info("Config store does not support watching")
            return False
        if self._watcher is None:
            self._watcher = ConfigFileWatcher(
                self._config_store, self._on_config_reloaded, initial=self._config
            )
            self._watcher.start()
        return self._watcher.is_watching

    # ========== Lifecycle ==========

    def set_enabled(self, enabled: bool) -> None:
        """Start (True) or stop (False) the periodic evaluation."""
        with self._lock:
            self._enabled = enabled
            if enabled:
                if not self._poller.is_running:
                    self._poller.start(self._config.check_interval_ms)
            else:
                self._poller.stop()

    def request_permission(self) -> bool:
        """Request system notification permission (cached)."""
        return self._dispatcher.request_permission()

    def close(self) -> None:
        """Stop the timer and release watchers and clients."""
        self.set_enabled(False)
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        close = getattr(self._notification_port, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> "SLAAlertEngine":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
