"""
SLA Application Services
=========================

Application services orchestrate the alerting workflow:

- AlertGenerator builds Alert records for an escalation.
- NotificationDispatcher delivers a new Alert (sound, system notification,
  caller callback).
- SLAPoller re-evaluates the ticket snapshot on every tick and decides
  which escalations deserve a new alert.

Following SOLID principles:
- Dependency Inversion: services depend on the port interfaces below, not
  on files, schedulers or notification backends.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional
from uuid import uuid4

from sla_alerts.core import TickProcessingException
from sla_alerts.shared.infrastructure.logging import (
    get_context_logger,
    get_logger,
    log_latency,
)
from sla_alerts.sla.domain import Alert, AlertLevel, SLAClock, SLAConfig, Ticket

logger = get_logger(__name__)


# ========== Port Interfaces (Dependency Inversion) ==========

class ISLAConfigProvider(ABC):
    """Interface for access to the current SLA configuration."""

    @abstractmethod
    def get_config(self) -> SLAConfig:
        """Get current SLA configuration."""


class IConfigStore(ABC):
    """Interface for the persisted SLA configuration record."""

    @abstractmethod
    def load(self) -> SLAConfig:
        """Load configuration, falling back to defaults."""

    @abstractmethod
    def save(self, config: SLAConfig) -> bool:
        """Persist configuration. Never raises; returns success."""


class IAlertStore(ABC):
    """Interface for the persisted set of acknowledged alert ids."""

    @abstractmethod
    def is_acknowledged(self, alert_id: str) -> bool:
        """Check whether an alert id was acknowledged."""

    @abstractmethod
    def acknowledge(self, alert_id: str) -> None:
        """Acknowledge one alert id (idempotent)."""

    @abstractmethod
    def acknowledge_all(self, alert_ids: Iterable[str]) -> None:
        """Acknowledge several alert ids (idempotent)."""


class INotificationPort(ABC):
    """Interface for platform notification side effects."""

    @abstractmethod
    def request_permission(self) -> bool:
        """Ask for permission to show system notifications."""

    @abstractmethod
    def show(
        self,
        title: str,
        body: str,
        level: AlertLevel,
        tag: Optional[str] = None,
        require_interaction: bool = False
    ) -> None:
        """Show a system notification."""

    @abstractmethod
    def play_sound(self, level: AlertLevel) -> None:
        """Play the audible cue for a level."""


class ITimer(ABC):
    """Interface for a cancellable periodic timer."""

    @abstractmethod
    def schedule(self, interval_seconds: float, func: Callable[[], None]) -> None:
        """Run ``func`` every ``interval_seconds`` until cancelled."""

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the pending timer (safe to call when idle)."""

    @property
    @abstractmethod
    def is_active(self) -> bool:
        """Whether a timer is currently installed."""


# ========== Alert Generation ==========

def format_time_remaining(seconds: int) -> str:
    """
    Format a remaining duration for alert messages.

    The sign is ignored. Examples: ``45s``, ``12min``, ``2h 05min``.
    """
    abs_seconds = abs(int(seconds))

    if abs_seconds < 60:
        return f"{abs_seconds}s"

    hours = abs_seconds // 3600
    minutes = (abs_seconds % 3600) // 60

    if hours > 0:
        return f"{hours}h {minutes:02d}min"

    return f"{minutes}min"


class AlertGenerator:
    """Builds Alert records for a ticket that reached a new level."""

    ID_PREFIX = "sla"

    def __init__(self, now_provider: Optional[Callable[[], datetime]] = None):
        self._now = now_provider or (lambda: datetime.now(timezone.utc))

    @classmethod
    def alert_id_for(cls, ticket_id: str, level: AlertLevel) -> str:
        """Deterministic alert id for a (ticket, level) pair."""
        return f"{cls.ID_PREFIX}-{ticket_id}-{level.value}"

    @staticmethod
    def compose_message(level: AlertLevel, remaining_seconds: Optional[int]) -> str:
        """Human-readable message for a level."""
        if level is AlertLevel.OK:
            return "SLA on track"
        if remaining_seconds is None:
            return "SLA breached" if level is AlertLevel.BREACHED else f"SLA {level.value}"

        remaining = format_time_remaining(remaining_seconds)
        if level is AlertLevel.WARNING:
            return f"SLA expiring soon - {remaining} remaining"
        if level is AlertLevel.DANGER:
            return f"SLA critical - {remaining} remaining"
        if remaining_seconds == 0:
            return "SLA breached"
        return f"SLA breached by {remaining}"

    def generate(
        self,
        ticket: Ticket,
        level: AlertLevel,
        remaining_seconds: Optional[int],
        now: Optional[datetime] = None
    ) -> Alert:
        """
        Build the Alert for ``ticket`` reaching ``level``.

        Does not consult the acknowledgment store; deduplication is the
        poller's job.
        """
        return Alert(
            id=self.alert_id_for(ticket.id, level),
            ticket_id=ticket.id,
            ticket_title=ticket.title,
            level=level,
            message=self.compose_message(level, remaining_seconds),
            remaining_seconds=remaining_seconds,
            deadline=SLAClock.normalize_deadline(ticket.id, ticket.deadline),
            priority=ticket.priority,
            acknowledged=False,
            created_at=now or self._now(),
        )


# ========== Notification Dispatch ==========

@dataclass(frozen=True)
class DispatchOutcome:
    """What happened while dispatching one alert."""
    sound: bool
    notification: bool
    callback: bool


class NotificationDispatcher:
    """
    Delivers newly generated alerts.

    Sound and system notification are best-effort. The caller callback is
    always invoked: it is the authoritative signal that a new unacknowledged
    alert exists.
    """

    INTERACTIVE_LEVELS = (AlertLevel.DANGER, AlertLevel.BREACHED)

    def __init__(
        self,
        port: INotificationPort,
        config_provider: ISLAConfigProvider,
        on_alert_triggered: Optional[Callable[[Alert], None]] = None
    ):
        self._port = port
        self._config_provider = config_provider
        self._on_alert_triggered = on_alert_triggered
        self.has_permission = False

    def request_permission(self) -> bool:
        """Request notification permission once and cache the answer."""
        try:
            granted = bool(self._port.request_permission())
        except Exception as e:
            logger.warning(
                "Notification permission request failed",
                extra={"error": str(e)}
            )
            granted = False

        self.has_permission = granted
        logger.info("Notification permission resolved", extra={"granted": granted})
        return granted

    def dispatch(self, alert: Alert) -> DispatchOutcome:
        """Deliver one alert through every enabled channel."""
        config = self._config_provider.get_config()

        sound = False
        if config.sound_enabled:
            try:
                self._port.play_sound(alert.level)
                sound = True
            except Exception as e:
                logger.warning(
                    "Could not play alert sound",
                    extra={"alert_id": alert.id, "error": str(e)}
                )

        notification = False
        if config.notifications_enabled:
            if not self.has_permission:
                logger.debug(
                    "Notification permission not granted, in-app only",
                    extra={"alert_id": alert.id}
                )
            else:
                try:
                    self._port.show(
                        title=alert.ticket_title,
                        body=alert.message,
                        level=alert.level,
                        tag=alert.id,
                        require_interaction=alert.level in self.INTERACTIVE_LEVELS,
                    )
                    notification = True
                except Exception as e:
                    logger.warning(
                        "System notification failed",
                        extra={"alert_id": alert.id, "error": str(e)}
                    )

        callback = False
        if self._on_alert_triggered is not None:
            try:
                self._on_alert_triggered(alert)
                callback = True
            except Exception as e:
                logger.error(
                    "Alert callback raised",
                    extra={"alert_id": alert.id, "error": str(e)}
                )

        return DispatchOutcome(sound=sound, notification=notification, callback=callback)


# ========== Polling ==========

class SLAPoller:
    """
    Periodic SLA evaluation with escalation-level deduplication.

    Owns the per-ticket last-level table. Two states: idle (no timer) and
    running (one timer installed). Ticks never overlap.
    """

    def __init__(
        self,
        alert_store: IAlertStore,
        dispatcher: NotificationDispatcher,
        config_provider: ISLAConfigProvider,
        timer: ITimer,
        ticket_source: Callable[[], Iterable[Any]],
        generator: Optional[AlertGenerator] = None,
        on_alert: Optional[Callable[[Alert], None]] = None,
        now_provider: Optional[Callable[[], datetime]] = None,
        coerce: Optional[Callable[[Any], Ticket]] = None
    ):
        self._alert_store = alert_store
        self._dispatcher = dispatcher
        self._config_provider = config_provider
        self._timer = timer
        self._ticket_source = ticket_source
        self._now = now_provider or (lambda: datetime.now(timezone.utc))
        self._generator = generator or AlertGenerator(self._now)
        self._on_alert = on_alert
        self._coerce = coerce

        self._levels: Dict[str, AlertLevel] = {}
        self._tick_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._interval_ms: Optional[int] = None

    # ----- state -----

    @property
    def is_running(self) -> bool:
        return self._timer.is_active

    @property
    def interval_ms(self) -> Optional[int]:
        """Interval of the installed timer, None when idle."""
        return self._interval_ms if self.is_running else None

    def tracked_levels(self) -> Dict[str, AlertLevel]:
        """Snapshot of the last-level table."""
        with self._tick_lock:
            return dict(self._levels)

    def reset(self) -> None:
        """Forget every tracked level."""
        with self._tick_lock:
            self._levels.clear()

    def start(self, interval_ms: Optional[int] = None) -> None:
        """
        Install the periodic timer (idle -> running).

        Starting while running replaces the existing timer, so at most one
        timer is ever live.
        """
        interval_ms = interval_ms or self._config_provider.get_config().check_interval_ms
        with self._state_lock:
            if self._timer.is_active:
                self._timer.cancel()
            self._timer.schedule(interval_ms / 1000, self._run_scheduled_tick)
            self._interval_ms = interval_ms
        logger.info("SLA poller started", extra={"interval_ms": interval_ms})

    def restart(self, interval_ms: int) -> None:
        """Reset the timer with a new interval if running."""
        if self.is_running:
            self.start(interval_ms)

    def stop(self) -> None:
        """Cancel the pending timer (running -> idle). Idempotent."""
        with self._state_lock:
            if not self._timer.is_active:
                return
            self._timer.cancel()
            self._interval_ms = None
        logger.info("SLA poller stopped")

    # ----- evaluation -----

    def _run_scheduled_tick(self) -> None:
        try:
            with log_latency(logger, "sla_tick", level=logging.DEBUG):
                self.tick()
        except Exception as e:
            # The ticket source itself failed; keep the timer alive.
            logger.error("SLA tick failed", extra={"error": str(e)})

    def tick(self, tickets: Optional[Iterable[Any]] = None) -> List[Alert]:
        """
        Evaluate every ticket once.

        Args:
            tickets: Snapshot to evaluate (defaults to the ticket source);
                items go through ``coerce`` one at a time when it is set

        Returns:
            Alerts created during this tick, in ticket order
        """
        with self._tick_lock:
            tick_logger = get_context_logger(__name__, uuid4().hex[:12])
            config = self._config_provider.get_config()
            snapshot = list(tickets if tickets is not None else self._ticket_source())
            now = self._now()

            new_alerts: List[Alert] = []
            seen_ids = set()

            for item in snapshot:
                ticket_id = self._ticket_id_of(item)
                seen_ids.add(ticket_id)
                try:
                    ticket = self._coerce(item) if self._coerce is not None else item
                    alert = self._evaluate(ticket, config, now)
                    if alert is None:
                        continue
                    if self._on_alert is not None:
                        self._on_alert(alert)
                    self._dispatcher.dispatch(alert)
                    new_alerts.append(alert)
                except Exception as e:
                    error = TickProcessingException(str(ticket_id), e)
                    tick_logger.error(error.message, extra=error.details)

            for stale_id in [tid for tid in self._levels if tid not in seen_ids]:
                del self._levels[stale_id]

            if new_alerts:
                tick_logger.info(
                    "SLA alerts raised",
                    extra={"count": len(new_alerts), "tickets": len(snapshot)}
                )
            return new_alerts

    @staticmethod
    def _ticket_id_of(item: Any) -> Optional[str]:
        raw = item.get("id") if isinstance(item, dict) else getattr(item, "id", None)
        return str(raw) if raw is not None else None

    def _evaluate(
        self,
        ticket: Ticket,
        config: SLAConfig,
        now: datetime
    ) -> Optional[Alert]:
        """Update the last-level table for one ticket; return a new alert if due."""
        status = SLAClock.compute(ticket, config, now)

        # Covers terminal tickets and tickets without a deadline.
        if status.level is AlertLevel.OK:
            self._levels.pop(ticket.id, None)
            return None

        previous = self._levels.get(ticket.id)
        if previous is status.level:
            return None

        if not status.level.escalates(previous):
            logger.debug(
                "SLA level decreased",
                extra={"ticket_id": ticket.id, "level": status.level.value}
            )
            self._levels[ticket.id] = status.level
            return None

        alert = None
        alert_id = self._generator.alert_id_for(ticket.id, status.level)
        if self._alert_store.is_acknowledged(alert_id):
            logger.debug("Escalation already acknowledged", extra={"alert_id": alert_id})
        else:
            alert = self._generator.generate(ticket, status.level, status.remaining_seconds, now)

        self._levels[ticket.id] = status.level
        return alert
