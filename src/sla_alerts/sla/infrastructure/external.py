"""
SLA External Service Integrations
==================================

Adapters between the engine's ports and the outside world:
- APScheduler timer driving the poll loop
- YAML config file watcher (hot reload)
- Notification ports: structured log output and webhook delivery
"""

import logging
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import httpx
from apscheduler.schedulers.background import BackgroundScheduler
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from sla_alerts.core import NotificationDeliveryException, NotificationPermissionDenied
from sla_alerts.shared.infrastructure.logging import get_logger
from sla_alerts.sla.application import INotificationPort, ITimer
from sla_alerts.sla.domain import AlertLevel, SLAConfig
from sla_alerts.sla.infrastructure.repositories import YAMLConfigStore

logger = get_logger(__name__)


# Audible cue per level (A4, C5, E5).
TONE_FREQUENCIES_HZ: Dict[AlertLevel, int] = {
    AlertLevel.OK: 0,
    AlertLevel.WARNING: 440,
    AlertLevel.DANGER: 523,
    AlertLevel.BREACHED: 659,
}


# ========== Scheduling ==========

class APSchedulerTimer(ITimer):
    """
    ITimer backed by an APScheduler BackgroundScheduler.

    Each schedule() builds a fresh scheduler holding a single interval job;
    the previous one is shut down first, so only one job is ever live.
    """

    JOB_ID = "sla_alert_tick"

    def __init__(self, run_immediately: bool = True, misfire_grace_time: int = 30):
        self._run_immediately = run_immediately
        self._misfire_grace_time = misfire_grace_time
        self._scheduler: Optional[BackgroundScheduler] = None
        self._lock = threading.Lock()

    def schedule(self, interval_seconds: float, func: Callable[[], None]) -> None:
        with self._lock:
            self._shutdown()

            scheduler = BackgroundScheduler(timezone="UTC")
            job_kwargs: Dict[str, Any] = {}
            if self._run_immediately:
                job_kwargs["next_run_time"] = datetime.now(timezone.utc)

            scheduler.add_job(
                func,
                "interval",
                seconds=interval_seconds,
                id=self.JOB_ID,
                name="SLA Alert Tick",
                misfire_grace_time=self._misfire_grace_time,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
                **job_kwargs
            )
            scheduler.start()
            self._scheduler = scheduler

        logger.debug("SLA timer scheduled", extra={"interval_seconds": interval_seconds})

    def cancel(self) -> None:
        with self._lock:
            self._shutdown()

    def _shutdown(self) -> None:
        if self._scheduler is None:
            return
        scheduler, self._scheduler = self._scheduler, None
        if scheduler.running:
            scheduler.remove_all_jobs()
            scheduler.shutdown(wait=False)

    @property
    def is_active(self) -> bool:
        scheduler = self._scheduler
        return scheduler is not None and scheduler.running


# ========== Config Hot Reload ==========

class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for SLA config file changes."""

    def __init__(self, watcher: "ConfigFileWatcher", config_path: Path):
        self.watcher = watcher
        self.config_path = config_path
        super().__init__()

    def _matches(self, path: Any) -> bool:
        if not path:
            return False
        if isinstance(path, bytes):
            path = path.decode()
        return Path(path).resolve() == self.config_path.resolve()

    def on_modified(self, event):
        """Handle file modification event."""
        if event.is_directory:
            return
        if self._matches(event.src_path):
            logger.info(f"Config file changed: {event.src_path}")
            self.watcher.reload()

    def on_created(self, event):
        self.on_modified(event)

    def on_moved(self, event):
        """Atomic saves show up as a rename onto the config path."""
        if event.is_directory:
            return
        if self._matches(getattr(event, "dest_path", None)):
            logger.info(f"Config file replaced: {event.dest_path}")
            self.watcher.reload()


class ConfigFileWatcher:
    """
    Reloads the SLA config when its file changes on disk.

    ``on_change`` is only called when the reloaded config differs from the
    last one seen.
    """

    def __init__(
        self,
        store: YAMLConfigStore,
        on_change: Callable[[SLAConfig], None],
        initial: Optional[SLAConfig] = None
    ):
        self._store = store
        self._on_change = on_change
        self._last = initial
        self._lock = threading.Lock()
        self._observer = None

    def reload(self) -> SLAConfig:
        """Reload configuration from file and notify on change."""
        config = self._store.load()
        with self._lock:
            changed = config != self._last
            self._last = config

        if changed:
            try:
                self._on_change(config)
                logger.info("SLA configuration reloaded successfully")
            except Exception as e:
                logger.error(f"Failed to apply reloaded SLA config: {e}")
        return config

    def start(self) -> None:
        """
        Start watching the configuration file's directory.

        Skips watching if the directory doesn't exist or the platform
        cannot watch files (e.g. some container filesystems).
        """
        directory = self._store.path.parent
        if not directory.exists():
            logger.info(
                f"Config directory doesn't exist, skipping file watch: {directory}"
            )
            return

        try:
            observer = Observer()
            handler = ConfigFileHandler(self, self._store.path)
            observer.schedule(handler, str(directory), recursive=False)
            observer.start()
            self._observer = observer
            logger.info(f"Started watching config file: {self._store.path}")
        except OSError as e:
            logger.warning(f"File watching not available, using static config: {e}")
            self._observer = None

    def stop(self) -> None:
        """Stop watching (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def is_watching(self) -> bool:
        return self._observer is not None


# ========== Resilience ==========

class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for preventing cascade failures.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow one test request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: Optional[float] = None

    @property
    def state(self) -> str:
        """Get current circuit state."""
        if self._state == CircuitState.OPEN and self._last_failure_time is not None:
            elapsed = time.monotonic() - self._last_failure_time
            if elapsed >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        """Check if request should be allowed."""
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        """Record successful request."""
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        """Record failed request."""
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


# ========== Notification Ports ==========

class LoggingNotificationPort(INotificationPort):
    """
    Notification port that surfaces alerts through the log stream.

    Useful for headless deployments and as the default in-app surface.
    """

    LOG_LEVELS = {
        AlertLevel.OK: logging.INFO,
        AlertLevel.WARNING: logging.WARNING,
        AlertLevel.DANGER: logging.ERROR,
        AlertLevel.BREACHED: logging.CRITICAL,
    }

    def request_permission(self) -> bool:
        return True

    def show(
        self,
        title: str,
        body: str,
        level: AlertLevel,
        tag: Optional[str] = None,
        require_interaction: bool = False
    ) -> None:
        logger.log(
            self.LOG_LEVELS[level],
            f"[SLA {level.value.upper()}] {title}: {body}",
            extra={"alert_id": tag, "require_interaction": require_interaction}
        )

    def play_sound(self, level: AlertLevel) -> None:
        frequency = TONE_FREQUENCIES_HZ.get(level, 0)
        if not frequency:
            return
        logger.debug("Alert tone", extra={"level": level.value, "frequency_hz": frequency})


class WebhookNotificationPort(INotificationPort):
    """
    Posts system notifications to an incoming webhook (Slack Block Kit).

    Handles delivery with:
    - Circuit breaker to prevent cascade failures
    - Exponential backoff retry
    - Timeout handling
    """

    HEADERS = {
        AlertLevel.OK: ("✅", "SLA Update"),
        AlertLevel.WARNING: ("\U0001F7E1", "SLA Warning"),
        AlertLevel.DANGER: ("\U0001F7E0", "SLA Critical"),
        AlertLevel.BREACHED: ("\U0001F534", "SLA Breached"),
    }

    def __init__(
        self,
        webhook_url: Optional[str],
        channel: str = "#sla-alerts",
        timeout_seconds: float = 5.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        client: Optional[httpx.Client] = None,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        self._webhook_url = webhook_url
        self._channel = channel
        self._max_retries = max_retries
        self._backoff_seconds = backoff_seconds
        self._http_client = client or httpx.Client(timeout=timeout_seconds)
        self._circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60
        )

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._circuit_breaker

    def request_permission(self) -> bool:
        """Permission is granted when a webhook URL is configured."""
        return bool(self._webhook_url)

    def _build_message(
        self,
        title: str,
        body: str,
        level: AlertLevel,
        tag: Optional[str],
        require_interaction: bool
    ) -> Dict[str, Any]:
        """Build Slack Block Kit message."""
        emoji, header_text = self.HEADERS[level]

        blocks = [
            {
                "type": "header",
                "text": {
                    "type": "plain_text",
                    "text": f"{emoji} {header_text}",
                    "emoji": True
                }
            },
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Ticket:*\n{title}"},
                    {"type": "mrkdwn", "text": f"*Level:*\n{level.value.title()}"},
                ]
            },
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": body}]
            }
        ]

        if require_interaction:
            blocks.append({
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": "*Action required*"}]
            })

        return {
            "channel": self._channel,
            "text": f"{header_text}: {title}",
            "blocks": blocks,
            "metadata": {"event_type": "sla_alert", "event_payload": {"alert_id": tag}},
        }

    def show(
        self,
        title: str,
        body: str,
        level: AlertLevel,
        tag: Optional[str] = None,
        require_interaction: bool = False
    ) -> None:
        """
        Send the notification to the webhook.

        Raises:
            NotificationPermissionDenied: no webhook URL configured
            NotificationDeliveryException: circuit open or all retries failed
        """
        if not self._webhook_url:
            raise NotificationPermissionDenied("webhook URL not configured")

        if not self._circuit_breaker.allow_request():
            raise NotificationDeliveryException(
                "circuit breaker open, skipping webhook notification",
                {"alert_id": tag}
            )

        message = self._build_message(title, body, level, tag, require_interaction)

        for attempt in range(self._max_retries):
            try:
                response = self._http_client.post(self._webhook_url, json=message)

                if 200 <= response.status_code < 300:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Webhook notification sent",
                        extra={"alert_id": tag, "level": level.value}
                    )
                    return

                logger.warning(
                    "Webhook returned non-2xx",
                    extra={
                        "status_code": response.status_code,
                        "attempt": attempt + 1
                    }
                )

            except httpx.HTTPError as e:
                logger.error(
                    "Webhook notification failed",
                    extra={
                        "error": str(e),
                        "attempt": attempt + 1,
                        "alert_id": tag
                    }
                )

            if attempt < self._max_retries - 1 and self._backoff_seconds > 0:
                time.sleep(self._backoff_seconds * 2 ** attempt)

        self._circuit_breaker.record_failure()
        raise NotificationDeliveryException(
            "webhook delivery failed",
            {"alert_id": tag, "attempts": self._max_retries}
        )

    def play_sound(self, level: AlertLevel) -> None:
        """Webhook targets have no audio channel."""

    def close(self) -> None:
        """Close HTTP client."""
        self._http_client.close()
