"""Tests for scheduler, watcher and notification adapters."""

import json
import logging
import threading
from unittest.mock import Mock

import httpx
import pytest
from watchdog.events import FileModifiedEvent, FileMovedEvent

from sla_alerts.core import NotificationDeliveryException, NotificationPermissionDenied
from sla_alerts.sla.domain import AlertLevel, SLAConfig
from sla_alerts.sla.infrastructure import (
    APSchedulerTimer,
    CircuitBreaker,
    CircuitState,
    ConfigFileWatcher,
    LoggingNotificationPort,
    TONE_FREQUENCIES_HZ,
    WebhookNotificationPort,
    YAMLConfigStore,
)
from sla_alerts.sla.infrastructure.external import ConfigFileHandler


WEBHOOK_URL = "https://hooks.example.com/services/T000/B000/XXXX"


def make_port(handler, **kwargs):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    kwargs.setdefault("backoff_seconds", 0)
    return WebhookNotificationPort(WEBHOOK_URL, client=client, **kwargs)


class TestWebhookNotificationPort:

    def test_permission_requires_url(self):
        assert WebhookNotificationPort(WEBHOOK_URL).request_permission() is True
        assert WebhookNotificationPort(None).request_permission() is False

    def test_show_posts_block_kit_message(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text="ok")

        port = make_port(handler, channel="#support")
        port.show("Printer on fire", "SLA critical - 30min remaining", AlertLevel.DANGER,
                  tag="sla-T-1-danger", require_interaction=True)

        assert len(requests) == 1
        assert str(requests[0].url) == WEBHOOK_URL
        payload = json.loads(requests[0].content)
        assert payload["channel"] == "#support"
        assert payload["text"] == "SLA Critical: Printer on fire"
        assert payload["blocks"][0]["type"] == "header"
        assert "SLA Critical" in payload["blocks"][0]["text"]["text"]
        assert payload["blocks"][-1]["elements"][0]["text"] == "*Action required*"
        assert payload["metadata"]["event_payload"] == {"alert_id": "sla-T-1-danger"}

    def test_no_action_block_without_interaction(self):
        port = make_port(lambda request: httpx.Response(200))
        message = port._build_message("t", "b", AlertLevel.WARNING, None, False)
        assert len(message["blocks"]) == 3

    def test_missing_url_raises_permission_denied(self):
        with pytest.raises(NotificationPermissionDenied):
            WebhookNotificationPort(None).show("t", "b", AlertLevel.WARNING)

    def test_retries_then_raises(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500)

        port = make_port(handler, max_retries=3)

        with pytest.raises(NotificationDeliveryException) as exc_info:
            port.show("t", "b", AlertLevel.BREACHED, tag="sla-T-1-breached")

        assert len(calls) == 3
        assert exc_info.value.details["attempts"] == 3
        assert exc_info.value.service_name == "Notifications"

    def test_recovers_after_transport_error(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(204)

        port = make_port(handler)
        port.show("t", "b", AlertLevel.WARNING)

        assert len(attempts) == 2
        assert port.circuit_breaker.state == CircuitState.CLOSED

    def test_open_circuit_short_circuits(self):
        handler = Mock(return_value=httpx.Response(200))
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
        breaker.record_failure()
        port = make_port(handler, circuit_breaker=breaker)

        with pytest.raises(NotificationDeliveryException, match="circuit breaker open"):
            port.show("t", "b", AlertLevel.WARNING)
        handler.assert_not_called()

    def test_play_sound_is_noop(self):
        handler = Mock()
        make_port(handler).play_sound(AlertLevel.BREACHED)
        handler.assert_not_called()

    def test_close_closes_client(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        WebhookNotificationPort(WEBHOOK_URL, client=client).close()
        assert client.is_closed


class TestCircuitBreaker:

    def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=60)
        for _ in range(2):
            breaker.record_failure()
        assert breaker.allow_request()
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert not breaker.allow_request()

    def test_half_open_after_timeout(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()
        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.allow_request()

    def test_success_closes(self):
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)
        breaker.record_failure()
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED


class TestLoggingNotificationPort:

    def test_permission_always_granted(self):
        assert LoggingNotificationPort().request_permission() is True

    def test_breach_logged_as_critical(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="sla_alerts"):
            LoggingNotificationPort().show(
                "Printer on fire", "SLA breached", AlertLevel.BREACHED,
                tag="sla-T-1-breached", require_interaction=True
            )

        record = caplog.records[-1]
        assert record.levelno == logging.CRITICAL
        assert "[SLA BREACHED] Printer on fire: SLA breached" in record.getMessage()
        assert record.alert_id == "sla-T-1-breached"

    def test_tones_rise_with_urgency(self):
        assert TONE_FREQUENCIES_HZ[AlertLevel.WARNING] == 440
        assert TONE_FREQUENCIES_HZ[AlertLevel.DANGER] == 523
        assert TONE_FREQUENCIES_HZ[AlertLevel.BREACHED] == 659

    def test_play_sound_logs_tone(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="sla_alerts"):
            LoggingNotificationPort().play_sound(AlertLevel.DANGER)
        assert caplog.records[-1].frequency_hz == 523


class TestAPSchedulerTimer:

    def test_runs_immediately_and_cancels(self):
        fired = threading.Event()
        timer = APSchedulerTimer(run_immediately=True)

        timer.schedule(3600, fired.set)
        try:
            assert timer.is_active
            assert fired.wait(timeout=5)
        finally:
            timer.cancel()

        assert not timer.is_active

    def test_reschedule_replaces_scheduler(self):
        timer = APSchedulerTimer(run_immediately=False)
        timer.schedule(3600, lambda: None)
        first = timer._scheduler
        timer.schedule(1800, lambda: None)
        try:
            assert timer._scheduler is not first
            assert not first.running
            assert len(timer._scheduler.get_jobs()) == 1
        finally:
            timer.cancel()

    def test_cancel_when_idle_is_safe(self):
        timer = APSchedulerTimer()
        timer.cancel()
        assert not timer.is_active


class TestConfigFileWatcher:

    @pytest.fixture
    def store(self, tmp_path):
        return YAMLConfigStore(tmp_path / "config.yaml")

    def test_reload_notifies_on_change(self, store):
        on_change = Mock()
        watcher = ConfigFileWatcher(store, on_change, initial=SLAConfig())

        store.save(SLAConfig(sound_enabled=False))
        watcher.reload()
        watcher.reload()

        on_change.assert_called_once_with(SLAConfig(sound_enabled=False))

    def test_reload_without_change_is_silent(self, store):
        on_change = Mock()
        ConfigFileWatcher(store, on_change, initial=SLAConfig()).reload()
        on_change.assert_not_called()

    def test_callback_failure_is_contained(self, store):
        watcher = ConfigFileWatcher(store, Mock(side_effect=RuntimeError("boom")))
        assert watcher.reload() == SLAConfig()

    def test_start_skips_missing_directory(self, tmp_path):
        store = YAMLConfigStore(tmp_path / "missing" / "config.yaml")
        watcher = ConfigFileWatcher(store, Mock())
        watcher.start()
        assert not watcher.is_watching

    def test_start_and_stop(self, store):
        watcher = ConfigFileWatcher(store, Mock())
        watcher.start()
        try:
            assert watcher.is_watching
        finally:
            watcher.stop()
        assert not watcher.is_watching

    def test_handler_reacts_to_config_file_only(self, store):
        watcher = Mock()
        handler = ConfigFileHandler(watcher, store.path)

        handler.on_modified(FileModifiedEvent(str(store.path.parent / "other.yaml")))
        watcher.reload.assert_not_called()

        handler.on_modified(FileModifiedEvent(str(store.path)))
        handler.on_moved(FileMovedEvent(str(store.path.parent / ".tmp"), str(store.path)))
        assert watcher.reload.call_count == 2
