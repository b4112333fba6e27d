"""Pytest configuration for SLA alert tests."""

from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import pytest

from sla_alerts.sla.application import (
    IAlertStore,
    INotificationPort,
    ISLAConfigProvider,
    ITimer,
)
from sla_alerts.sla.domain import AlertLevel, SLAConfig, Ticket


NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Mutable clock for deterministic evaluation times."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingNotificationPort(INotificationPort):
    """Notification port that records every side effect."""

    def __init__(self, grant: bool = True, fail_show: bool = False, fail_sound: bool = False):
        self.grant = grant
        self.fail_show = fail_show
        self.fail_sound = fail_sound
        self.permission_requests = 0
        self.shown: List[dict] = []
        self.sounds: List[AlertLevel] = []

    def request_permission(self) -> bool:
        self.permission_requests += 1
        return self.grant

    def show(self, title, body, level, tag=None, require_interaction=False) -> None:
        if self.fail_show:
            raise RuntimeError("notification backend down")
        self.shown.append({
            "title": title,
            "body": body,
            "level": level,
            "tag": tag,
            "require_interaction": require_interaction,
        })

    def play_sound(self, level) -> None:
        if self.fail_sound:
            raise RuntimeError("no audio device")
        self.sounds.append(level)


class ManualTimer(ITimer):
    """Timer that only fires when the test says so."""

    def __init__(self):
        self.func: Optional[Callable[[], None]] = None
        self.interval_seconds: Optional[float] = None
        self.schedule_calls = 0
        self.cancel_calls = 0

    def schedule(self, interval_seconds, func) -> None:
        self.schedule_calls += 1
        self.interval_seconds = interval_seconds
        self.func = func

    def cancel(self) -> None:
        self.cancel_calls += 1
        self.func = None
        self.interval_seconds = None

    @property
    def is_active(self) -> bool:
        return self.func is not None

    def fire(self) -> None:
        assert self.func is not None, "timer is not active"
        self.func()


class StaticConfigProvider(ISLAConfigProvider):
    def __init__(self, config: Optional[SLAConfig] = None):
        self.config = config or SLAConfig()

    def get_config(self) -> SLAConfig:
        return self.config


class MemoryAlertStore(IAlertStore):
    """In-memory acknowledgment store."""

    def __init__(self, acknowledged=()):
        self.ids = set(acknowledged)

    def is_acknowledged(self, alert_id: str) -> bool:
        return alert_id in self.ids

    def acknowledge(self, alert_id: str) -> None:
        self.ids.add(alert_id)

    def acknowledge_all(self, alert_ids) -> None:
        self.ids.update(alert_ids)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_ticket(clock):
    """Factory for tickets whose deadline is ``hours`` from the clock."""

    def _make(
        ticket_id: str = "T-1",
        hours: Optional[float] = None,
        status: str = "open",
        title: Optional[str] = None,
        **kwargs
    ) -> Ticket:
        deadline = kwargs.pop("deadline", None)
        if hours is not None:
            deadline = clock.now + timedelta(hours=hours)
        return Ticket(
            id=ticket_id,
            title=title or f"Ticket {ticket_id}",
            deadline=deadline,
            status=status,
            **kwargs
        )

    return _make


@pytest.fixture
def notification_port():
    return RecordingNotificationPort()


@pytest.fixture
def timer():
    return ManualTimer()


@pytest.fixture
def config_provider():
    return StaticConfigProvider()


@pytest.fixture
def alert_store():
    return MemoryAlertStore()
