"""
SLA Value Objects
==================

Immutable value objects for the SLA domain.

Value objects are defined by their attributes rather than an identity.
They are immutable and can be freely shared.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from sla_alerts.config import TERMINAL_STATUSES
from sla_alerts.core import InvalidDeadlineException

if TYPE_CHECKING:
    from sla_alerts.sla.domain.entities import Ticket


class AlertLevel(str, Enum):
    """
    SLA urgency level.

    Levels are ordered ``ok < warning < danger < breached``. Use ``rank``
    for comparisons; the ``str`` ordering of the values is meaningless.
    """
    OK = "ok"
    WARNING = "warning"
    DANGER = "danger"
    BREACHED = "breached"

    @property
    def rank(self) -> int:
        return _LEVEL_RANKS[self]

    def escalates(self, previous: Optional["AlertLevel"]) -> bool:
        """True when this level is strictly more urgent than ``previous``.

        A missing previous level counts as ``ok``.
        """
        previous_rank = previous.rank if previous is not None else 0
        return self.rank > previous_rank


_LEVEL_RANKS = {
    AlertLevel.OK: 0,
    AlertLevel.WARNING: 1,
    AlertLevel.DANGER: 2,
    AlertLevel.BREACHED: 3,
}


class SLAConfig(BaseModel):
    """
    User-tunable SLA alert configuration.

    Persisted as a single record using the camelCase aliases, e.g.
    ``warningThresholdHours``. Fields can be set by either name.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    warning_threshold_hours: float = Field(
        default=4.0,
        gt=0,
        alias="warningThresholdHours",
        description="Remaining time below which a ticket is in warning"
    )
    danger_threshold_hours: float = Field(
        default=1.0,
        gt=0,
        alias="dangerThresholdHours",
        description="Remaining time below which a ticket is in danger"
    )
    check_interval_ms: int = Field(
        default=30_000,
        ge=1_000,
        alias="checkIntervalMilliseconds",
        description="Milliseconds between poll ticks"
    )
    sound_enabled: bool = Field(default=True, alias="soundEnabled")
    notifications_enabled: bool = Field(default=True, alias="notificationsEnabled")

    @model_validator(mode="after")
    def validate_threshold_order(self) -> "SLAConfig":
        """The danger boundary must be tighter than the warning boundary."""
        if self.danger_threshold_hours >= self.warning_threshold_hours:
            raise ValueError(
                "dangerThresholdHours must be lower than warningThresholdHours"
            )
        return self

    @property
    def warning_threshold_seconds(self) -> float:
        return self.warning_threshold_hours * 3600

    @property
    def danger_threshold_seconds(self) -> float:
        return self.danger_threshold_hours * 3600

    @property
    def check_interval_seconds(self) -> float:
        return self.check_interval_ms / 1000

    def merged(self, changes: dict[str, Any], ignore_unknown: bool = False) -> "SLAConfig":
        """Return a validated copy with ``changes`` applied.

        ``changes`` may use field names or aliases. Raises ``ValueError``
        for unknown keys (unless ``ignore_unknown``) and when the result is
        invalid (``pydantic.ValidationError`` is a subclass).
        """
        fields = SLAConfig.model_fields
        aliases = {f.alias for f in fields.values()}
        data = self.to_record()
        for key, value in changes.items():
            if key in fields:
                data[fields[key].alias] = value
            elif key in aliases:
                data[key] = value
            elif not ignore_unknown:
                raise ValueError(f"unknown SLA config field: {key}")
        return SLAConfig.model_validate(data)

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted (camelCase) record layout."""
        return self.model_dump(by_alias=True)


@dataclass(frozen=True)
class SLAStatus:
    """Result of classifying a ticket against its SLA deadline."""
    level: AlertLevel
    remaining_seconds: Optional[int]

    @property
    def is_tracked(self) -> bool:
        """False when the ticket has no deadline at all."""
        return self.remaining_seconds is not None


class SLAClock:
    """
    Pure SLA classification.

    Stateless: no I/O and no side effects, so it can be called at any
    frequency.
    """

    @staticmethod
    def is_terminal(status: Any) -> bool:
        """Check whether a ticket status is terminal (resolved/closed)."""
        return str(status).lower() in TERMINAL_STATUSES

    @staticmethod
    def normalize_deadline(ticket_id: str, value: Any) -> Optional[datetime]:
        """
        Coerce a deadline value to an aware UTC datetime.

        Accepts aware or naive datetimes (naive = UTC) and ISO-8601
        strings.

        Raises:
            InvalidDeadlineException: if the value cannot be interpreted
        """
        if value is None:
            return None

        if isinstance(value, str):
            text = value.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            try:
                value = datetime.fromisoformat(text)
            except ValueError:
                raise InvalidDeadlineException(ticket_id, value) from None

        if not isinstance(value, datetime):
            raise InvalidDeadlineException(ticket_id, value)

        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @classmethod
    def compute(
        cls,
        ticket: "Ticket",
        config: SLAConfig,
        now: Optional[datetime] = None
    ) -> SLAStatus:
        """
        Classify a ticket into an urgency level.

        Args:
            ticket: Ticket to evaluate
            config: Threshold configuration
            now: Evaluation time (defaults to the current UTC time)

        Returns:
            SLAStatus with the level and the whole seconds remaining
            (negative once overdue, None when no SLA is tracked)
        """
        current_time = now or datetime.now(timezone.utc)
        if current_time.tzinfo is None:
            current_time = current_time.replace(tzinfo=timezone.utc)

        if cls.is_terminal(ticket.status):
            # Remaining time is informational only here; a bad deadline
            # on a finished ticket is not an error.
            try:
                deadline = cls.normalize_deadline(ticket.id, ticket.deadline)
            except InvalidDeadlineException:
                deadline = None
            if deadline is None:
                return SLAStatus(AlertLevel.OK, None)
            delta = (deadline - current_time).total_seconds()
            return SLAStatus(AlertLevel.OK, math.floor(delta))

        deadline = cls.normalize_deadline(ticket.id, ticket.deadline)
        if deadline is None:
            return SLAStatus(AlertLevel.OK, None)

        # Classify on the exact difference; only the reported value is floored.
        delta = (deadline - current_time).total_seconds()
        remaining = math.floor(delta)

        if getattr(ticket, "sla_breached", False) or delta <= 0:
            return SLAStatus(AlertLevel.BREACHED, remaining)
        if delta <= config.danger_threshold_seconds:
            return SLAStatus(AlertLevel.DANGER, remaining)
        if delta <= config.warning_threshold_seconds:
            return SLAStatus(AlertLevel.WARNING, remaining)
        return SLAStatus(AlertLevel.OK, remaining)
