"""
SLA Domain Entities
====================

Pure Python domain entities for SLA alerting.

These entities carry no infrastructure concerns. Tickets are owned by the
ticketing system and are read-only here; alerts are created by the engine.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional

from sla_alerts.config import Priority, TicketStatus
from sla_alerts.sla.domain.value_objects import AlertLevel


@dataclass(frozen=True)
class Ticket:
    """
    Snapshot of a support ticket as seen by the SLA engine.

    ``deadline`` may be None (no SLA tracked). ``sla_breached`` mirrors the
    backend flag set once the ticketing system itself has recorded a breach.
    """

    id: str
    title: str
    deadline: Optional[Any] = None
    status: str = TicketStatus.OPEN
    priority: str = Priority.MEDIUM
    sla_breached: bool = False


@dataclass
class Alert:
    """
    SLA alert raised when a ticket escalates to a more urgent level.

    The id is derived from the ticket id and the level, so the same
    escalation always maps to the same alert.
    """

    id: str
    ticket_id: str
    ticket_title: str
    level: AlertLevel
    message: str
    remaining_seconds: Optional[int]
    deadline: Optional[datetime] = None
    priority: Optional[str] = None
    acknowledged: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_active(self) -> bool:
        """Alert still needs the user's attention."""
        return not self.acknowledged

    def mark_acknowledged(self) -> "Alert":
        """Return an acknowledged copy of this alert."""
        return replace(self, acknowledged=True)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "ticket_title": self.ticket_title,
            "level": self.level.value,
            "message": self.message,
            "remaining_seconds": self.remaining_seconds,
            "deadline": self.deadline.isoformat() if self.deadline else None,
            "priority": self.priority,
            "acknowledged": self.acknowledged,
            "created_at": self.created_at.isoformat(),
        }
