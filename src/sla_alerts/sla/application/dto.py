"""
SLA Application DTOs
=====================

Data Transfer Objects at the edge of the engine.

Callers usually hold tickets as JSON-shaped dicts from the ticketing API;
TicketSnapshotDTO validates those and converts them to domain Tickets.
AlertResponse is the camelCase shape handed back to UI code.
"""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from sla_alerts.sla.domain import Alert, Ticket


class TicketSnapshotDTO(BaseModel):
    """DTO for one ticket in the snapshot pushed into the engine."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, description="Ticket identifier")
    title: str = Field(default="", description="Ticket title")
    # Strings stay strings here; SLAClock parses them per tick so a
    # malformed deadline only skips that ticket.
    deadline: Optional[Union[datetime, str]] = Field(
        default=None,
        validation_alias=AliasChoices("deadline", "slaDeadline", "sla_deadline"),
        description="SLA deadline"
    )
    status: str = Field(default="open", description="Ticket status")
    priority: str = Field(default="medium", description="Ticket priority")
    sla_breached: bool = Field(
        default=False,
        validation_alias=AliasChoices("sla_breached", "slaBreached"),
        description="Backend already flagged the ticket as breached"
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Numeric ids are accepted and stored as strings."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("status", "priority", mode="before")
    @classmethod
    def normalize_case(cls, v: Any) -> Any:
        """Ticket APIs send upper-case enums (``IN_PROGRESS``)."""
        if isinstance(v, str):
            return v.lower()
        return v

    def to_domain(self) -> Ticket:
        """Convert to domain entity."""
        return Ticket(
            id=self.id,
            title=self.title,
            deadline=self.deadline,
            status=self.status,
            priority=self.priority,
            sla_breached=self.sla_breached,
        )


class AlertResponse(BaseModel):
    """Response model for an SLA alert."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    ticket_id: str = Field(..., alias="ticketId")
    ticket_title: str = Field(..., alias="ticketTitle")
    level: str
    message: str
    time_remaining: Optional[int] = Field(None, alias="timeRemaining")
    deadline: Optional[datetime] = None
    priority: Optional[str] = None
    acknowledged: bool = False
    created_at: datetime = Field(..., alias="createdAt")

    @classmethod
    def from_domain(cls, alert: Alert) -> "AlertResponse":
        """Create from domain entity."""
        return cls(
            id=alert.id,
            ticket_id=alert.ticket_id,
            ticket_title=alert.ticket_title,
            level=alert.level.value,
            message=alert.message,
            time_remaining=alert.remaining_seconds,
            deadline=alert.deadline,
            priority=alert.priority,
            acknowledged=alert.acknowledged,
            created_at=alert.created_at,
        )
