"""
Core Exceptions
================

Custom exceptions for the SLA alert engine.

Every failure mode of the engine degrades functionality instead of halting
the host, so most of these are raised inside a component and caught at its
boundary, where they are logged.
"""

from typing import Optional, Any


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class DomainException(ApplicationException):
    """Base exception for domain logic violations."""


class RepositoryException(ApplicationException):
    """Base exception for repository/data access errors."""


class ValidationException(ApplicationException):
    """Exception for validation errors."""


class ConfigurationException(ApplicationException):
    """Exception for configuration errors."""


class ExternalServiceException(ApplicationException):
    """Base exception for external service failures."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class ConfigCorruptException(ConfigurationException):
    """Persisted SLA configuration could not be parsed or validated."""

    def __init__(self, path: Any, reason: str):
        self.path = path
        super().__init__(
            f"SLA config at {path} is unusable: {reason}",
            {"path": str(path), "reason": reason}
        )


class PersistenceWriteException(RepositoryException):
    """A write to a local persisted record failed."""

    def __init__(self, path: Any, reason: str):
        self.path = path
        super().__init__(
            f"Failed to write {path}: {reason}",
            {"path": str(path), "reason": reason}
        )


class NotificationPermissionDenied(ExternalServiceException):
    """The notification backend refused permission to show notifications."""

    def __init__(self, message: str = "permission not granted", details: Optional[dict] = None):
        super().__init__("Notifications", message, details)


class NotificationDeliveryException(ExternalServiceException):
    """A notification could not be delivered by its backend."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("Notifications", message, details)


class InvalidDeadlineException(ValidationException):
    """A ticket carries a deadline value that cannot be interpreted."""

    def __init__(self, ticket_id: str, value: Any):
        self.ticket_id = ticket_id
        self.value = value
        super().__init__(
            f"Ticket {ticket_id} has an invalid SLA deadline: {value!r}",
            {"ticket_id": ticket_id}
        )


class TickProcessingException(DomainException):
    """Evaluating a single ticket failed during a poll tick."""

    def __init__(
        self,
        ticket_id: str,
        cause: Exception,
        details: Optional[dict] = None
    ):
        self.ticket_id = ticket_id
        self.cause = cause
        super().__init__(
            f"Failed to evaluate SLA for ticket {ticket_id}: {cause}",
            details or {"ticket_id": ticket_id, "error": type(cause).__name__}
        )
