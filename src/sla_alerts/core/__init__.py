"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from sla_alerts.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    ConfigurationException,
    ExternalServiceException,
    ConfigCorruptException,
    PersistenceWriteException,
    NotificationPermissionDenied,
    NotificationDeliveryException,
    InvalidDeadlineException,
    TickProcessingException,
)

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "ConfigurationException",
    "ExternalServiceException",
    "ConfigCorruptException",
    "PersistenceWriteException",
    "NotificationPermissionDenied",
    "NotificationDeliveryException",
    "InvalidDeadlineException",
    "TickProcessingException",
]
