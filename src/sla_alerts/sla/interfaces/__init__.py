"""
SLA Interfaces Layer
====================

Caller-facing entry point for SLA alerting.

Contains:
- SLAAlertEngine: facade that owns the alert log and wires the poller
  to the stores, scheduler and notification port

This is the outermost layer - it composes infrastructure adapters and
delegates to application services.
"""

from sla_alerts.sla.interfaces.engine import SLAAlertEngine

__all__ = ["SLAAlertEngine"]
