"""
Infrastructure Layer
=====================

Low-level technical concerns shared by every module:
- Logging setup
"""

from sla_alerts.shared.infrastructure.logging import (
    get_logger,
    get_context_logger,
    log_latency,
    setup_logging,
)

__all__ = ["get_logger", "get_context_logger", "log_latency", "setup_logging"]
