"""
SLA Alerting Module
===================

Bounded Context for ticket SLA monitoring and alerting.

Responsibilities:
- Classify tickets into urgency levels from their SLA deadline
- Generate one alert per escalation (ok -> warning -> danger -> breached)
- Notify via sound cue, system notification and callback
- Persist acknowledgments and the alert configuration
- Poll on a configurable interval, hot-reloading config changes
"""

__version__ = "1.0.0"
