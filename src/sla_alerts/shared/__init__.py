"""
Shared Kernel Module
====================

Shared infrastructure used by the SLA alerting module.

DO NOT add SLA business logic to the shared kernel.
"""
