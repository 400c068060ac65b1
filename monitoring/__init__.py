"""
============================================================================
SERVICE CHECK - MONITORING PACKAGE
============================================================================
Runtime monitoring infrastructure:
    • MonitoringEngine   — protocol dispatch, one probe-then-publish cycle
    • HTTPChecker / TCPChecker / DNSChecker — the probes
    • StatusPublisher    — persistent MQTT connection + publish queue
    • Scheduler          — one fixed-rate timer per service

File layout
-----------
monitoring/
├── __init__.py          ← this file
├── monitor.py           ← MonitoringEngine + HTTP/TCP/DNS checkers
├── publisher.py         ← StatusPublisher
└── scheduler.py         ← Scheduler

============================================================================
"""

from monitoring.monitor import MonitoringEngine, HTTPChecker, TCPChecker, DNSChecker, CheckResult
from monitoring.publisher import StatusPublisher, StatusMessage
from monitoring.scheduler import Scheduler, ScheduledJob

__all__ = [
    # Monitoring Engine
    "MonitoringEngine",
    "HTTPChecker",
    "TCPChecker",
    "DNSChecker",
    "CheckResult",

    # Publishing
    "StatusPublisher",
    "StatusMessage",

    # Scheduler
    "Scheduler",
    "ScheduledJob",
]
