"""
System Services

Responsibilities:
- Send heartbeats on a mutable period
- Report the application's up/down state
"""

from .heartbeat import HeartbeatMonitor

__all__ = ["HeartbeatMonitor"]
