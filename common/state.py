"""
Shared State

State shared between the metrics loop and the heartbeat task. Writers
and readers go through a lock so a reader always sees a consistent
(is_up, period) pair; a reader may lag by at most one heartbeat period.
"""

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class HeartbeatSnapshot:
    """Consistent view of the heartbeat settings"""
    is_up: bool
    period_seconds: int


class HeartbeatState:
    """
    Liveness flag and heartbeat period.

    Written by the orchestrator, read by the heartbeat task.
    Last write wins.
    """

    def __init__(self, period_seconds: int, is_up: bool = False):
        self._lock = threading.Lock()
        self._is_up = is_up
        self._period_seconds = period_seconds

    def set_up(self, is_up: bool) -> None:
        with self._lock:
            self._is_up = is_up

    def set_period(self, period_seconds: int) -> None:
        with self._lock:
            self._period_seconds = period_seconds

    def snapshot(self) -> HeartbeatSnapshot:
        with self._lock:
            return HeartbeatSnapshot(self._is_up, self._period_seconds)

    @property
    def is_up(self) -> bool:
        return self.snapshot().is_up

    @property
    def period_seconds(self) -> int:
        return self.snapshot().period_seconds
