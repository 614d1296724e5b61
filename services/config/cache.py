"""
Configuration Cache

Latest known value of each subscribed configuration topic. Entries are
only ever overwritten, never removed.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class CachedValue:
    """A configuration value and when it was received"""
    value: Any
    received_at: datetime
    source: str


class ConfigCache:
    """In-memory cache keyed by fully-qualified topic"""

    def __init__(self):
        self._values: dict[str, CachedValue] = {}

    def put(self, fqn: str, value: Any, source: str) -> CachedValue:
        entry = CachedValue(value, datetime.now(timezone.utc), source)
        self._values[fqn] = entry
        return entry

    def get(self, fqn: str) -> CachedValue | None:
        return self._values.get(fqn)

    def __contains__(self, fqn: object) -> bool:
        return fqn in self._values

    def __len__(self) -> int:
        return len(self._values)
