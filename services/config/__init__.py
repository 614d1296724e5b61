"""
Config Services

Responsibilities:
- Cache the latest pushed or polled configuration values
- Derive clamped operating parameters once per cycle
"""

from .cache import ConfigCache, CachedValue
from .reconciler import ConfigReconciler, OperatingParameters, clamp

__all__ = [
    "ConfigCache",
    "CachedValue",
    "ConfigReconciler",
    "OperatingParameters",
    "clamp",
]
