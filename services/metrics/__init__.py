"""
Metrics Services

Responsibilities:
- Sample CPU, memory and temperature diagnostics
- Track run counter, failure count and min/max windows
- Publish the results every cycle
"""

from .loop import MetricsLoop, extract_value
from .statistics import MetricSample, RangeStat, RunStatistics

__all__ = [
    "MetricsLoop",
    "extract_value",
    "MetricSample",
    "RangeStat",
    "RunStatistics",
]
