"""
Run Statistics

Counters and min/max tracking published every cycle. Owned by the
metrics loop; nothing else writes to it.
"""

from dataclasses import dataclass, field
from datetime import datetime

from common.timestamp import minutes_between


@dataclass
class MetricSample:
    """One read of the sampled diagnostics"""
    cpu_usage: float
    memory_usage: float
    temperature: float


@dataclass
class RangeStat:
    """Current value with running minimum and maximum"""
    current: float = 0.0
    min: float = 0.0
    max: float = 0.0

    def seed(self, value: float) -> None:
        self.current = self.min = self.max = value

    def widen(self, value: float) -> None:
        self.current = value
        self.min = min(self.min, value)
        self.max = max(self.max, value)


@dataclass
class RunStatistics:
    """Statistics since the last reset"""
    last_reset_at: datetime = field(default_factory=datetime.now)
    run_counter: int = 1
    fail_count: int = 0
    cpu: RangeStat = field(default_factory=RangeStat)
    memory: RangeStat = field(default_factory=RangeStat)
    temperature: float = 0.0

    def reset_due(self, now: datetime, restart_interval_minutes: float) -> bool:
        return minutes_between(self.last_reset_at, now) >= restart_interval_minutes

    def restart(self, now: datetime) -> None:
        """Start a new statistics window; min/max are seeded by the next sample"""
        self.run_counter = 1
        self.last_reset_at = now

    @property
    def seeding(self) -> bool:
        """True until a write succeeds in the current window"""
        return self.run_counter == 1

    def apply_sample(self, sample: MetricSample) -> None:
        """Seed at the start of a window, widen otherwise"""
        if self.seeding:
            self.cpu.seed(sample.cpu_usage)
            self.memory.seed(sample.memory_usage)
            self.fail_count = 0
        else:
            self.cpu.widen(sample.cpu_usage)
            self.memory.widen(sample.memory_usage)
        self.temperature = sample.temperature

    def record_success(self) -> None:
        self.run_counter += 1

    def record_failure(self) -> None:
        self.fail_count += 1
