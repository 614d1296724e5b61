"""
Metrics Sampling Loop

Each cycle:
1. Reconcile configuration (push or poll)
2. Restart the statistics window when the restart interval has elapsed
3. Sample CPU, memory and temperature with one read-advanced
4. Seed or widen min/max
5. Write the ten published values
6. Report the outcome through the heartbeat state

Any exception inside a cycle is counted and logged; the loop itself
never stops.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable

from common.exceptions import SampleError
from common.logging_setup import LoggingContext
from common.models import AdvancedReading, Quality, WriteRequest
from common.state import HeartbeatState
from common.timestamp import epoch_millis, run_time_string
from common.topics import (
    CPU_TEMPERATURE_TOPIC,
    CPU_TOTAL_POINT,
    CPU_USAGE_TOPIC,
    MEMORY_TOTAL_POINT,
    MEMORY_USAGE_TOPIC,
    TEMPERATURE_POINT,
    FqnMap,
    MetricTopic,
)

from services.config import ConfigReconciler
from services.gateway import RestGateway

from .statistics import MetricSample, RunStatistics

SAMPLED_TOPICS = [CPU_USAGE_TOPIC, MEMORY_USAGE_TOPIC, CPU_TEMPERATURE_TOPIC]


def extract_value(
    readings: list[AdvancedReading],
    topic_fragment: str,
    data_point_name: str,
) -> float:
    """
    First value of the named datapoint in the first matching reading.

    Returns 0.0 when no reading carries that datapoint.
    """
    for reading in readings:
        if topic_fragment not in reading.topic:
            continue
        datapoint = reading.find(data_point_name)
        if datapoint is None:
            continue
        value = datapoint.first_value()
        return float(value) if value is not None else 0.0
    return 0.0


class MetricsLoop:
    """Samples diagnostics and publishes statistics forever"""

    def __init__(
        self,
        gateway: RestGateway,
        reconciler: ConfigReconciler,
        general_fqns: FqnMap[MetricTopic],
        heartbeat_state: HeartbeatState,
        log_context: LoggingContext,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.gateway = gateway
        self.reconciler = reconciler
        self.general_fqns = general_fqns
        self.heartbeat_state = heartbeat_state
        self.logger = log_context.get_logger("metrics")
        self._clock = clock

        self.stats = RunStatistics(last_reset_at=clock())
        self._cycle_count = 0

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    async def run_forever(self) -> None:
        """Run cycles at the reconciled period until cancelled"""
        self.logger.info("Starting business logic...")
        while True:
            await self.run_cycle()
            await asyncio.sleep(self.reconciler.parameters.period)

    async def run_cycle(self) -> bool:
        """
        Execute one cycle.

        Returns:
            True if the values were written
        """
        self._cycle_count += 1
        try:
            parameters = await self.reconciler.reconcile()

            now = self._clock()
            if self.stats.reset_due(now, parameters.restart_interval_minutes):
                self.stats.restart(now)
                self.logger.info(f"Resetting stats {now}")

            sample = await self.sample()
            self.stats.apply_sample(sample)

            result = await self.gateway.write(self._build_writes())
            if not result.success:
                self.logger.error(
                    f"Failed to write data points: {result.error_message} "
                    f"(Status: {result.status_code})"
                )
                self.heartbeat_state.set_up(False)
                return False

            self.logger.info(
                f"Run {self.stats.run_counter}: CPU={sample.cpu_usage}, "
                f"Memory={sample.memory_usage}, Temp={sample.temperature}"
            )
            self.stats.record_success()
            self.heartbeat_state.set_up(True)
            return True

        except Exception as e:
            self.stats.record_failure()
            self.heartbeat_state.set_up(False)
            self.logger.error(
                f"Business logic fail count {self.stats.fail_count}, reason {e}",
                exc_info=True,
            )
            return False

    async def sample(self) -> MetricSample:
        """
        Read CPU, memory and temperature diagnostics.

        Raises:
            SampleError: If the read-advanced call failed
        """
        result = await self.gateway.read_advanced(SAMPLED_TOPICS)
        if not result.success or result.data is None:
            raise SampleError(
                f"Failed to read diagnostics: {result.error_message}",
                status_code=result.status_code,
            )

        readings = result.data
        return MetricSample(
            cpu_usage=extract_value(readings, "cpuUsage", CPU_TOTAL_POINT),
            memory_usage=extract_value(readings, "memoryUsage", MEMORY_TOTAL_POINT),
            temperature=extract_value(readings, "temperature", TEMPERATURE_POINT),
        )

    def published_values(self) -> dict[MetricTopic, Any]:
        """Values written this cycle, keyed by metric"""
        stats = self.stats
        return {
            MetricTopic.RUN_COUNTER: stats.run_counter,
            MetricTopic.LAST_RUN_TIME: run_time_string(self._clock()),
            MetricTopic.CPU_USAGE_CURRENT: stats.cpu.current,
            MetricTopic.CPU_USAGE_MAX: stats.cpu.max,
            MetricTopic.CPU_USAGE_MIN: stats.cpu.min,
            MetricTopic.MEMORY_USAGE_CURRENT: stats.memory.current,
            MetricTopic.MEMORY_USAGE_MAX: stats.memory.max,
            MetricTopic.MEMORY_USAGE_MIN: stats.memory.min,
            MetricTopic.TEMPERATURE: stats.temperature,
            MetricTopic.FAIL_COUNT: stats.fail_count,
        }

    def _build_writes(self) -> list[WriteRequest]:
        return [
            WriteRequest(
                topic=self.general_fqns.fqn(metric),
                value=value,
                time_stamp=epoch_millis(),
                quality=Quality.GOOD,
            )
            for metric, value in self.published_values().items()
        ]
