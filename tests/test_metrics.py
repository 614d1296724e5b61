"""Tests for run statistics and the metrics cycle."""

from datetime import datetime, timedelta

import pytest

from common.models import AdvancedReading, SimpleMessage
from common.topics import ConfigTopic, MetricTopic
from services.config import ConfigReconciler
from services.gateway import ApiResult
from services.metrics import MetricSample, MetricsLoop, RunStatistics, extract_value
from services.webhook import WebhookService

from conftest import config_fqn, diagnostics, metric_fqn

T0 = datetime(2024, 1, 15, 8, 0, 0)


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def reconciler(gateway, config_fqns, log_context):
    return ConfigReconciler(gateway, config_fqns, log_context)


@pytest.fixture
def loop(gateway, reconciler, general_fqns, heartbeat_state, log_context, clock):
    return MetricsLoop(
        gateway, reconciler, general_fqns, heartbeat_state, log_context, clock=clock
    )


def written(gateway, index=-1) -> dict[str, object]:
    return {request.topic: request.value for request in gateway.writes[index]}


class TestRunStatistics:
    def test_first_sample_seeds_ranges_and_clears_failures(self):
        stats = RunStatistics(last_reset_at=T0, fail_count=3)

        stats.apply_sample(MetricSample(20.0, 100.0, 40.0))

        assert (stats.cpu.min, stats.cpu.current, stats.cpu.max) == (20.0, 20.0, 20.0)
        assert stats.memory.max == 100.0
        assert stats.fail_count == 0

    def test_later_samples_widen_ranges(self):
        stats = RunStatistics(last_reset_at=T0)
        stats.apply_sample(MetricSample(20.0, 100.0, 40.0))
        stats.record_success()

        stats.apply_sample(MetricSample(35.0, 80.0, 41.0))
        stats.apply_sample(MetricSample(10.0, 90.0, 42.0))

        assert (stats.cpu.min, stats.cpu.current, stats.cpu.max) == (10.0, 10.0, 35.0)
        assert (stats.memory.min, stats.memory.max) == (80.0, 100.0)
        assert stats.temperature == 42.0

    def test_reset_due(self):
        stats = RunStatistics(last_reset_at=T0)

        assert not stats.reset_due(T0 + timedelta(minutes=4, seconds=59), 5)
        assert stats.reset_due(T0 + timedelta(minutes=5), 5)


def test_extract_value_defaults_to_zero():
    readings = diagnostics(cpu=55.0)

    assert extract_value(readings, "cpuUsage", "total.") == 55.0
    assert extract_value(readings, "cpuUsage", "core0.") == 0.0
    assert extract_value([AdvancedReading("x")], "cpuUsage", "total.") == 0.0


@pytest.mark.asyncio
async def test_first_cycle_publishes_all_metrics(loop, gateway, heartbeat_state):
    assert await loop.run_cycle() is True

    values = written(gateway)
    assert set(values) == {metric_fqn(t) for t in MetricTopic}
    assert values[metric_fqn(MetricTopic.RUN_COUNTER)] == 1
    assert values[metric_fqn(MetricTopic.CPU_USAGE_CURRENT)] == 12.5
    assert values[metric_fqn(MetricTopic.CPU_USAGE_MIN)] == 12.5
    assert values[metric_fqn(MetricTopic.CPU_USAGE_MAX)] == 12.5
    assert values[metric_fqn(MetricTopic.MEMORY_USAGE_CURRENT)] == 2048.0
    assert values[metric_fqn(MetricTopic.TEMPERATURE)] == 45.0
    assert values[metric_fqn(MetricTopic.FAIL_COUNT)] == 0
    assert values[metric_fqn(MetricTopic.LAST_RUN_TIME)] == "2024-01-15 08:00:00"
    assert heartbeat_state.is_up is True
    assert loop.stats.run_counter == 2


@pytest.mark.asyncio
async def test_write_requests_are_good_quality_with_epoch_millis(loop, gateway):
    await loop.run_cycle()

    for request in gateway.writes[0]:
        assert request.quality == 192
        assert request.msg_source == "REST"
        assert request.time_stamp.isdigit()


@pytest.mark.asyncio
async def test_ranges_widen_across_cycles(loop, gateway):
    gateway.advanced_results = [
        ApiResult.ok(diagnostics(cpu=20.0)),
        ApiResult.ok(diagnostics(cpu=50.0)),
        ApiResult.ok(diagnostics(cpu=5.0)),
    ]

    for _ in range(3):
        await loop.run_cycle()

    values = written(gateway)
    assert values[metric_fqn(MetricTopic.RUN_COUNTER)] == 3
    assert values[metric_fqn(MetricTopic.CPU_USAGE_CURRENT)] == 5.0
    assert values[metric_fqn(MetricTopic.CPU_USAGE_MIN)] == 5.0
    assert values[metric_fqn(MetricTopic.CPU_USAGE_MAX)] == 50.0


@pytest.mark.asyncio
async def test_failed_write_does_not_advance_counter(loop, gateway, heartbeat_state):
    gateway.write_results = [ApiResult.fail("Failed to write data points. Status: 500", 500)]

    assert await loop.run_cycle() is False

    assert loop.stats.run_counter == 1
    assert heartbeat_state.is_up is False


@pytest.mark.asyncio
async def test_failed_sample_counts_failure_and_keeps_ranges(loop, gateway, heartbeat_state):
    gateway.advanced_results = [
        ApiResult.ok(diagnostics(cpu=20.0)),
        ApiResult.ok(diagnostics(cpu=40.0)),
        ApiResult.fail("Network error: timed out"),
    ]
    await loop.run_cycle()
    await loop.run_cycle()
    writes_before = len(gateway.writes)

    assert await loop.run_cycle() is False

    assert loop.stats.fail_count == 1
    assert (loop.stats.cpu.min, loop.stats.cpu.max) == (20.0, 40.0)
    assert len(gateway.writes) == writes_before
    assert heartbeat_state.is_up is False


@pytest.mark.asyncio
async def test_failure_count_is_published_on_next_success(loop, gateway):
    gateway.advanced_results = [
        ApiResult.ok(diagnostics()),
        ApiResult.fail("Network error: timed out"),
        ApiResult.ok(diagnostics()),
    ]

    for _ in range(3):
        await loop.run_cycle()

    assert written(gateway)[metric_fqn(MetricTopic.FAIL_COUNT)] == 1


@pytest.mark.asyncio
async def test_statistics_restart_after_interval(loop, gateway, clock):
    gateway.values[config_fqn(ConfigTopic.RESTART_PERIOD)] = 5
    gateway.advanced_results = [
        ApiResult.ok(diagnostics(cpu=80.0)),
        ApiResult.ok(diagnostics(cpu=90.0)),
        ApiResult.ok(diagnostics(cpu=30.0)),
    ]

    await loop.run_cycle()
    clock.advance(minutes=2)
    await loop.run_cycle()
    clock.advance(minutes=3)
    await loop.run_cycle()

    values = written(gateway)
    assert values[metric_fqn(MetricTopic.RUN_COUNTER)] == 1
    assert values[metric_fqn(MetricTopic.CPU_USAGE_MIN)] == 30.0
    assert values[metric_fqn(MetricTopic.CPU_USAGE_MAX)] == 30.0
    assert values[metric_fqn(MetricTopic.FAIL_COUNT)] == 0
    assert loop.stats.last_reset_at == clock.now


@pytest.mark.asyncio
async def test_pushed_period_holds_across_cycles(
    config, gateway, config_fqns, general_fqns, heartbeat_state, log_context, clock
):
    webhook = WebhookService(config, gateway, log_context)
    reconciler = ConfigReconciler(gateway, config_fqns, log_context, webhook=webhook)
    loop = MetricsLoop(
        gateway, reconciler, general_fqns, heartbeat_state, log_context, clock=clock
    )

    webhook.enqueue(SimpleMessage(config_fqn(ConfigTopic.RUNNING_PERIOD), 45))
    await loop.run_cycle()
    assert reconciler.parameters.period == 45

    await loop.run_cycle()
    assert reconciler.parameters.period == 45
