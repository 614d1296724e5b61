"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import io

import pytest

from common.config import AppConfig
from common.logging_setup import LoggingContext
from common.models import AdvancedDataPoint, AdvancedReading, ProvisionStatus, ReadValue
from common.state import HeartbeatState
from common.topics import (
    CPU_TEMPERATURE_TOPIC,
    CPU_USAGE_TOPIC,
    MEMORY_USAGE_TOPIC,
    ConfigTopic,
    FqnMap,
    MetricTopic,
)
from services.gateway import ApiResult

APP_NAME = "courseNetApp"


def config_fqn(topic: ConfigTopic) -> str:
    return f"liveValue.config.this.{APP_NAME}.0.{topic.value}."


def metric_fqn(topic: MetricTopic) -> str:
    return f"liveValue.production.this.{APP_NAME}.0.{topic.value}."


CONFIG_REGISTRATION = {t.value: config_fqn(t) for t in ConfigTopic}
GENERAL_REGISTRATION = {t.value: metric_fqn(t) for t in MetricTopic}


def diagnostics(cpu: float = 12.5, memory: float = 2048.0, temperature: float = 45.0):
    """read-advanced response carrying the three sampled diagnostics"""
    return [
        AdvancedReading(
            topic=CPU_USAGE_TOPIC,
            msg_source="Core",
            datapoints=[AdvancedDataPoint("total.", 192, ["1"], [cpu])],
        ),
        AdvancedReading(
            topic=MEMORY_USAGE_TOPIC,
            msg_source="Core",
            datapoints=[AdvancedDataPoint("memoryTotal.", 192, ["1"], [memory])],
        ),
        AdvancedReading(
            topic=CPU_TEMPERATURE_TOPIC,
            msg_source="IO",
            datapoints=[AdvancedDataPoint("", 192, ["1"], [temperature])],
        ),
    ]


class FakeGateway:
    """In-memory stand-in for RestGateway; records every call"""

    def __init__(self):
        self.calls: list[str] = []
        self.server_status: list[ApiResult] = [ApiResult.ok(True)]
        self.define_result = ApiResult.ok(True)
        self.config_registration = ApiResult.ok(dict(CONFIG_REGISTRATION))
        self.general_registration = ApiResult.ok(dict(GENERAL_REGISTRATION))
        self.register_app_result = ApiResult.ok(True)
        self.provision_results: list[ApiResult] = [ApiResult.ok(ProvisionStatus(True))]
        self.read_failure: ApiResult | None = None
        self.values: dict[str, object] = {
            config_fqn(ConfigTopic.RUNNING_PERIOD): 10,
            config_fqn(ConfigTopic.RESTART_PERIOD): 5,
        }
        self.advanced_results: list[ApiResult] = [ApiResult.ok(diagnostics())]
        self.write_results: list[ApiResult] = [ApiResult.ok(True)]
        self.subscribe_result = ApiResult.ok(True, 201)

        self.heartbeats: list[bool] = []
        self.writes: list[list] = []
        self.subscriptions: list[tuple] = []
        self.write_event = asyncio.Event()
        self.closed = False

    @staticmethod
    def _next(results: list[ApiResult]) -> ApiResult:
        # Last result repeats once the queue is exhausted
        return results.pop(0) if len(results) > 1 else results[0]

    async def check_server_status(self):
        self.calls.append("check_server_status")
        return self._next(self.server_status)

    async def define_app(self, app_name):
        self.calls.append("define_app")
        return self.define_result

    async def register_data_points(self, app_name, data_points, category):
        self.calls.append(f"register_data_points:{category}")
        if category == "config":
            return self.config_registration
        return self.general_registration

    async def register_app(self, app_name):
        self.calls.append("register_app")
        return self.register_app_result

    async def send_heartbeat(self, app_name, is_up):
        self.heartbeats.append(is_up)
        return ApiResult.ok(True)

    async def check_provision_status(self, app_name):
        self.calls.append("check_provision_status")
        return self._next(self.provision_results)

    async def read(self, topics):
        self.calls.append("read")
        if self.read_failure is not None:
            return self.read_failure
        return ApiResult.ok([ReadValue(t, self.values.get(t, 0)) for t in topics])

    async def read_advanced(self, topics):
        self.calls.append("read_advanced")
        return self._next(self.advanced_results)

    async def write(self, requests):
        self.calls.append("write")
        result = self._next(self.write_results)
        if result.success:
            self.writes.append(list(requests))
            self.write_event.set()
        return result

    async def subscribe(self, app_name, topics, callback_url, include_optional=False):
        self.calls.append("subscribe")
        self.subscriptions.append((app_name, list(topics), callback_url))
        return self.subscribe_result

    async def close(self):
        self.closed = True


@pytest.fixture
def log_stream():
    return io.StringIO()


@pytest.fixture
def log_context(log_stream):
    return LoggingContext(APP_NAME, "debug", json_format=False, stream=log_stream)


@pytest.fixture
def config():
    return AppConfig(
        app_name=APP_NAME,
        heartbeat_period_seconds=1,
        retry_period_seconds=0,
        max_retries=24,
        core_settle_seconds=0,
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def heartbeat_state():
    return HeartbeatState(10)


@pytest.fixture
def config_fqns():
    return FqnMap(ConfigTopic, CONFIG_REGISTRATION)


@pytest.fixture
def general_fqns():
    return FqnMap(MetricTopic, GENERAL_REGISTRATION)
