"""
Known Topics

Closed enumerations of the configuration and metric data points this
client registers, plus the fully-qualified-name map built from the
registration response.
"""

from enum import Enum
from typing import Generic, Iterator, Mapping, TypeVar

from .exceptions import SetupError
from .models import DataPointDefinition, DataType


class ConfigTopic(str, Enum):
    """Operating parameters pushed or polled from the server"""
    RUNNING_PERIOD = "configrunningperiod"
    RESTART_PERIOD = "maxminrestartperiod"


class MetricTopic(str, Enum):
    """Values published every cycle"""
    RUN_COUNTER = "runcounter"
    LAST_RUN_TIME = "lastruntime"
    CPU_USAGE_CURRENT = "cpuusagecurrent"
    CPU_USAGE_MAX = "cpuusagemax"
    CPU_USAGE_MIN = "cpuusagemin"
    MEMORY_USAGE_CURRENT = "memoryusagecurrent"
    MEMORY_USAGE_MAX = "memoryusagemax"
    MEMORY_USAGE_MIN = "memoryusagemin"
    TEMPERATURE = "temperature"
    FAIL_COUNT = "failcount"


# Diagnostic topics sampled through read-advanced
CPU_USAGE_TOPIC = "liveValue.diagnostics.this.core.0.cpuUsage|"
MEMORY_USAGE_TOPIC = "liveValue.diagnostics.this.core.0.memoryUsage|"
CPU_TEMPERATURE_TOPIC = "liveValue.diagnostics.this.io.0.temperature.cpu."

CPU_TOTAL_POINT = "total."
MEMORY_TOTAL_POINT = "memoryTotal."
TEMPERATURE_POINT = ""

SERVER_UP_TOPIC = "liveValue.state.this.core.0.up."


def config_point_definitions() -> list[DataPointDefinition]:
    """Configuration data points (registered under the 'config' category)"""
    return [
        DataPointDefinition(ConfigTopic.RUNNING_PERIOD.value, "Running Period", DataType.DOUBLE),
        DataPointDefinition(ConfigTopic.RESTART_PERIOD.value, "Restart Period", DataType.DOUBLE),
    ]


def metric_point_definitions() -> list[DataPointDefinition]:
    """General data points (registered under the 'general' category)"""
    return [
        DataPointDefinition(MetricTopic.RUN_COUNTER.value, "Run Counter", DataType.DOUBLE),
        DataPointDefinition(MetricTopic.LAST_RUN_TIME.value, "Last Runtime", DataType.STRING),
        DataPointDefinition(MetricTopic.CPU_USAGE_CURRENT.value, "CPU Usage Current", DataType.DOUBLE, "PRCNT"),
        DataPointDefinition(MetricTopic.CPU_USAGE_MAX.value, "CPU Usage Max", DataType.DOUBLE, "PRCNT"),
        DataPointDefinition(MetricTopic.CPU_USAGE_MIN.value, "CPU Usage Min", DataType.DOUBLE, "PRCNT"),
        DataPointDefinition(MetricTopic.MEMORY_USAGE_CURRENT.value, "Memory Usage Current", DataType.DOUBLE, "BYTE"),
        DataPointDefinition(MetricTopic.MEMORY_USAGE_MAX.value, "Memory Usage Max", DataType.DOUBLE, "BYTE"),
        DataPointDefinition(MetricTopic.MEMORY_USAGE_MIN.value, "Memory Usage Min", DataType.DOUBLE, "BYTE"),
        DataPointDefinition(MetricTopic.TEMPERATURE.value, "Temperature", DataType.DOUBLE, "TEMP"),
        DataPointDefinition(MetricTopic.FAIL_COUNT.value, "Fail Count", DataType.UINT32),
    ]


TopicT = TypeVar("TopicT", ConfigTopic, MetricTopic)


class FqnMap(Generic[TopicT]):
    """
    Read-only map from a known topic to its fully-qualified name.

    Only topics the server accepted are present. Looking up a missing
    topic is a fatal setup error.
    """

    def __init__(self, topic_type: type[TopicT], registered: Mapping[str, str]):
        self._topic_type = topic_type
        self._fqns: dict[TopicT, str] = {}
        for name, fqn in registered.items():
            try:
                self._fqns[topic_type(name)] = fqn
            except ValueError:
                continue

    def __len__(self) -> int:
        return len(self._fqns)

    def __contains__(self, topic: object) -> bool:
        return topic in self._fqns

    def __iter__(self) -> Iterator[TopicT]:
        return iter(self._fqns)

    def fqn(self, topic: TopicT) -> str:
        try:
            return self._fqns[topic]
        except KeyError:
            raise SetupError(f"No fully-qualified name registered for '{topic.value}'")

    def fqns(self) -> list[str]:
        return list(self._fqns.values())

    def topic_for(self, fqn: str) -> TopicT | None:
        """Reverse lookup by fully-qualified name"""
        for topic, registered in self._fqns.items():
            if registered == fqn:
                return topic
        return None

    def items(self):
        return self._fqns.items()
