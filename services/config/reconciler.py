"""
Configuration Reconciler

Keeps the operating parameters (loop period, statistics restart
interval) in step with the server, through whichever channel is active:

- Push: drain every queued webhook message, last message per topic wins
- Poll: one REST read of both configuration topics

A cycle with no new data, or a failed poll, keeps the previous
parameters. Resulting values are clamped, never rejected.
"""

from dataclasses import dataclass, replace
from typing import Any

from common.logging_setup import LoggingContext
from common.models import AdvancedMessage, SimpleMessage, WebhookMessage
from common.topics import ConfigTopic, FqnMap

from services.gateway import RestGateway
from services.webhook import WebhookService

from .cache import ConfigCache

PERIOD_MIN_SECONDS = 1.0
PERIOD_MAX_SECONDS = 60.0
RESTART_MIN_MINUTES = 1.0
RESTART_MAX_MINUTES = 24 * 60.0


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class OperatingParameters:
    """Loop period (seconds) and statistics restart interval (minutes)"""
    period: float = 10.0
    restart_interval_minutes: float = 5.0

    def clamped(self) -> "OperatingParameters":
        return OperatingParameters(
            period=clamp(self.period, PERIOD_MIN_SECONDS, PERIOD_MAX_SECONDS),
            restart_interval_minutes=clamp(
                self.restart_interval_minutes, RESTART_MIN_MINUTES, RESTART_MAX_MINUTES
            ),
        )


class ConfigReconciler:
    """Derives OperatingParameters once per metrics cycle"""

    def __init__(
        self,
        gateway: RestGateway,
        config_fqns: FqnMap[ConfigTopic],
        log_context: LoggingContext,
        webhook: WebhookService | None = None,
        initial: OperatingParameters | None = None,
    ):
        self.gateway = gateway
        self.config_fqns = config_fqns
        self.webhook = webhook
        self.logger = log_context.get_logger("config.reconciler")

        self.cache = ConfigCache()
        self._parameters = (initial or OperatingParameters()).clamped()

    @property
    def push_mode(self) -> bool:
        return self.webhook is not None

    @property
    def parameters(self) -> OperatingParameters:
        return self._parameters

    async def reconcile(self) -> OperatingParameters:
        """
        Update and return the operating parameters for this cycle.

        Never raises for a failed poll; the previous parameters are kept.
        """
        if self.webhook is not None:
            updated = self._apply_pushed(self.webhook.drain())
        else:
            updated = await self._apply_polled()

        if updated:
            self._parameters = self._parameters_from_cache()
            self.logger.debug(
                f"Config values: period={self._parameters.period}, "
                f"restartPeriod={self._parameters.restart_interval_minutes}",
            )
        return self._parameters

    def _apply_pushed(self, messages: list[WebhookMessage]) -> bool:
        have_new_data = False
        for message in messages:
            match message:
                case SimpleMessage(topic=topic, value=value):
                    pass
                case AdvancedMessage(topic=topic):
                    value = message.first_value()
                case _:
                    self.logger.warning(
                        f"Received unknown webhook message type: {type(message).__name__}"
                    )
                    continue

            if self.config_fqns.topic_for(topic) is None:
                self.logger.warning(f"Received webhook message for unsubscribed topic {topic}")
                continue

            self.cache.put(topic, value, source="webhook")
            have_new_data = True
            self.logger.info(f"Updated config value for topic {topic}: {value}")

        return have_new_data

    async def _apply_polled(self) -> bool:
        fqns = self.config_fqns.fqns()
        if not fqns:
            return False

        result = await self.gateway.read(fqns)
        if not result.success or result.data is None:
            self.logger.error(f"Failed to read config values: {result.error_message}")
            return False

        have_new_data = False
        for read_value in result.data:
            config_topic = self._match_topic(read_value.topic)
            if config_topic is None or read_value.value is None:
                continue
            self.cache.put(
                self.config_fqns.fqn(config_topic), read_value.value, source="rest"
            )
            have_new_data = True
        return have_new_data

    def _match_topic(self, topic: str | None) -> ConfigTopic | None:
        """Resolve a returned topic by FQN, falling back to the local name"""
        if not topic:
            return None
        config_topic = self.config_fqns.topic_for(topic)
        if config_topic is not None:
            return config_topic
        for candidate in self.config_fqns:
            if candidate.value in topic:
                return candidate
        return None

    def _parameters_from_cache(self) -> OperatingParameters:
        period = self._cached_number(ConfigTopic.RUNNING_PERIOD, self._parameters.period)
        restart = self._cached_number(
            ConfigTopic.RESTART_PERIOD, self._parameters.restart_interval_minutes
        )
        return replace(
            self._parameters, period=period, restart_interval_minutes=restart
        ).clamped()

    def _cached_number(self, topic: ConfigTopic, fallback: float) -> float:
        if topic not in self.config_fqns:
            return fallback
        entry = self.cache.get(self.config_fqns.fqn(topic))
        if entry is None or entry.value is None:
            return fallback
        number = _to_float(entry.value)
        if number is None:
            self.logger.warning(f"Ignoring non-numeric value for {topic.value}: {entry.value!r}")
            return fallback
        return number


def _to_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
