"""
Device Integration Orchestrator

Startup state machine:

    AWAITING_SERVER -> REGISTERING -> AWAITING_CHANNEL_SETUP
        -> AWAITING_CORE_DELAY -> HEARTBEAT_STARTED
        -> AWAITING_PROVISIONING -> INITIAL_READ -> RUNNING

ABORTED is reachable from every state; FINISHED is the clean exit when
nothing was registered. Leaving the machine for any reason stops the
heartbeat and the webhook listener.
"""

import asyncio
import traceback
from enum import Enum

from common.config import AppConfig
from common.exceptions import SetupError
from common.logging_setup import LoggingContext
from common.state import HeartbeatState
from common.topics import (
    ConfigTopic,
    FqnMap,
    MetricTopic,
    config_point_definitions,
    metric_point_definitions,
)

from services.config import ConfigReconciler
from services.gateway import ApiResult, RestGateway
from services.metrics import MetricsLoop
from services.system import HeartbeatMonitor
from services.webhook import WebhookService


class BootstrapState(str, Enum):
    """Orchestrator lifecycle states"""
    AWAITING_SERVER = "awaiting_server"
    REGISTERING = "registering"
    AWAITING_CHANNEL_SETUP = "awaiting_channel_setup"
    AWAITING_CORE_DELAY = "awaiting_core_delay"
    HEARTBEAT_STARTED = "heartbeat_started"
    AWAITING_PROVISIONING = "awaiting_provisioning"
    INITIAL_READ = "initial_read"
    RUNNING = "running"
    FINISHED = "finished"
    ABORTED = "aborted"


class Orchestrator:
    """
    Drives registration, channel setup, heartbeat and the metrics loop.

    Usage:
        orchestrator = Orchestrator(config, gateway, log_context)
        final_state = await orchestrator.run()
    """

    def __init__(
        self,
        config: AppConfig,
        gateway: RestGateway,
        log_context: LoggingContext,
        heartbeat_state: HeartbeatState | None = None,
        webhook: WebhookService | None = None,
    ):
        self.config = config
        self.gateway = gateway
        self.log_context = log_context
        self.logger = log_context.get_logger("orchestrator")

        self.heartbeat_state = heartbeat_state or HeartbeatState(
            config.heartbeat_period_seconds
        )
        self.heartbeat = HeartbeatMonitor(
            config.app_name, gateway, self.heartbeat_state, log_context
        )
        self._webhook = webhook
        self.webhook: WebhookService | None = None

        self.state = BootstrapState.AWAITING_SERVER
        self.config_fqns: FqnMap[ConfigTopic] = FqnMap(ConfigTopic, {})
        self.general_fqns: FqnMap[MetricTopic] = FqnMap(MetricTopic, {})
        self.metrics_loop: MetricsLoop | None = None

    def _transition(self, state: BootstrapState) -> None:
        self.logger.debug(f"State {self.state.value} -> {state.value}")
        self.state = state

    async def run(self) -> BootstrapState:
        """
        Run setup and then the metrics loop.

        Returns only on setup failure, on the clean "nothing to do" exit,
        or if the metrics loop unexpectedly raises.

        Returns:
            Final state (ABORTED or FINISHED)
        """
        try:
            if await self.bootstrap():
                self._transition(BootstrapState.RUNNING)
                await self.metrics_loop.run_forever()
        except SetupError as e:
            self.logger.critical(f"{e.message} (Status: {e.status_code})")
            self._transition(BootstrapState.ABORTED)
        except Exception as e:
            self.logger.critical(f"Fatal error in application: {e}")
            self.logger.debug(f"Stack trace: {traceback.format_exc()}")
            self._transition(BootstrapState.ABORTED)
        finally:
            await self.shutdown()
        return self.state

    async def bootstrap(self) -> bool:
        """
        Perform every setup step up to, not including, RUNNING.

        Returns:
            False when there is nothing to process (state FINISHED)

        Raises:
            SetupError: On any fatal setup failure
        """
        await self.wait_for_server()
        await self.register()

        if len(self.config_fqns) == 0 and len(self.general_fqns) == 0:
            self.logger.info("No data points to process, exiting")
            self._transition(BootstrapState.FINISHED)
            return False

        await self.setup_channel()
        await self.core_delay()
        await self.start_heartbeat()
        await self.wait_for_provisioning()
        await self.initial_read()

        reconciler = ConfigReconciler(
            self.gateway, self.config_fqns, self.log_context, webhook=self.webhook
        )
        self.metrics_loop = MetricsLoop(
            self.gateway,
            reconciler,
            self.general_fqns,
            self.heartbeat_state,
            self.log_context,
        )
        return True

    async def wait_for_server(self) -> None:
        """Poll server liveness up to max_retries times"""
        self._transition(BootstrapState.AWAITING_SERVER)
        self.logger.info("Checking server status...")

        max_retries = self.config.max_retries
        result: ApiResult[bool] = ApiResult.fail("Server not checked")
        for attempt in range(1, max_retries + 1):
            result = await self.gateway.check_server_status()
            if result.success and result.data:
                return
            reason = result.error_message or "server reports not up"
            self.logger.warning(
                f"Server not responding (Status: {result.status_code}): {reason}",
                extra={"attempt": attempt},
            )
            if attempt < max_retries:
                await asyncio.sleep(self.config.retry_period_seconds)

        raise SetupError(
            f"Server check failed after {max_retries} retries. "
            f"Last error: {result.error_message or 'server reports not up'}",
            state=self.state.value,
            status_code=result.status_code,
        )

    async def register(self) -> None:
        """Define the app, register both data point categories, register the app"""
        self._transition(BootstrapState.REGISTERING)
        app_name = self.config.app_name

        self.logger.info("Defining app...")
        self._require(await self.gateway.define_app(app_name), "Failed to define app")

        self.logger.info("Registering config data points...")
        config_result = await self.gateway.register_data_points(
            app_name, config_point_definitions(), "config"
        )
        self._require(config_result, "Failed to register config points")

        self.logger.info("Registering general data points...")
        general_result = await self.gateway.register_data_points(
            app_name, metric_point_definitions(), "general"
        )
        self._require(general_result, "Failed to register general points")

        self.logger.info("Registering app...")
        self._require(await self.gateway.register_app(app_name), "Failed to register app")

        self.config_fqns = FqnMap(ConfigTopic, config_result.data or {})
        self.general_fqns = FqnMap(MetricTopic, general_result.data or {})
        self.logger.info(
            f"Registered {len(self.config_fqns)} config and "
            f"{len(self.general_fqns)} general data points"
        )

    def _require(self, result: ApiResult, context: str) -> None:
        if not result.success:
            raise SetupError(
                f"Failed to setup application: {context}: {result.error_message}",
                state=self.state.value,
                status_code=result.status_code,
            )

    async def setup_channel(self) -> None:
        """Start push delivery when enabled, otherwise rely on polling"""
        self._transition(BootstrapState.AWAITING_CHANNEL_SETUP)
        if self.config.webhook_enabled and len(self.config_fqns) > 0:
            self.logger.info("Webhook enabled, setting up webhook handling...")
            self.webhook = self._webhook or WebhookService(
                self.config, self.gateway, self.log_context
            )
            await self.webhook.setup(self.config.app_name, self.config_fqns)
        else:
            self.logger.info("REST read enabled...")

    async def core_delay(self) -> None:
        """Give the server time to finish registering the app"""
        self._transition(BootstrapState.AWAITING_CORE_DELAY)
        delay = self.config.core_settle_seconds
        self.logger.info(f"Delaying {delay:g} Seconds : Core Application Registration")
        await asyncio.sleep(delay)

    async def start_heartbeat(self) -> None:
        self._transition(BootstrapState.HEARTBEAT_STARTED)
        self.logger.info("Starting heartbeat...")
        self.heartbeat.change_state(False)
        self.heartbeat.change_period(self.config.heartbeat_period_seconds)
        await self.heartbeat.start()

    async def wait_for_provisioning(self) -> None:
        """
        Poll provisioning status until the server reports new config.

        Unlimited unless provision_max_retries is set.
        """
        self._transition(BootstrapState.AWAITING_PROVISIONING)
        app_name = self.config.app_name
        max_retries = self.config.provision_max_retries
        attempts = 0

        while True:
            result = await self.gateway.check_provision_status(app_name)
            if not result.success:
                self.logger.error(
                    f"Failed to check provision status: {result.error_message}"
                )
            elif result.data.has_new_config or len(self.config_fqns) == 0:
                return
            else:
                self.logger.info("Waiting for configuration...")

            attempts += 1
            if max_retries and attempts >= max_retries:
                raise SetupError(
                    f"Provisioning not complete after {attempts} checks",
                    state=self.state.value,
                    status_code=result.status_code,
                )
            await asyncio.sleep(self.config.retry_period_seconds)

    async def initial_read(self) -> None:
        """Read every registered topic once, then assert a healthy heartbeat"""
        self._transition(BootstrapState.INITIAL_READ)
        self.logger.info("Reading initial data points...")

        topics = self.config_fqns.fqns() + self.general_fqns.fqns()
        result = await self.gateway.read(topics)
        if not result.success:
            raise SetupError(
                f"Failed to read initial data points: {result.error_message}",
                state=self.state.value,
                status_code=result.status_code,
            )
        if not result.data:
            raise SetupError(
                "No data points returned from initial read", state=self.state.value
            )

        missing = [m.value for m in MetricTopic if m not in self.general_fqns]
        if missing:
            raise SetupError(
                f"Metric data points not registered: {', '.join(missing)}",
                state=self.state.value,
            )

        self.logger.info(
            "Initial data points read successfully, asserting a healthy heartbeat..."
        )
        self.heartbeat.change_state(True)
        self.heartbeat.change_period(self.config.steady_heartbeat_period_seconds)

    async def shutdown(self) -> None:
        """Stop background services; safe to call more than once"""
        await self.heartbeat.stop()
        if self.webhook is not None:
            await self.webhook.stop()
