"""
Heartbeat Module

Reports application liveness to the REST server on its own cadence,
independent of the metrics loop. The period and the up/down flag are
read from HeartbeatState at every iteration, so changes take effect on
the next send rather than mid-sleep.
"""

import asyncio

from common.logging_setup import LoggingContext
from common.state import HeartbeatState

from services.gateway import RestGateway


class HeartbeatMonitor:
    """Sends heartbeat signals to the REST server"""

    def __init__(
        self,
        app_name: str,
        gateway: RestGateway,
        state: HeartbeatState,
        log_context: LoggingContext,
        stop_timeout_seconds: float = 5.0,
    ):
        self.app_name = app_name
        self.gateway = gateway
        self.state = state
        self.stop_timeout_seconds = stop_timeout_seconds
        self.logger = log_context.get_logger("heartbeat")

        self._running = False
        self._task: asyncio.Task | None = None

        self._consecutive_failures = 0
        self._sent_count = 0

    @property
    def running(self) -> bool:
        return self._running and self._task is not None and not self._task.done()

    @property
    def sent_count(self) -> int:
        return self._sent_count

    async def start(self) -> None:
        """Start sending heartbeats"""
        if self.running:
            return
        self._running = True
        self._task = asyncio.create_task(self._heartbeat_loop())
        self.logger.info(
            f"Heartbeat started (interval: {self.state.period_seconds}s)"
        )

    async def stop(self) -> None:
        """
        Stop sending heartbeats.

        Safe to call repeatedly or after the task has already exited.
        """
        self._running = False
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await asyncio.wait_for(task, timeout=self.stop_timeout_seconds)
        except asyncio.CancelledError:
            pass
        except asyncio.TimeoutError:
            self.logger.warning("Heartbeat task did not stop in time")
        self.logger.info("Heartbeat stopped")

    def change_period(self, period_seconds: int) -> None:
        self.state.set_period(period_seconds)

    def change_state(self, is_up: bool) -> None:
        self.state.set_up(is_up)

    async def _heartbeat_loop(self) -> None:
        """Main heartbeat loop"""
        while self._running:
            snapshot = self.state.snapshot()
            try:
                await self._send(snapshot.is_up)
            except Exception as e:
                self.logger.error(f"Heartbeat error: {e}")
            await asyncio.sleep(max(snapshot.period_seconds, 0))

    async def _send(self, is_up: bool) -> None:
        """Send a single heartbeat; failures are logged, never raised"""
        result = await self.gateway.send_heartbeat(self.app_name, is_up)
        if result.success:
            self._consecutive_failures = 0
            self._sent_count += 1
            self.logger.debug(f"Heartbeat sent: {is_up}")
            return

        self._consecutive_failures += 1
        self.logger.error(
            f"Heartbeat failed ({self._consecutive_failures}): {result.error_message}",
            extra={"consecutive_failures": self._consecutive_failures},
        )
