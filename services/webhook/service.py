"""
Webhook Ingestion Service

Local HTTP listener for push notifications from the REST server.

Endpoints (under the configured suffix, default /webhook/v1/):
- GET  test               liveness probe
- POST simple_message     {"topic", "value"}
- POST set_of_messages    same shape as simple_message
- POST advanced_messages  {"topic", "msgSource", "datapoints": [...]}

Handlers only decode and enqueue; the metrics loop drains the queue
once per cycle. The queue is thread-safe, so handlers never block on
the consumer.
"""

import asyncio
import queue
from typing import Any

from aiohttp import web

from common.config import AppConfig
from common.logging_setup import LoggingContext
from common.models import AdvancedMessage, SimpleMessage, WebhookMessage
from common.topics import ConfigTopic, FqnMap

from services.gateway import RestGateway

OK_BODY = {"status": "OK"}
ERROR_BODY = {"status": "Error", "detail": "Internal Server Error"}

MALFORMED_BODY_ERRORS = (ValueError, TypeError, AttributeError)


class WebhookService:
    """Receives webhook messages and queues them for the metrics loop"""

    def __init__(
        self,
        config: AppConfig,
        gateway: RestGateway,
        log_context: LoggingContext,
    ):
        self.config = config
        self.webhook_config = config.webhook
        self.gateway = gateway
        self.logger = log_context.get_logger("webhook")

        self._queue: "queue.SimpleQueue[WebhookMessage]" = queue.SimpleQueue()
        self._subscribed_topics: list[str] = []

        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None

    @property
    def running(self) -> bool:
        return self._runner is not None

    @property
    def subscribed_topics(self) -> list[str]:
        return list(self._subscribed_topics)

    async def setup(self, app_name: str, config_fqns: FqnMap[ConfigTopic]) -> bool:
        """
        Subscribe to both configuration topics, then start the listener.

        The listener starts even if the subscription is rejected.

        Returns:
            True if the subscription was accepted
        """
        topics = [
            config_fqns.fqn(ConfigTopic.RESTART_PERIOD),
            config_fqns.fqn(ConfigTopic.RUNNING_PERIOD),
        ]

        result = await self.gateway.subscribe(
            app_name,
            topics,
            self.config.webhook_url,
            include_optional=self.webhook_config.include_optional,
        )
        if result.success:
            self._subscribed_topics = topics
        else:
            self.logger.warning(
                f"Webhook subscription failed ({result.error_message}); "
                "configuration updates will not be pushed"
            )

        await self.start()
        self.logger.info(f"Webhook subscriptions set up for topics: {', '.join(topics)}")
        return result.success

    def build_app(self) -> web.Application:
        """Create the aiohttp application with the fixed endpoint set"""
        cfg = self.webhook_config
        app = web.Application()
        app.router.add_get(cfg.path(cfg.test_command), self._handle_test)
        app.router.add_post(cfg.path(cfg.simple_message_command), self._handle_simple_message)
        app.router.add_post(cfg.path(cfg.set_of_messages_command), self._handle_simple_message)
        app.router.add_post(cfg.path(cfg.advanced_messages_command), self._handle_advanced_message)
        app.router.add_route("*", "/{tail:.*}", self._handle_not_found)
        return app

    async def start(self) -> None:
        """Start the webhook listener"""
        if self._runner is not None:
            return

        cfg = self.webhook_config
        self._app = self.build_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, cfg.host, cfg.port)
        await site.start()

        self.logger.info(
            f"Webhook server started at {cfg.protocol}://{cfg.host}:{cfg.port}{cfg.suffix}"
        )

    async def stop(self) -> None:
        """
        Stop accepting connections and finish in-flight requests.

        Bounded by webhook.shutdown_timeout_seconds. Safe to call when
        the listener never started.
        """
        runner, self._runner = self._runner, None
        if runner is None:
            return
        try:
            await asyncio.wait_for(
                runner.cleanup(), timeout=self.webhook_config.shutdown_timeout_seconds
            )
        except asyncio.TimeoutError:
            self.logger.warning("Webhook server did not shut down in time")
        self._app = None
        self.logger.debug("Webhook service stopped")

    def enqueue(self, message: WebhookMessage | None) -> None:
        """Queue a message as if it had been received"""
        if message is not None:
            self._queue.put(message)
            self.logger.debug("Enqueued webhook message")

    def drain(self) -> list[WebhookMessage]:
        """Remove and return every queued message, oldest first"""
        messages = []
        while True:
            try:
                messages.append(self._queue.get_nowait())
            except queue.Empty:
                return messages

    def pending(self) -> int:
        return self._queue.qsize()

    async def _handle_test(self, request: web.Request) -> web.Response:
        return web.Response(text="OK")

    async def _handle_simple_message(self, request: web.Request) -> web.Response:
        try:
            message = SimpleMessage.from_dict(await self._read_body(request))
        except MALFORMED_BODY_ERRORS as e:
            self.logger.error(f"Failed to process simple webhook message: {e}")
            return web.json_response(ERROR_BODY, status=500)

        if message.topic:
            self._queue.put(message)
            self.logger.debug(
                f"Received simple webhook message for topic {message.topic}: {message.value}"
            )
        return web.json_response(OK_BODY)

    async def _handle_advanced_message(self, request: web.Request) -> web.Response:
        try:
            message = AdvancedMessage.from_dict(await self._read_body(request))
        except MALFORMED_BODY_ERRORS as e:
            self.logger.error(f"Failed to process advanced webhook message: {e}")
            return web.json_response(ERROR_BODY, status=500)

        if message.topic:
            self._queue.put(message)
            self.logger.debug(f"Received advanced webhook message for topic {message.topic}")
        return web.json_response(OK_BODY)

    async def _handle_not_found(self, request: web.Request) -> web.Response:
        return web.Response(status=404, text="Not Found")

    @staticmethod
    async def _read_body(request: web.Request) -> dict[str, Any]:
        body = await request.json()
        if not isinstance(body, dict):
            raise TypeError(f"Expected a JSON object, got {type(body).__name__}")
        return body
