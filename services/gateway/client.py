"""
REST Gateway

Request/response wrapper around the HCC2 REST server.

Every operation returns an ApiResult. Network errors, rejected requests
and undecodable responses are converted to ApiResult.fail; callers
decide whether to retry or abort.

Reuses a single HTTP client, shared by the metrics loop and the
heartbeat task.
"""

import json
from typing import Any, Sequence

import httpx

from common.config import AppConfig
from common.logging_setup import LoggingContext
from common.models import (
    AdvancedReading,
    DataPointDefinition,
    ProvisionStatus,
    ReadValue,
    RegistrationItem,
    WriteRequest,
)
from common.topics import SERVER_UP_TOPIC

from .results import ApiResult

# Decode failures: bad JSON (ValueError) or unexpected structure
DECODE_ERRORS = (ValueError, KeyError, TypeError, AttributeError)


class RestGateway:
    """Stateless client for the HCC2 REST API"""

    def __init__(
        self,
        config: AppConfig,
        log_context: LoggingContext,
        client: httpx.AsyncClient | None = None,
    ):
        self.config = config
        self.logger = log_context.get_logger("gateway")
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create reusable HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.config.request_timeout_seconds)
        return self._client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _url(self, path: str) -> str:
        return f"{self.config.base_url}{self.config.uri_prefix}{path}"

    async def _request(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        client = await self._get_client()
        kwargs: dict[str, Any] = {}
        if json_body is not None:
            kwargs["json"] = json_body
        if params:
            kwargs["params"] = params
        return await client.request(method, self._url(path), **kwargs)

    @staticmethod
    def _status_message(response: httpx.Response) -> str:
        return f"Server returned {response.status_code}: {response.reason_phrase}"

    async def check_server_status(self) -> ApiResult[bool]:
        """
        Check server liveness by reading the core 'up' state.

        Returns:
            ok(True/False) when the server answered, fail otherwise
        """
        try:
            response = await self._request(
                "POST",
                "/message/read",
                {"topics": [SERVER_UP_TOPIC], "includeOptional": False},
            )
            if response.is_success:
                values = response.json() or []
                first = values[0].get("value") if values else None
                return ApiResult.ok(first if isinstance(first, bool) else False)

            self.logger.error(
                f"Failed to check server status. Status:{response.status_code} "
                f"Reason:{response.reason_phrase} Content:{response.text}"
            )
            return ApiResult.fail(self._status_message(response), response.status_code)
        except httpx.HTTPError as e:
            self.logger.error(f"Network error checking server status: {e}")
            return ApiResult.fail(f"Network error: {e}")
        except DECODE_ERRORS as e:
            self.logger.error(f"Unexpected error checking server status: {e}")
            return ApiResult.fail(f"Unexpected error: {e}")

    async def define_app(self, app_name: str) -> ApiResult[bool]:
        """Define the application with default settings"""
        try:
            response = await self._request("PUT", f"/app-creator/{app_name}/defaults")
            if response.is_success:
                self.logger.info(f"App {app_name} initialized")
                return ApiResult.ok(True)

            self.logger.error(
                f"Failed to define app {app_name}. Status:{response.status_code} "
                f"Reason:{response.reason_phrase}"
            )
            return ApiResult.fail(self._status_message(response), response.status_code)
        except httpx.HTTPError as e:
            self.logger.error(f"Error defining app: {e}")
            return ApiResult.fail(f"Network error: {e}")

    async def register_data_points(
        self,
        app_name: str,
        data_points: Sequence[DataPointDefinition],
        category: str,
    ) -> ApiResult[dict[str, str]]:
        """
        Register data points under a category ("config" or "general").

        The response's content field is a JSON string listing one result
        per requested point, in request order. Points the server did not
        assign a fully-qualified name are left out of the returned map.

        Returns:
            ok({topic: fqn}) or fail with aggregated validation messages
        """
        payload = {"tagsList": [dp.to_dict() for dp in data_points]}
        self.logger.debug(f"Request payload for {category}: {json.dumps(payload)}")

        try:
            response = await self._request(
                "PUT", f"/app-creator/{app_name}/datapoint/{category}", payload
            )
        except httpx.HTTPError as e:
            self.logger.error(f"Error registering data points: {e}")
            return ApiResult.fail(f"Network error: {e}")

        if not response.is_success:
            message = self._registration_error(response, category)
            self.logger.error(message)
            return ApiResult.fail(message, response.status_code)

        try:
            items = self._decode_registration_items(response)
        except DECODE_ERRORS as e:
            return ApiResult.fail(f"Invalid response format: {e}")
        if items is None:
            return ApiResult.fail("Invalid response format: missing content")

        registered: dict[str, str] = {}
        for data_point, item in zip(data_points, items):
            if item.full_data_point_name is None:
                self.logger.warning(
                    f"Data point {data_point.topic} was not registered ({item.result})"
                )
                continue
            registered[data_point.topic] = item.full_data_point_name

        return ApiResult.ok(registered)

    @staticmethod
    def _decode_registration_items(response: httpx.Response) -> list[RegistrationItem] | None:
        envelope = response.json()
        content = envelope.get("content") if isinstance(envelope, dict) else None
        if not content:
            return None
        # content is itself JSON text
        raw_items = json.loads(content) if isinstance(content, str) else content
        if not isinstance(raw_items, list):
            raise TypeError("content is not a list")
        return [RegistrationItem.from_dict(item) for item in raw_items]

    def _registration_error(self, response: httpx.Response, category: str) -> str:
        lines = [
            f"Failed to register data points for {category}. "
            f"Status code: {response.status_code}"
        ]
        try:
            envelope = response.json()
            if isinstance(envelope, dict) and envelope.get("content"):
                lines.append(f"Error: {envelope.get('msg', '')}")
                for item in self._decode_registration_items(response) or []:
                    if item.result != "Error":
                        continue
                    for msg in item.messages:
                        lines.append(
                            f"Validation error for {item.full_data_point_name}: "
                            f"{msg.type} in {msg.display_field} - {msg.message}"
                        )
        except DECODE_ERRORS as e:
            lines.append(f"Failed to parse error response: {e}")
        return "\n".join(lines)

    async def register_app(self, app_name: str) -> ApiResult[bool]:
        """Register the application with all data points defined so far"""
        try:
            response = await self._request(
                "POST",
                f"/app-registration/{app_name}",
                params={"isComplexProvisioned": "false"},
            )
            if response.is_success:
                return ApiResult.ok(True)
            return ApiResult.fail(
                f"Failed to register app. Status: {response.status_code}",
                response.status_code,
            )
        except httpx.HTTPError as e:
            self.logger.error(f"Error registering app: {e}")
            return ApiResult.fail(f"Network error: {e}")

    async def send_heartbeat(self, app_name: str, is_up: bool) -> ApiResult[bool]:
        """Report application liveness"""
        try:
            response = await self._request(
                "PUT", f"/app-provision/{app_name}", {"isUp": is_up}
            )
            if response.is_success:
                return ApiResult.ok(True)
            return ApiResult.fail(
                f"Heartbeat failed. Status: {response.status_code}",
                response.status_code,
            )
        except httpx.HTTPError as e:
            self.logger.error(f"Error sending heartbeat: {e}")
            return ApiResult.fail(f"Network error: {e}")

    async def check_provision_status(self, app_name: str) -> ApiResult[ProvisionStatus]:
        """Check whether the application's configuration has been provisioned"""
        try:
            response = await self._request("GET", f"/app-provision/{app_name}")
            if not response.is_success:
                return ApiResult.fail(
                    f"Failed to check provision status. Status: {response.status_code}",
                    response.status_code,
                )
            data = response.json()
            if not isinstance(data, dict):
                return ApiResult.fail(
                    "Invalid response format: unable to parse provision status"
                )
            return ApiResult.ok(ProvisionStatus.from_dict(data))
        except httpx.HTTPError as e:
            self.logger.error(f"Error checking provision status: {e}")
            return ApiResult.fail(f"Network error: {e}")
        except DECODE_ERRORS as e:
            self.logger.error(f"Error checking provision status: {e}")
            return ApiResult.fail(f"Invalid response format: {e}")

    async def read(self, topics: Sequence[str]) -> ApiResult[list[ReadValue]]:
        """Read current values of the given topics"""
        try:
            response = await self._request("POST", "/message/read", {"topics": list(topics)})
            if not response.is_success:
                return ApiResult.fail(
                    f"Failed to read data points. Status: {response.status_code}",
                    response.status_code,
                )
            return ApiResult.ok([ReadValue.from_dict(v) for v in response.json() or []])
        except httpx.HTTPError as e:
            self.logger.error(f"Error reading data points: {e}")
            return ApiResult.fail(f"Network error: {e}")
        except DECODE_ERRORS as e:
            self.logger.error(f"Error reading data points: {e}")
            return ApiResult.fail(f"Invalid response format: {e}")

    async def read_advanced(self, topics: Sequence[str]) -> ApiResult[list[AdvancedReading]]:
        """Read values with per-datapoint metadata"""
        try:
            response = await self._request(
                "POST", "/message/read-advanced", {"topics": list(topics)}
            )
            if not response.is_success:
                return ApiResult.fail(
                    f"Failed to read advanced data points. Status: {response.status_code}",
                    response.status_code,
                )
            return ApiResult.ok(
                [AdvancedReading.from_dict(r) for r in response.json() or []]
            )
        except httpx.HTTPError as e:
            self.logger.error(f"Error reading advanced data points: {e}")
            return ApiResult.fail(f"Network error: {e}")
        except DECODE_ERRORS as e:
            self.logger.error(f"Error reading advanced data points: {e}")
            return ApiResult.fail(f"Invalid response format: {e}")

    async def write(self, requests: Sequence[WriteRequest]) -> ApiResult[bool]:
        """Write a batch of values"""
        try:
            response = await self._request(
                "POST", "/message/write", [r.to_dict() for r in requests]
            )
            if response.is_success:
                self.logger.debug(f"Successfully wrote {len(requests)} data points")
                return ApiResult.ok(True)

            self.logger.error(f"Failed to write data points. Status: {response.status_code}")
            return ApiResult.fail(
                f"Failed to write data points. Status: {response.status_code}",
                response.status_code,
            )
        except httpx.HTTPError as e:
            self.logger.error(f"Error writing data points: {e}")
            return ApiResult.fail(f"Network error: {e}")

    async def subscribe(
        self,
        app_name: str,
        topics: Sequence[str],
        callback_url: str,
        include_optional: bool = False,
    ) -> ApiResult[bool]:
        """
        Subscribe to webhook notifications for topics.

        Only HTTP 201 (Created) counts as a successful subscription.
        """
        payload = {
            "callbackAPi": callback_url,
            "topics": list(topics),
            "includeOptional": include_optional,
        }
        try:
            response = await self._request(
                "POST", f"/message/subscription/{app_name}", payload
            )
            if response.status_code == httpx.codes.CREATED:
                self.logger.debug(
                    f"Webhook subscription successful for topics {', '.join(topics)} "
                    f"on {callback_url}"
                )
                return ApiResult.ok(True, response.status_code)

            self.logger.error(
                f"Failed to subscribe to topics {', '.join(topics)}. "
                f"Status: {response.status_code}"
            )
            return ApiResult.fail(
                f"Subscription failed. Status: {response.status_code}",
                response.status_code,
            )
        except httpx.HTTPError as e:
            self.logger.error(f"Error subscribing to topics: {e}")
            return ApiResult.fail(f"Network error: {e}")
