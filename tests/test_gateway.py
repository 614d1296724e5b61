"""Tests for the REST gateway against a mocked transport."""

import json

import httpx
import pytest

from common.config import AppConfig
from common.models import DataPointDefinition, DataType, WriteRequest
from common.topics import CPU_USAGE_TOPIC, SERVER_UP_TOPIC
from services.gateway import RestGateway


@pytest.fixture
def api_config():
    return AppConfig(base_url="http://hcc2:7071", uri_prefix="/api/v1")


@pytest.fixture
async def make_gateway(api_config, log_context):
    gateways = []

    def _make(handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        gw = RestGateway(api_config, log_context, client=client)
        gateways.append(gw)
        return gw

    yield _make

    for gw in gateways:
        await gw.close()


def points(*topics):
    return [
        DataPointDefinition(t, t.title(), DataType.DOUBLE, short_display_name="dp_00001")
        for t in topics
    ]


def registration_response(items, status_code=200, msg=""):
    return httpx.Response(
        status_code, json={"content": json.dumps(items), "msg": msg}
    )


@pytest.mark.asyncio
async def test_server_status_reads_core_up_topic(make_gateway):
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=[{"topic": SERVER_UP_TOPIC, "value": True}])

    result = await make_gateway(handler).check_server_status()

    assert result.success and result.data is True
    assert seen["path"] == "/api/v1/message/read"
    assert seen["body"] == {"topics": [SERVER_UP_TOPIC], "includeOptional": False}


@pytest.mark.asyncio
async def test_server_status_non_boolean_value_is_not_up(make_gateway):
    result = await make_gateway(
        lambda request: httpx.Response(200, json=[{"topic": SERVER_UP_TOPIC, "value": "yes"}])
    ).check_server_status()

    assert result.success
    assert result.data is False


@pytest.mark.asyncio
async def test_transport_failure_has_no_status_code(make_gateway):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = await make_gateway(handler).check_server_status()

    assert not result.success
    assert result.status_code is None
    assert "Network error" in result.error_message


@pytest.mark.asyncio
async def test_http_error_status_is_reported(make_gateway):
    result = await make_gateway(lambda request: httpx.Response(503)).define_app("app")

    assert not result.success
    assert result.status_code == 503


@pytest.mark.asyncio
async def test_register_data_points_maps_topics_to_fqns(make_gateway):
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return registration_response([
            {"Result": "Success", "Guid": "g1", "FullDataPointName": "live.app.a.", "Messages": []},
            {"Result": "Success", "Guid": "g2", "FullDataPointName": "live.app.b.", "Messages": []},
        ])

    result = await make_gateway(handler).register_data_points("app", points("a", "b"), "general")

    assert result.success
    assert result.data == {"a": "live.app.a.", "b": "live.app.b."}
    assert seen["method"] == "PUT"
    assert seen["path"] == "/api/v1/app-creator/app/datapoint/general"
    assert [t["topic"] for t in seen["body"]["tagsList"]] == ["a", "b"]


@pytest.mark.asyncio
async def test_register_data_points_omits_points_without_fqn(make_gateway):
    def handler(request):
        return registration_response([
            {"Result": "Success", "FullDataPointName": "live.app.a."},
            {"Result": "Warning", "FullDataPointName": None},
        ])

    result = await make_gateway(handler).register_data_points("app", points("a", "b"), "config")

    assert result.success
    assert result.data == {"a": "live.app.a."}


@pytest.mark.asyncio
async def test_register_data_points_missing_content_fails(make_gateway):
    result = await make_gateway(
        lambda request: httpx.Response(200, json={"msg": "ok"})
    ).register_data_points("app", points("a"), "config")

    assert not result.success
    assert result.status_code is None


@pytest.mark.asyncio
async def test_register_data_points_error_aggregates_validation_messages(make_gateway):
    def handler(request):
        return registration_response(
            [{
                "Result": "Error",
                "FullDataPointName": None,
                "Messages": [{
                    "Type": "Error",
                    "DisplayField": "displayName",
                    "Message": "value too long",
                }],
            }],
            status_code=400,
            msg="Validation failed",
        )

    result = await make_gateway(handler).register_data_points("app", points("a"), "general")

    assert not result.success
    assert result.status_code == 400
    assert "Validation failed" in result.error_message
    assert "Error in displayName - value too long" in result.error_message


@pytest.mark.asyncio
async def test_register_app_is_not_complex_provisioned(make_gateway):
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        return httpx.Response(200)

    result = await make_gateway(handler).register_app("app")

    assert result.success
    assert seen["path"] == "/api/v1/app-registration/app"
    assert seen["params"] == {"isComplexProvisioned": "false"}


@pytest.mark.asyncio
async def test_heartbeat_body(make_gateway):
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(200)

    result = await make_gateway(handler).send_heartbeat("app", True)

    assert result.success
    assert seen == {"method": "PUT", "body": {"isUp": True}}


@pytest.mark.asyncio
async def test_provision_status(make_gateway):
    result = await make_gateway(
        lambda request: httpx.Response(200, json={"hasNewConfig": True})
    ).check_provision_status("app")

    assert result.success
    assert result.data.has_new_config is True


@pytest.mark.asyncio
async def test_provision_status_garbage_body_fails(make_gateway):
    result = await make_gateway(
        lambda request: httpx.Response(200, content=b"<html>")
    ).check_provision_status("app")

    assert not result.success
    assert result.status_code is None


@pytest.mark.asyncio
async def test_read_advanced_decodes_datapoints(make_gateway):
    body = [{
        "topic": CPU_USAGE_TOPIC,
        "msgSource": "Core",
        "datapoints": [{"dataPointName": "total.", "quality": 192, "timeStamps": ["1"], "values": [17.5]}],
    }]

    result = await make_gateway(
        lambda request: httpx.Response(200, json=body)
    ).read_advanced([CPU_USAGE_TOPIC])

    assert result.success
    assert result.data[0].find("total.").first_value() == 17.5


@pytest.mark.asyncio
async def test_write_posts_a_list(make_gateway):
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200)

    result = await make_gateway(handler).write([WriteRequest("t", 1, "1700000000000")])

    assert result.success
    assert seen["body"] == [
        {"topic": "t", "value": 1, "msgSource": "REST", "quality": 192, "timeStamp": "1700000000000"}
    ]


@pytest.mark.asyncio
async def test_subscribe_requires_created(make_gateway):
    seen = {}

    def created(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201)

    result = await make_gateway(created).subscribe("app", ["t1", "t2"], "http://cb/simple_message")

    assert result.success
    assert seen["path"] == "/api/v1/message/subscription/app"
    assert seen["body"] == {
        "callbackAPi": "http://cb/simple_message",
        "topics": ["t1", "t2"],
        "includeOptional": False,
    }

    result = await make_gateway(lambda request: httpx.Response(200)).subscribe(
        "app", ["t1"], "http://cb"
    )
    assert not result.success
    assert result.status_code == 200
