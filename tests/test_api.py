import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer as GatewayTestServer

from phoneconnect.config import AppConfig
from phoneconnect.errors import (
    DeviceOffline,
    GatewayError,
    GatewayUnreachable,
    InvalidPhoneNumber,
    Unauthorized,
)
from phoneconnect.gateway import GatewayClient, validate_phone

TOKEN = "secret-token"


def _authorized(request: web.Request) -> bool:
    return request.headers.get("Authorization") == f"Bearer {TOKEN}"


async def handle_call(request: web.Request) -> web.Response:
    if not _authorized(request):
        return web.json_response({"error": "Unauthorized"}, status=401)
    body = await request.json()
    if body["deviceId"] == "offline":
        return web.json_response({"ok": False, "reason": "Device not connected"}, status=404)
    if body["deviceId"] == "broken":
        return web.json_response({"ok": False, "reason": "Send failed"}, status=500)
    return web.json_response(
        {"ok": True, "commandId": "cmd-1", "deviceId": body["deviceId"]}
    )


async def handle_devices(request: web.Request) -> web.Response:
    if not _authorized(request):
        return web.json_response({"error": "Unauthorized"}, status=401)
    return web.json_response(
        {
            "count": 1,
            "devices": [{"deviceId": "android_fd9de1fb", "connectedAt": "2026-10-19T08:00:00Z"}],
        }
    )


async def handle_health(request: web.Request) -> web.Response:
    return web.json_response({"uptime": 12.5, "connectedDevices": 1})


@pytest_asyncio.fixture
async def gateway_url():
    app = web.Application()
    app.router.add_post("/call", handle_call)
    app.router.add_get("/devices", handle_devices)
    app.router.add_get("/health", handle_health)
    server = GatewayTestServer(app)
    await server.start_server()
    yield str(server.make_url("")).rstrip("/")
    await server.close()


def _config(url: str, token: str = TOKEN) -> AppConfig:
    return AppConfig(server_url=url, token=token)


@pytest.mark.parametrize("number", ["+919876543210", "9876543", "123456789012345"])
def test_valid_phone_numbers(number):
    validate_phone(number)


@pytest.mark.parametrize("number", ["", "+12345", "+91 98765 43210", "call-me", "1234567890123456"])
def test_invalid_phone_numbers(number):
    with pytest.raises(InvalidPhoneNumber):
        validate_phone(number)


@pytest.mark.asyncio
async def test_call_success(gateway_url):
    async with GatewayClient(_config(gateway_url)) as client:
        result = await client.call("android_fd9de1fb", "+919876543210")

    assert result.device_id == "android_fd9de1fb"
    assert result.command_id == "cmd-1"


@pytest.mark.asyncio
async def test_call_error_statuses(gateway_url):
    async with GatewayClient(_config(gateway_url)) as client:
        with pytest.raises(DeviceOffline) as exc_info:
            await client.call("offline", "+919876543210")
        assert exc_info.value.device_id == "offline"

        with pytest.raises(GatewayError) as exc_info:
            await client.call("broken", "+919876543210")
        assert exc_info.value.status == 500
        assert exc_info.value.body == "Send failed"


@pytest.mark.asyncio
async def test_bad_token(gateway_url):
    async with GatewayClient(_config(gateway_url, token="wrong")) as client:
        with pytest.raises(Unauthorized):
            await client.call("android_fd9de1fb", "+919876543210")
        with pytest.raises(Unauthorized):
            await client.devices()
        # /health does not need a token
        assert (await client.health())["connectedDevices"] == 1


@pytest.mark.asyncio
async def test_devices(gateway_url):
    async with GatewayClient(_config(gateway_url)) as client:
        resp = await client.devices()

    assert resp.count == 1
    assert resp.devices[0].device_id == "android_fd9de1fb"
    assert resp.devices[0].connected_at == "2026-10-19T08:00:00Z"


@pytest.mark.asyncio
async def test_unreachable_gateway(unused_tcp_port):
    async with GatewayClient(_config(f"http://127.0.0.1:{unused_tcp_port}")) as client:
        with pytest.raises(GatewayUnreachable):
            await client.health()


@pytest_asyncio.fixture
async def odd_gateway_url():
    async def list_body(request: web.Request) -> web.Response:
        return web.json_response(["not", "an", "object"])

    async def text_body(request: web.Request) -> web.Response:
        return web.Response(text="OK")

    app = web.Application()
    app.router.add_post("/call", list_body)
    app.router.add_get("/devices", list_body)
    app.router.add_get("/health", text_body)
    server = GatewayTestServer(app)
    await server.start_server()
    yield str(server.make_url("")).rstrip("/")
    await server.close()


@pytest.mark.asyncio
async def test_non_object_success_body_is_a_gateway_error(odd_gateway_url):
    async with GatewayClient(_config(odd_gateway_url)) as client:
        with pytest.raises(GatewayError) as exc_info:
            await client.call("android_fd9de1fb", "+919876543210")
        assert exc_info.value.status == 200
        assert "Unexpected response body" in exc_info.value.body

        with pytest.raises(GatewayError):
            await client.devices()
        with pytest.raises(GatewayError, match="Invalid JSON"):
            await client.health()
