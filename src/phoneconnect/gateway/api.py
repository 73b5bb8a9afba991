"""HTTP client for the PhoneConnect gateway.

Endpoints:
    POST /call     {"deviceId", "number"} -> {"ok", "commandId", "deviceId"}
    GET  /devices  -> {"count", "devices": [{"deviceId", "connectedAt"}]}
    GET  /health   -> {"uptime", "connectedDevices", ...}
"""

import logging
import re
from dataclasses import dataclass

import aiohttp

from ..config import AppConfig
from ..errors import (
    DeviceOffline,
    GatewayError,
    GatewayUnreachable,
    InvalidPhoneNumber,
    Unauthorized,
)

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10  # seconds

# E.164: optional '+', 7-15 digits
_PHONE_RE = re.compile(r"^\+?\d{7,15}$")


def validate_phone(number: str) -> None:
    """Raise InvalidPhoneNumber unless *number* looks like E.164."""
    if not _PHONE_RE.match(number):
        raise InvalidPhoneNumber(number)


@dataclass
class CallResult:
    device_id: str
    command_id: str


@dataclass
class DeviceInfo:
    device_id: str
    connected_at: str


@dataclass
class DevicesResponse:
    count: int
    devices: list[DeviceInfo]


async def _error_message(response: aiohttp.ClientResponse) -> str:
    """Pull the gateway's reason/error text out of a failed response."""
    try:
        body = await response.json(content_type=None)
    except (aiohttp.ContentTypeError, ValueError):
        return "Unknown error"
    if not isinstance(body, dict):
        return "Unknown error"
    return body.get("reason") or body.get("error") or "Unknown error"


async def _json_object(response: aiohttp.ClientResponse) -> dict:
    """Decode a successful response, which must be a JSON object."""
    try:
        body = await response.json(content_type=None)
    except ValueError as e:
        raise GatewayError(response.status, f"Invalid JSON in response: {e}") from e
    if not isinstance(body, dict):
        raise GatewayError(response.status, f"Unexpected response body: {body!r}")
    return body


class GatewayClient:
    """Talks to the gateway REST API.  Use as an async context manager."""

    def __init__(self, config: AppConfig, session: aiohttp.ClientSession | None = None):
        self._base_url = config.server_url.rstrip("/")
        self._token = config.token
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "GatewayClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT),
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    @property
    def _auth_headers(self) -> dict:
        return {"Authorization": f"Bearer {self._token}"}

    async def call(self, device_id: str, number: str) -> CallResult:
        """Send a CALL command to *device_id* for *number*."""
        url = f"{self._base_url}/call"
        logger.info("POST %s device=%s", url, device_id)
        try:
            async with self._session.post(
                url,
                json={"deviceId": device_id, "number": number},
                headers=self._auth_headers,
            ) as response:
                if response.status == 200:
                    body = await _json_object(response)
                    return CallResult(
                        device_id=body.get("deviceId") or device_id,
                        command_id=body.get("commandId") or "",
                    )
                if response.status == 401:
                    raise Unauthorized()
                if response.status == 404:
                    raise DeviceOffline(device_id)
                raise GatewayError(response.status, await _error_message(response))
        except aiohttp.ClientError as e:
            raise GatewayUnreachable(f"HTTP request failed: {e}") from e

    async def devices(self) -> DevicesResponse:
        """List devices currently connected to the gateway."""
        url = f"{self._base_url}/devices"
        try:
            async with self._session.get(url, headers=self._auth_headers) as response:
                if response.status == 200:
                    body = await _json_object(response)
                    devices = [
                        DeviceInfo(
                            device_id=d.get("deviceId", ""),
                            connected_at=d.get("connectedAt", ""),
                        )
                        for d in body.get("devices") or []
                        if isinstance(d, dict)
                    ]
                    return DevicesResponse(count=body.get("count", len(devices)), devices=devices)
                if response.status == 401:
                    raise Unauthorized()
                raise GatewayError(response.status, await response.text())
        except aiohttp.ClientError as e:
            raise GatewayUnreachable(f"HTTP request failed: {e}") from e

    async def health(self) -> dict:
        """Check that the gateway is reachable; returns its health document."""
        url = f"{self._base_url}/health"
        try:
            async with self._session.get(url) as response:
                if response.status != 200:
                    raise GatewayError(response.status, await response.text())
                return await _json_object(response)
        except aiohttp.ClientError as e:
            raise GatewayUnreachable(f"HTTP request failed: {e}") from e
