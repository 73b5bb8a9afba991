"""Gateway REST client and LAN discovery."""

from .api import CallResult, DeviceInfo, DevicesResponse, GatewayClient, validate_phone
from .discovery import DiscoveredGateway, discover_gateway

__all__ = [
    "CallResult",
    "DeviceInfo",
    "DevicesResponse",
    "DiscoveredGateway",
    "GatewayClient",
    "discover_gateway",
    "validate_phone",
]
