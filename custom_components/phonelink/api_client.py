"""API client for communication with the paired phone."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from typing import Any

import aiohttp
from homeassistant.core import HomeAssistant
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from .const import API_IDENTITY, API_PACKET, DEFAULT_PORT

_LOGGER = logging.getLogger(__name__)


class PhoneLinkAPIError(Exception):
    """Exception for API errors."""

    def __init__(self, message: str, error_code: str | None = None) -> None:
        """Initialize API error."""
        super().__init__(message)
        self.error_code = error_code


class PhoneLinkAPIClient:
    """Client for the paired phone's packet endpoint."""

    def __init__(self, hass: HomeAssistant, host: str, port: int = DEFAULT_PORT) -> None:
        """Initialize API client."""
        self._hass = hass
        self._host = host
        self._port = port
        self._base_url = f"http://{host}:{port}"
        self._session = async_get_clientsession(hass)
        self._request_timeout = 10.0
        self._packet_id = 0

    @property
    def base_url(self) -> str:
        """Get base URL for the device."""
        return self._base_url

    async def _request(
        self, method: str, endpoint: str, data: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        """Make HTTP request to device."""
        url = f"{self._base_url}{endpoint}"

        try:
            async with asyncio.timeout(self._request_timeout):
                if method.upper() == "GET":
                    async with self._session.get(url) as response:
                        return await self._handle_response(response, endpoint)
                elif method.upper() == "POST":
                    async with self._session.post(url, json=dict(data or {})) as response:
                        return await self._handle_response(response, endpoint)
                else:
                    raise ValueError(f"Unsupported HTTP method: {method}")

        except asyncio.TimeoutError as err:
            _LOGGER.error("Timeout connecting to device at %s", url)
            raise PhoneLinkAPIError("Connection timeout") from err
        except aiohttp.ClientError as err:
            _LOGGER.error("Client error connecting to device: %s", err)
            raise PhoneLinkAPIError(f"Connection error: {err}") from err

    async def _handle_response(
        self, response: aiohttp.ClientResponse, endpoint: str
    ) -> dict[str, Any]:
        """Handle HTTP response from device."""
        try:
            response_data = await response.json(content_type=None)
        except (json.JSONDecodeError, aiohttp.ContentTypeError) as err:
            _LOGGER.error("Invalid JSON response from %s: %s", endpoint, err)
            raise PhoneLinkAPIError("Invalid JSON response") from err

        if not isinstance(response_data, dict):
            response_data = {}

        if response.status != 200:
            error_msg = response_data.get("message", f"HTTP {response.status}")
            raise PhoneLinkAPIError(error_msg, response_data.get("errorCode"))

        if not response_data.get("success", True):
            error_msg = response_data.get("message", "Unknown device error")
            raise PhoneLinkAPIError(error_msg, response_data.get("errorCode"))

        return response_data

    async def get_identity(self) -> dict[str, Any]:
        """Return the device identity (id, name)."""
        response = await self._request("GET", API_IDENTITY)
        return response.get("data", response)

    async def async_send_packet(self, packet_type: str, body: Mapping[str, Any]) -> None:
        """Post a packet to the device."""
        self._packet_id += 1
        packet = {"id": self._packet_id, "type": packet_type, "body": dict(body)}
        _LOGGER.debug("Sending %s packet to %s", packet_type, self._host)
        await self._request("POST", API_PACKET, packet)
