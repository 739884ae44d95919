"""Config flow for PhoneLink integration."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlparse

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.const import CONF_HOST, CONF_NAME, CONF_PORT
from homeassistant.core import HomeAssistant, callback
from homeassistant.data_entry_flow import FlowResult
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv

from .api_client import PhoneLinkAPIClient, PhoneLinkAPIError
from .const import (
    CONF_ALLOW_CALLS,
    CONF_ALLOW_SMS,
    CONF_DEDUP_CAPACITY,
    CONF_DEDUP_TTL_SECONDS,
    CONF_DEVICE_ID,
    DEDUP_CAPACITY_DEFAULT,
    DEDUP_TTL_SECONDS_DEFAULT,
    DEFAULT_NAME,
    DEFAULT_PORT,
    DOMAIN,
)

_LOGGER = logging.getLogger(__name__)

STEP_USER_DATA_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_HOST): str,
        vol.Optional(CONF_PORT, default=DEFAULT_PORT): vol.Coerce(int),
        vol.Optional(CONF_NAME): str,
        vol.Optional(CONF_DEVICE_ID): str,
    }
)


class PhoneLinkConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for PhoneLink."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Handle the initial step."""
        errors: dict[str, str] = {}

        if user_input is not None:
            try:
                info = await validate_input(self.hass, user_input)
            except CannotConnect:
                errors["base"] = "cannot_connect"
            except InvalidHost:
                errors["base"] = "invalid_host"
            except MissingDeviceId:
                errors["base"] = "missing_device_id"
            else:
                await self.async_set_unique_id(info[CONF_DEVICE_ID])
                self._abort_if_unique_id_configured()
                return self.async_create_entry(
                    title=info["title"],
                    data={
                        CONF_HOST: info[CONF_HOST],
                        CONF_PORT: info[CONF_PORT],
                        CONF_DEVICE_ID: info[CONF_DEVICE_ID],
                    },
                )

        return self.async_show_form(
            step_id="user", data_schema=STEP_USER_DATA_SCHEMA, errors=errors
        )

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> PhoneLinkOptionsFlow:
        """Create the options flow."""
        return PhoneLinkOptionsFlow()


async def validate_input(hass: HomeAssistant, data: dict[str, Any]) -> dict[str, Any]:
    """Validate the user input allows us to reach the phone.

    The device id and name entered by the user win over the identity the
    phone reports; the identity is only required when no id was entered.
    """
    host = (data.get(CONF_HOST) or "").strip()
    port = data.get(CONF_PORT, DEFAULT_PORT)

    if not host:
        raise InvalidHost("Host cannot be empty")

    if "://" in host:
        parsed = urlparse(host)
        if not parsed.hostname:
            raise InvalidHost(f"Invalid host format: {host}")
        host = parsed.hostname
        if parsed.port:
            port = parsed.port

    device_id = (data.get(CONF_DEVICE_ID) or "").strip()
    name = (data.get(CONF_NAME) or "").strip()

    if not device_id:
        client = PhoneLinkAPIClient(hass, host, port)
        try:
            identity = await client.get_identity()
        except PhoneLinkAPIError as err:
            raise CannotConnect(str(err)) from err

        device_id = str(identity.get("deviceId") or "")
        if not device_id:
            raise MissingDeviceId("No device ID found in identity response")
        name = name or identity.get("deviceName") or ""

    return {
        "title": name or DEFAULT_NAME,
        CONF_DEVICE_ID: device_id,
        CONF_HOST: host,
        CONF_PORT: port,
    }


class CannotConnect(HomeAssistantError):
    """Error to indicate we cannot connect."""


class InvalidHost(HomeAssistantError):
    """Error to indicate the host is invalid."""


class MissingDeviceId(HomeAssistantError):
    """Error to indicate the phone did not report a device id."""


class PhoneLinkOptionsFlow(config_entries.OptionsFlow):
    """Handle PhoneLink options: telephony permissions and deduplication."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Manage the options."""
        if user_input is not None:
            return self.async_create_entry(title="", data=user_input)

        return self.async_show_form(
            step_id="init",
            data_schema=self._get_options_schema(),
        )

    def _get_options_schema(self) -> vol.Schema:
        current_options = self.config_entry.options

        return vol.Schema(
            {
                vol.Required(
                    CONF_ALLOW_CALLS,
                    default=current_options.get(CONF_ALLOW_CALLS, True),
                ): cv.boolean,
                vol.Required(
                    CONF_ALLOW_SMS,
                    default=current_options.get(CONF_ALLOW_SMS, True),
                ): cv.boolean,
                vol.Required(
                    CONF_DEDUP_TTL_SECONDS,
                    default=current_options.get(
                        CONF_DEDUP_TTL_SECONDS, DEDUP_TTL_SECONDS_DEFAULT
                    ),
                ): vol.All(vol.Coerce(int), vol.Range(min=10, max=86400)),
                vol.Required(
                    CONF_DEDUP_CAPACITY,
                    default=current_options.get(
                        CONF_DEDUP_CAPACITY, DEDUP_CAPACITY_DEFAULT
                    ),
                ): vol.All(vol.Coerce(int), vol.Range(min=16, max=4096)),
            }
        )
