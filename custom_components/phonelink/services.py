"""Services for the PhoneLink integration."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import voluptuous as vol
from homeassistant.core import (
    HomeAssistant,
    ServiceCall,
    ServiceResponse,
    SupportsResponse,
)
from homeassistant.exceptions import HomeAssistantError, ServiceValidationError
from homeassistant.helpers import (
    config_validation as cv,
    device_registry as dr,
    entity_registry as er,
)

from .api_client import PhoneLinkAPIError
from .const import (
    DOMAIN,
    SERVICE_GET_CONVERSATION_URI,
    SERVICE_HANDLE_PACKET,
    SERVICE_MUTE_CALL,
    SERVICE_OPEN_SMS,
    SERVICE_OPEN_URI,
    SERVICE_REPLY_MISSED_CALL,
    SERVICE_REPLY_SMS,
    SERVICE_SEND_SMS,
    SERVICE_SHARE_URI,
    TelephonyEventKind,
)
from .coordinator import PhoneLinkDataUpdateCoordinator
from .dialing import clean_phone_number
from .sms_uri import parse_sms_uri

_LOGGER = logging.getLogger(__name__)

# Service schemas


def _service_schema(schema: Any) -> vol.Schema:
    """Allow standard service fields while tolerating target selectors."""

    return vol.Schema(schema, extra=vol.ALLOW_EXTRA)


DEVICE_ONLY_SCHEMA = _service_schema({})

HANDLE_PACKET_SCHEMA = _service_schema(
    {
        vol.Required("event"): cv.string,
        vol.Required("phoneNumber"): cv.string,
        vol.Optional("contactName"): vol.Any(None, cv.string),
        vol.Optional("messageBody"): vol.Any(None, cv.string),
        vol.Optional("phoneThumbnail"): cv.string,
        vol.Optional("isCancel", default=False): cv.boolean,
    }
)

SEND_SMS_SCHEMA = _service_schema(
    {
        vol.Required("phone_number"): cv.string,
        vol.Required("message_body"): cv.string,
    }
)

REPLY_MISSED_CALL_SCHEMA = _service_schema(
    {
        vol.Required("phone_number"): cv.string,
        vol.Optional("contact_name", default=""): cv.string,
        vol.Required("time"): vol.Coerce(int),
    }
)

REPLY_SMS_SCHEMA = _service_schema(
    {
        vol.Required("phone_number"): cv.string,
        vol.Optional("contact_name", default=""): cv.string,
        vol.Required("message_body"): cv.string,
        vol.Required("time"): vol.Coerce(int),
    }
)

SHARE_URI_SCHEMA = _service_schema({vol.Required("url"): cv.string})

OPEN_URI_SCHEMA = _service_schema({vol.Required("uri"): cv.string})

GET_CONVERSATION_URI_SCHEMA = _service_schema(
    {vol.Required("phone_number"): cv.string}
)


# Target resolution helpers


def _extract_ids(value: Any) -> set[str]:
    """Normalize a target value into a set of string IDs."""
    if not value:
        return set()
    if isinstance(value, str):
        return {value}
    return {item for item in value if isinstance(item, str)}


@dataclass(slots=True)
class ServiceDeviceContext:
    """Resolved context for a PhoneLink device targeted by a service."""

    hass_device_id: str
    coordinator: PhoneLinkDataUpdateCoordinator

    @property
    def phonelink_device_id(self) -> str:
        return self.coordinator.device_info.device_id


def _resolve_target_device_contexts(call: ServiceCall) -> list[ServiceDeviceContext]:
    """Resolve targeted devices for a service call."""

    hass = call.hass
    raw_target: dict[str, Any] = {}

    for source in (getattr(call, "target", None), call.data.get("target"), call.data):
        if isinstance(source, Mapping):
            for key in ("device_id", "entity_id"):
                if source.get(key) is not None:
                    raw_target[key] = source[key]

    device_registry = dr.async_get(hass)
    entity_registry = er.async_get(hass)

    try:
        device_ids = _extract_ids(
            [cv.string(value) for value in cv.ensure_list(raw_target.get("device_id"))]
        )
        entity_ids = _extract_ids(
            [cv.entity_id(value) for value in cv.ensure_list(raw_target.get("entity_id"))]
        )
    except vol.Invalid as err:
        raise ServiceValidationError(
            f"Invalid target for service '{call.service}': {err}"
        ) from err

    for entity_id in entity_ids:
        if entry := entity_registry.async_get(entity_id):
            if entry.device_id:
                device_ids.add(entry.device_id)

    if not device_ids:
        raise ServiceValidationError(
            f"Service '{call.service}' requires targeting at least one PhoneLink device."
        )

    contexts: list[ServiceDeviceContext] = []
    for hass_device_id in device_ids:
        device_entry = device_registry.async_get(hass_device_id)
        if not device_entry:
            raise ServiceValidationError(f"Device {hass_device_id} not found")

        coordinator: PhoneLinkDataUpdateCoordinator | None = None
        for entry_id in device_entry.config_entries:
            config_entry = hass.config_entries.async_get_entry(entry_id)
            if config_entry and config_entry.domain == DOMAIN:
                runtime = getattr(config_entry, "runtime_data", None)
                if isinstance(runtime, PhoneLinkDataUpdateCoordinator):
                    coordinator = runtime
                    break

        if coordinator is None:
            raise ServiceValidationError(
                f"Device {hass_device_id} is not associated with an active PhoneLink integration"
            )

        contexts.append(
            ServiceDeviceContext(hass_device_id=hass_device_id, coordinator=coordinator)
        )

    contexts.sort(key=lambda ctx: ctx.phonelink_device_id)
    return contexts


def _require_single_device_context(call: ServiceCall) -> ServiceDeviceContext:
    """Return exactly one targeted device context or raise."""

    contexts = _resolve_target_device_contexts(call)
    if len(contexts) != 1:
        raise ServiceValidationError(
            f"Service '{call.service}' supports exactly one PhoneLink device at a time."
        )
    return contexts[0]


def _require_phone_number(raw_value: Any, field_name: str = "phone_number") -> str:
    number = clean_phone_number(raw_value)
    if not number:
        raise ServiceValidationError(f"{field_name} must contain at least one digit")
    return number


async def async_setup_services(hass: HomeAssistant) -> None:
    """Set up services for PhoneLink integration."""

    async def async_handle_packet(call: ServiceCall) -> ServiceResponse:
        context = _require_single_device_context(call)
        body = {
            key: call.data[key]
            for key in (
                "event",
                "phoneNumber",
                "contactName",
                "messageBody",
                "phoneThumbnail",
                "isCancel",
            )
            if key in call.data
        }

        if body["event"] == TelephonyEventKind.SMS and body.get("messageBody") is None:
            raise ServiceValidationError("messageBody is required for sms events")

        outcome = await context.coordinator.async_handle_packet(body)
        return {
            "accepted": outcome.accepted,
            "reason": str(outcome.reason) if outcome.reason else None,
            "notification": (
                outcome.notification.to_dict() if outcome.notification else None
            ),
            "withdrawn": list(outcome.withdrawn),
            "audio_state": str(outcome.audio_state) if outcome.audio_state else None,
        }

    async def async_mute_call(call: ServiceCall) -> None:
        context = _require_single_device_context(call)

        try:
            await context.coordinator.async_mute_call()
        except PhoneLinkAPIError as err:
            raise HomeAssistantError(f"Failed to mute call: {err}") from err

    async def async_send_sms(call: ServiceCall) -> None:
        context = _require_single_device_context(call)
        number = _require_phone_number(call.data["phone_number"])

        try:
            await context.coordinator.telephony.async_send_sms(
                number, call.data["message_body"]
            )
        except PhoneLinkAPIError as err:
            raise HomeAssistantError(f"Failed to send SMS to {number}: {err}") from err

    async def async_reply_missed_call(call: ServiceCall) -> None:
        context = _require_single_device_context(call)
        context.coordinator.telephony.reply_missed_call(
            _require_phone_number(call.data["phone_number"]),
            call.data.get("contact_name"),
            call.data["time"],
        )

    async def async_reply_sms(call: ServiceCall) -> None:
        context = _require_single_device_context(call)
        context.coordinator.telephony.reply_sms(
            _require_phone_number(call.data["phone_number"]),
            call.data.get("contact_name"),
            call.data["message_body"],
            call.data["time"],
        )

    async def async_open_sms(call: ServiceCall) -> None:
        context = _require_single_device_context(call)
        context.coordinator.telephony.open_sms()

    async def async_share_uri(call: ServiceCall) -> None:
        context = _require_single_device_context(call)
        context.coordinator.telephony.share_uri(call.data["url"])

    async def async_open_uri(call: ServiceCall) -> None:
        context = _require_single_device_context(call)
        result = parse_sms_uri(call.data["uri"])
        if not result.ok:
            raise ServiceValidationError(f"Invalid sms URI: {result.error}")
        context.coordinator.telephony.open_uri(result.uri)

    async def async_get_conversation_uri(call: ServiceCall) -> ServiceResponse:
        context = _require_single_device_context(call)
        telephony = context.coordinator.telephony
        conversation = telephony.conversations.find_conversation(
            telephony.device_id, call.data["phone_number"]
        )
        if conversation is None:
            raise ServiceValidationError(
                f"No open conversation with {call.data['phone_number']}"
            )
        return {"uri": telephony.conversation_uri(conversation)}

    services_config = [
        (SERVICE_HANDLE_PACKET, async_handle_packet, HANDLE_PACKET_SCHEMA),
        (SERVICE_MUTE_CALL, async_mute_call, DEVICE_ONLY_SCHEMA),
        (SERVICE_SEND_SMS, async_send_sms, SEND_SMS_SCHEMA),
        (SERVICE_REPLY_MISSED_CALL, async_reply_missed_call, REPLY_MISSED_CALL_SCHEMA),
        (SERVICE_REPLY_SMS, async_reply_sms, REPLY_SMS_SCHEMA),
        (SERVICE_OPEN_SMS, async_open_sms, DEVICE_ONLY_SCHEMA),
        (SERVICE_SHARE_URI, async_share_uri, SHARE_URI_SCHEMA),
        (SERVICE_OPEN_URI, async_open_uri, OPEN_URI_SCHEMA),
        (
            SERVICE_GET_CONVERSATION_URI,
            async_get_conversation_uri,
            GET_CONVERSATION_URI_SCHEMA,
        ),
    ]

    for service_name, service_func, schema in services_config:
        supports_response = (
            SupportsResponse.OPTIONAL
            if service_name in (SERVICE_HANDLE_PACKET, SERVICE_GET_CONVERSATION_URI)
            else SupportsResponse.NONE
        )

        hass.services.async_register(
            DOMAIN,
            service_name,
            service_func,
            schema=schema,
            supports_response=supports_response,
        )

    _LOGGER.info("PhoneLink services registered successfully")


async def async_unload_services(hass: HomeAssistant) -> None:
    """Unload services for PhoneLink integration."""
    services_to_remove = [
        SERVICE_HANDLE_PACKET,
        SERVICE_MUTE_CALL,
        SERVICE_SEND_SMS,
        SERVICE_REPLY_MISSED_CALL,
        SERVICE_REPLY_SMS,
        SERVICE_OPEN_SMS,
        SERVICE_SHARE_URI,
        SERVICE_OPEN_URI,
        SERVICE_GET_CONVERSATION_URI,
    ]

    for service_name in services_to_remove:
        hass.services.async_remove(DOMAIN, service_name)

    _LOGGER.info("PhoneLink services unloaded successfully")
