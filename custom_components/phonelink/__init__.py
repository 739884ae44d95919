"""The PhoneLink integration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_HOST, CONF_PORT, Platform
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryNotReady, HomeAssistantError
from homeassistant.helpers.device_registry import DeviceInfo

from .api_client import PhoneLinkAPIClient
from .const import (
    CONF_DEVICE_ID,
    DEFAULT_PORT,
    DOMAIN,
    HA_EVENT_CONVERSATION_PRESENTED,
    HA_EVENT_SHARE_REQUESTED,
    MANUFACTURER,
    MODEL,
)
from .contacts import ContactStore
from .conversations import ConversationRegistry
from .coordinator import PhoneLinkDataUpdateCoordinator
from .models import DeviceInfo as PhoneLinkDeviceInfo
from .services import async_setup_services, async_unload_services

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[Platform] = [
    Platform.SENSOR,
    Platform.BUTTON,
]

DATA_CONVERSATIONS = "conversations"

if TYPE_CHECKING:
    PhoneLinkConfigEntry = ConfigEntry[PhoneLinkDataUpdateCoordinator]
else:
    PhoneLinkConfigEntry = ConfigEntry


def _get_conversation_registry(hass: HomeAssistant) -> ConversationRegistry:
    """Return the registry of open conversations shared by all devices."""
    domain_data: dict[str, Any] = hass.data.setdefault(DOMAIN, {})
    registry = domain_data.get(DATA_CONVERSATIONS)
    if registry is None:

        def _on_present(kind: str, payload: dict[str, Any]) -> None:
            event_type = (
                HA_EVENT_SHARE_REQUESTED if kind == "share" else HA_EVENT_CONVERSATION_PRESENTED
            )
            hass.bus.async_fire(event_type, payload)

        registry = ConversationRegistry(on_present=_on_present)
        domain_data[DATA_CONVERSATIONS] = registry
    return registry


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up PhoneLink from a config entry."""
    _LOGGER.debug("Setting up PhoneLink integration for %s", entry.title)

    host = entry.data[CONF_HOST]
    port = entry.data.get(CONF_PORT, DEFAULT_PORT)
    device_id = entry.data[CONF_DEVICE_ID]

    device_info = PhoneLinkDeviceInfo(
        device_id=device_id,
        host=host,
        port=port,
        name=entry.title,
    )

    contacts = ContactStore(hass, device_id)
    try:
        await contacts.async_initialize()
    except HomeAssistantError as err:
        _LOGGER.error("Failed to load contacts for %s: %s", device_id, err)
        raise ConfigEntryNotReady(f"Cannot load contacts: {err}") from err

    coordinator = PhoneLinkDataUpdateCoordinator(
        hass,
        entry,
        PhoneLinkAPIClient(hass, host, port),
        device_info,
        contacts,
        _get_conversation_registry(hass),
    )
    entry.runtime_data = coordinator

    if not hass.services.has_service(DOMAIN, "handle_packet"):
        await async_setup_services(hass)

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    entry.async_on_unload(entry.add_update_listener(async_reload_entry))

    _LOGGER.info("PhoneLink device %s (%s:%s) ready", device_id, host, port)
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    _LOGGER.debug("Unloading PhoneLink integration for %s", entry.title)

    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

    if unload_ok:
        coordinator: PhoneLinkDataUpdateCoordinator | None = entry.runtime_data
        if coordinator is not None:
            await coordinator.async_shutdown()

        remaining_entries = [
            e
            for e in hass.config_entries.async_entries(DOMAIN)
            if e.entry_id != entry.entry_id
        ]
        if not remaining_entries:
            await async_unload_services(hass)
            hass.data.pop(DOMAIN, None)

    return unload_ok


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload config entry when its options change."""
    await hass.config_entries.async_reload(entry.entry_id)


def get_device_info(device_info: PhoneLinkDeviceInfo) -> DeviceInfo:
    """Get Home Assistant device info from PhoneLink device info."""
    return DeviceInfo(
        identifiers={(DOMAIN, device_info.device_id)},
        name=device_info.name,
        manufacturer=MANUFACTURER,
        model=MODEL,
    )
