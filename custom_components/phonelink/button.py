"""Button platform for PhoneLink integration."""

from __future__ import annotations

import logging

from homeassistant.components.button import ButtonEntity, ButtonEntityDescription
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from . import PhoneLinkConfigEntry, get_device_info
from .api_client import PhoneLinkAPIError
from .const import CallAudioState
from .coordinator import PhoneLinkDataUpdateCoordinator
from .models import DeviceInfo

_LOGGER = logging.getLogger(__name__)

BUTTON_DESCRIPTIONS = (
    ButtonEntityDescription(
        key="mute_call",
        name="Call - Mute Ringing",
        icon="mdi:bell-off",
    ),
    ButtonEntityDescription(
        key="open_sms",
        name="SMS - New Conversation",
        icon="mdi:message-plus",
    ),
)


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: PhoneLinkConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up PhoneLink button entities from a config entry."""
    coordinator = config_entry.runtime_data
    device_info = coordinator.device_info

    async_add_entities(
        PhoneLinkButton(coordinator, description, device_info)
        for description in BUTTON_DESCRIPTIONS
    )


class PhoneLinkButton(CoordinatorEntity[PhoneLinkDataUpdateCoordinator], ButtonEntity):
    """Representation of a PhoneLink button."""

    def __init__(
        self,
        coordinator: PhoneLinkDataUpdateCoordinator,
        description: ButtonEntityDescription,
        device_info: DeviceInfo,
    ) -> None:
        """Initialize the button."""
        super().__init__(coordinator)
        self.entity_description = description

        self._attr_unique_id = f"{device_info.device_id}_{description.key}"
        self._attr_device_info = get_device_info(device_info)

    async def async_press(self) -> None:
        """Handle the button press."""
        key = self.entity_description.key
        try:
            if key == "mute_call":
                await self._mute_call()
            elif key == "open_sms":
                self.coordinator.telephony.open_sms()
        except PhoneLinkAPIError as err:
            raise HomeAssistantError(f"Failed to execute {self.name}: {err}") from err

    async def _mute_call(self) -> None:
        """Silence the ringing phone."""
        if self.coordinator.data.audio_state != CallAudioState.RINGING:
            _LOGGER.debug("Mute pressed while %s", self.coordinator.data.audio_state)
        await self.coordinator.async_mute_call()
