"""Sensor platform for PhoneLink integration."""

from __future__ import annotations

from typing import Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import EntityCategory
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.typing import StateType
from homeassistant.helpers.update_coordinator import CoordinatorEntity
from homeassistant.util import dt as dt_util

from . import PhoneLinkConfigEntry, get_device_info
from .const import CallAudioState
from .coordinator import PhoneLinkDataUpdateCoordinator
from .models import DeviceInfo, PhoneLinkState

SENSOR_DESCRIPTIONS = (
    SensorEntityDescription(
        key="call_audio_state",
        name="Call Audio State",
        icon="mdi:volume-source",
        device_class=SensorDeviceClass.ENUM,
        options=[str(state) for state in CallAudioState],
    ),
    SensorEntityDescription(
        key="last_event",
        name="Last Telephony Event",
        icon="mdi:phone-log",
    ),
    SensorEntityDescription(
        key="events_handled",
        name="Telephony Events Handled",
        icon="mdi:counter",
        state_class=SensorStateClass.TOTAL_INCREASING,
        entity_category=EntityCategory.DIAGNOSTIC,
    ),
    SensorEntityDescription(
        key="events_rejected",
        name="Telephony Events Rejected",
        icon="mdi:phone-cancel",
        state_class=SensorStateClass.TOTAL_INCREASING,
        entity_category=EntityCategory.DIAGNOSTIC,
    ),
)


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: PhoneLinkConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up PhoneLink sensor entities from a config entry."""
    coordinator = config_entry.runtime_data
    device_info = coordinator.device_info

    async_add_entities(
        PhoneLinkSensor(coordinator, description, device_info)
        for description in SENSOR_DESCRIPTIONS
    )


class PhoneLinkSensor(CoordinatorEntity[PhoneLinkDataUpdateCoordinator], SensorEntity):
    """Representation of a PhoneLink sensor."""

    def __init__(
        self,
        coordinator: PhoneLinkDataUpdateCoordinator,
        description: SensorEntityDescription,
        device_info: DeviceInfo,
    ) -> None:
        """Initialize the sensor."""
        super().__init__(coordinator)
        self.entity_description = description

        self._attr_unique_id = f"{device_info.device_id}_{description.key}"
        self._attr_device_info = get_device_info(device_info)

    @property
    def native_value(self) -> StateType:
        """Return the state of the sensor."""
        state: PhoneLinkState = self.coordinator.data
        key = self.entity_description.key

        if key == "call_audio_state":
            return str(state.audio_state)
        if key == "last_event":
            return str(state.last_event.kind) if state.last_event else None
        if key == "events_handled":
            return state.events_handled
        if key == "events_rejected":
            return state.events_rejected
        return None

    @property
    def extra_state_attributes(self) -> dict[str, Any] | None:
        """Return extra state attributes."""
        if self.entity_description.key != "last_event":
            return None

        state: PhoneLinkState = self.coordinator.data
        event = state.last_event
        if event is None:
            return None

        attributes = event.to_ha_event_data()
        attributes["received_at"] = dt_util.utc_from_timestamp(event.time).isoformat()
        attributes["icon_ref"] = str(event.icon)

        outcome = state.last_outcome
        if outcome is not None:
            attributes["accepted"] = outcome.accepted
            if outcome.reason:
                attributes["rejection_reason"] = str(outcome.reason)
            if outcome.notification:
                attributes["notification_id"] = outcome.notification.notification_id

        return attributes

    @property
    def icon(self) -> str | None:
        """Return icon, following the last event's default icon."""
        if self.entity_description.key == "last_event":
            event = self.coordinator.data.last_event
            if event is not None and event.icon.name:
                return event.icon.name
        return super().icon
