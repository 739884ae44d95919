"""Coordinator holding the runtime state of a paired phone."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator

from .api_client import PhoneLinkAPIClient
from .audio import CallAudioStateMachine
from .const import (
    CONF_ALLOW_CALLS,
    CONF_ALLOW_SMS,
    CONF_DEDUP_CAPACITY,
    CONF_DEDUP_TTL_SECONDS,
    DEDUP_CAPACITY_DEFAULT,
    DEDUP_TTL_SECONDS_DEFAULT,
    DOMAIN,
    HA_EVENT_CALL_AUDIO_STATE,
    HA_EVENT_TELEPHONY,
    CallAudioState,
    TelephonyPermission,
)
from .contacts import ContactStore
from .conversations import ConversationRegistry
from .dedup import NotificationDeduper
from .models import DeviceInfo, DispatchOutcome, PhoneLinkState, TelephonyEvent
from .notifications import PhoneLinkNotificationManager
from .telephony import TelephonyPlugin

_LOGGER = logging.getLogger(__name__)


def permissions_from_options(options: Mapping[str, Any]) -> TelephonyPermission:
    """Build the permission bitmask from config entry options."""
    permissions = TelephonyPermission.NONE
    if options.get(CONF_ALLOW_CALLS, True):
        permissions |= TelephonyPermission.CALLS
    if options.get(CONF_ALLOW_SMS, True):
        permissions |= TelephonyPermission.SMS
    return permissions


class PhoneLinkDataUpdateCoordinator(DataUpdateCoordinator[PhoneLinkState]):
    """Push-based coordinator: state changes only when packets arrive."""

    def __init__(
        self,
        hass: HomeAssistant,
        entry: ConfigEntry,
        api_client: PhoneLinkAPIClient,
        device_info: DeviceInfo,
        contacts: ContactStore,
        conversations: ConversationRegistry,
    ) -> None:
        """Initialize coordinator."""
        self.api_client = api_client
        self.device_info = device_info
        self.contacts = contacts

        super().__init__(
            hass,
            _LOGGER,
            config_entry=entry,
            name=f"{DOMAIN}_{device_info.device_id}",
            update_interval=None,
        )

        self.data = PhoneLinkState(device_info=device_info)

        self.notification_manager = PhoneLinkNotificationManager(
            hass, device_info.device_id, device_info.name
        )

        options = entry.options
        self.telephony = TelephonyPlugin(
            device_info.device_id,
            device_info.name,
            contacts,
            conversations,
            api_client,
            self.notification_manager,
            permissions=permissions_from_options(options),
            deduper=NotificationDeduper(
                ttl=options.get(CONF_DEDUP_TTL_SECONDS, DEDUP_TTL_SECONDS_DEFAULT),
                capacity=options.get(CONF_DEDUP_CAPACITY, DEDUP_CAPACITY_DEFAULT),
            ),
            audio=CallAudioStateMachine(),
            emit=self._fire_telephony_event,
        )
        self._unsub_audio = self.telephony.audio.add_listener(self._handle_audio_state)

    async def _async_update_data(self) -> PhoneLinkState:
        """Nothing to poll; the phone pushes its events."""
        return self.data

    async def async_handle_packet(self, body: Mapping[str, Any]) -> DispatchOutcome:
        """Handle a telephony packet body from the phone."""
        _LOGGER.debug(
            "[phonelink.packet] %s from %s", body.get("event"), self.device_info.device_id
        )
        outcome = await self.telephony.async_handle_packet(body)

        if outcome.accepted:
            self.data.events_handled += 1
        else:
            self.data.events_rejected += 1
        self.data.last_outcome = outcome
        self.data.audio_state = self.telephony.audio.state
        self.async_set_updated_data(self.data)
        return outcome

    async def async_mute_call(self) -> None:
        """Silence the incoming call on the phone."""
        await self.telephony.async_mute_call()
        self.async_set_updated_data(self.data)

    def _fire_telephony_event(self, event: TelephonyEvent) -> None:
        self.data.last_event = event
        self.hass.bus.async_fire(
            HA_EVENT_TELEPHONY,
            {"device_id": self.device_info.device_id, **event.to_ha_event_data()},
        )

    def _handle_audio_state(self, old_state: CallAudioState, new_state: CallAudioState) -> None:
        self.data.audio_state = new_state
        self.hass.bus.async_fire(
            HA_EVENT_CALL_AUDIO_STATE,
            {
                "device_id": self.device_info.device_id,
                "old_state": str(old_state),
                "new_state": str(new_state),
            },
        )

    async def async_shutdown(self) -> None:
        """Release per-device state."""
        self._unsub_audio()
        self.notification_manager.dismiss_all()
        self.telephony.shutdown()
        await self.contacts.async_flush()
        await super().async_shutdown()
