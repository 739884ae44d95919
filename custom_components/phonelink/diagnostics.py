"""Diagnostics support for PhoneLink integration."""

from __future__ import annotations

from typing import Any

from homeassistant.components.diagnostics import async_redact_data
from homeassistant.core import HomeAssistant
from homeassistant.helpers import entity_registry as er

from . import PhoneLinkConfigEntry
from .coordinator import PhoneLinkDataUpdateCoordinator

# Keys to redact from diagnostics for privacy
REDACT_KEYS = {
    "host",
    "device_id",
    "phone_number",
    "contact_name",
    "message_body",
    "avatar_path",
    "ticker",
    "title",
    "body",
    "url",
}


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: PhoneLinkConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    coordinator: PhoneLinkDataUpdateCoordinator = entry.runtime_data

    entity_registry = er.async_get(hass)
    entity_entries = er.async_entries_for_config_entry(entity_registry, entry.entry_id)

    diagnostics_data = {
        "config_entry": {
            "title": entry.title,
            "version": entry.version,
            "domain": entry.domain,
            "state": entry.state.value,
            "data": dict(entry.data),
            "options": dict(entry.options),
        },
        "telephony": _get_telephony_diagnostics(coordinator),
        "entities": [
            {
                "entity_id": entity_entry.entity_id,
                "unique_id": entity_entry.unique_id,
                "platform": entity_entry.platform,
                "disabled": entity_entry.disabled,
            }
            for entity_entry in entity_entries
        ],
    }

    return async_redact_data(diagnostics_data, REDACT_KEYS)


def _get_telephony_diagnostics(
    coordinator: PhoneLinkDataUpdateCoordinator,
) -> dict[str, Any]:
    """Get telephony plugin diagnostics data."""
    telephony = coordinator.telephony
    state = coordinator.data

    # Local ids embed contact names; only the event kind is kept.
    dedup_records = [
        {
            "kind": local_id.split("|", 1)[0],
            "ticker": record["ticker"],
            "cancelled": record["cancelled"],
        }
        for local_id, record in telephony.deduper.as_dict().items()
    ]

    return {
        "permissions": int(telephony.permissions),
        "audio_state": str(telephony.audio.state),
        "events_handled": state.events_handled,
        "events_rejected": state.events_rejected,
        "last_event": state.last_event.to_ha_event_data() if state.last_event else None,
        "dedup": {
            "ttl": telephony.deduper.ttl,
            "capacity": telephony.deduper.capacity,
            "records": dedup_records,
        },
        "conversations": len(
            telephony.conversations.conversations_for_device(telephony.device_id)
        ),
        "active_notifications": len(coordinator.notification_manager.active),
        "contacts": len(coordinator.contacts.contacts),
    }
