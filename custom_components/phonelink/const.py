"""Constants for the PhoneLink integration."""

from enum import IntFlag, StrEnum
from typing import Final

# Domain and basic config
DOMAIN: Final = "phonelink"
MANUFACTURER: Final = "PhoneLink"
MODEL: Final = "Paired Phone"

# Network configuration
DEFAULT_PORT: Final = 1716
DEFAULT_NAME: Final = "Phone"

# Packet types (KDE Connect compatible)
PACKET_TYPE_TELEPHONY_REQUEST: Final = "kdeconnect.telephony.request"
PACKET_TYPE_SMS_REQUEST: Final = "kdeconnect.sms.request"

# API endpoints
API_PACKET: Final = "/api/packet"
API_IDENTITY: Final = "/api/identity"

# Notification deduplication
DEDUP_TTL_SECONDS_DEFAULT: Final = 300
DEDUP_CAPACITY_DEFAULT: Final = 256

# Avatar cache
AVATAR_CACHE_DIR: Final = "phonelink/avatars"
AVATAR_EXTENSION: Final = ".jpeg"

# Display name for a caller with no name and no number
UNKNOWN_CONTACT_NAME: Final = "Unknown"

# Configuration keys
CONF_DEVICE_ID: Final = "device_id"
CONF_ALLOW_CALLS: Final = "allow_calls"
CONF_ALLOW_SMS: Final = "allow_sms"
CONF_DEDUP_TTL_SECONDS: Final = "dedup_ttl_seconds"
CONF_DEDUP_CAPACITY: Final = "dedup_capacity"


class TelephonyEventKind(StrEnum):
    """Telephony event names sent by the paired phone."""

    MISSED_CALL = "missedCall"
    RINGING = "ringing"
    SMS = "sms"
    TALKING = "talking"
    ENDED = "ended"


class TelephonyPermission(IntFlag):
    """Capability bits granted to the telephony plugin of a device."""

    NONE = 0
    CALLS = 2
    SMS = 4


class CallAudioState(StrEnum):
    """Local audio state driven by call activity."""

    IDLE = "idle"
    MUTED = "muted"
    RINGING = "ringing"
    TALKING = "talking"


class NotificationPriority(StrEnum):
    """Priority hint passed on to the notification renderer."""

    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class TelephonyAction(StrEnum):
    """Host actions a notification can invoke."""

    MUTE_CALL = "muteCall"
    REPLY_MISSED_CALL = "replyMissedCall"
    REPLY_SMS = "replySms"


class DispatchRejection(StrEnum):
    """Reasons a telephony event was not handled."""

    UNKNOWN_EVENT_KIND = "unknown_event_kind"
    PERMISSION_DENIED = "permission_denied"


# Default icons per event kind (used when the contact has no avatar)
ICON_MISSED_CALL: Final = "mdi:phone-missed"
ICON_CALL: Final = "mdi:phone-in-talk"
ICON_SMS: Final = "mdi:message-text"

DEFAULT_EVENT_ICONS: Final = {
    TelephonyEventKind.MISSED_CALL: ICON_MISSED_CALL,
    TelephonyEventKind.RINGING: ICON_CALL,
    TelephonyEventKind.TALKING: ICON_CALL,
    TelephonyEventKind.ENDED: ICON_CALL,
    TelephonyEventKind.SMS: ICON_SMS,
}

# Home Assistant event names
HA_EVENT_TELEPHONY: Final = "phonelink_event"
HA_EVENT_NOTIFICATION: Final = "phonelink_notification"
HA_EVENT_CONVERSATION_PRESENTED: Final = "phonelink_conversation_presented"
HA_EVENT_SHARE_REQUESTED: Final = "phonelink_share_requested"
HA_EVENT_CALL_AUDIO_STATE: Final = "phonelink_call_audio_state"

# Service names
SERVICE_HANDLE_PACKET: Final = "handle_packet"
SERVICE_MUTE_CALL: Final = "mute_call"
SERVICE_SEND_SMS: Final = "send_sms"
SERVICE_REPLY_MISSED_CALL: Final = "reply_missed_call"
SERVICE_REPLY_SMS: Final = "reply_sms"
SERVICE_OPEN_SMS: Final = "open_sms"
SERVICE_SHARE_URI: Final = "share_uri"
SERVICE_OPEN_URI: Final = "open_uri"
SERVICE_GET_CONVERSATION_URI: Final = "get_conversation_uri"

# Storage
STORAGE_VERSION_CONTACTS: Final = 1
STORAGE_KEY_CONTACTS: Final = "contacts"
