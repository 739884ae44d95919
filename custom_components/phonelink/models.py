"""Data models for the PhoneLink integration."""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .const import (
    CallAudioState,
    DispatchRejection,
    NotificationPriority,
    TelephonyAction,
    TelephonyEventKind,
)


@dataclass
class DeviceInfo:
    """Basic information about the paired phone."""

    device_id: str
    host: str
    port: int
    name: str = "Phone"


@dataclass
class Contact:
    """Contact record owned by the contact store."""

    name: str
    numbers: list[str] = field(default_factory=list)
    avatar_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "name": self.name,
            "numbers": list(self.numbers),
            "avatar_path": self.avatar_path,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Contact:
        """Create from dictionary."""
        return cls(
            name=data["name"],
            numbers=list(data.get("numbers", [])),
            avatar_path=data.get("avatar_path"),
        )


@dataclass(frozen=True, slots=True)
class IconRef:
    """Either a themed icon name or an avatar image path."""

    name: str | None = None
    path: str | None = None

    @property
    def is_avatar(self) -> bool:
        return self.path is not None

    def __str__(self) -> str:
        return self.path or self.name or ""


@dataclass(frozen=True)
class TelephonyEvent:
    """A normalized telephony event from the paired phone."""

    kind: TelephonyEventKind | str
    phone_number: str
    contact: Contact
    icon: IconRef
    time: int
    contact_name: str | None = None
    message_body: str | None = None
    is_cancel: bool = False

    @property
    def is_known_kind(self) -> bool:
        return isinstance(self.kind, TelephonyEventKind)

    @property
    def display_name(self) -> str:
        return self.contact.name or self.phone_number

    @property
    def local_id(self) -> str:
        """Key shared with other notification sources for this event."""
        return f"{self.kind}|{self.time}"

    def to_ha_event_data(self) -> dict[str, Any]:
        """Convert to the generic event payload."""
        return {
            "event": str(self.kind),
            "contact_name": self.contact.name or "",
            "phone_number": self.phone_number or "",
            "avatar_path": self.contact.avatar_path or "",
            "message_body": self.message_body or "",
            "time": self.time,
        }


@dataclass
class NotificationRecord:
    """A locally tracked notification another source may duplicate."""

    local_id: str
    ticker: str
    cancelled: bool = False
    created_at: float = field(default_factory=time.monotonic)


@dataclass(frozen=True, slots=True)
class NotificationAction:
    """A host action attached to a notification."""

    label: str
    action: TelephonyAction
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "action": str(self.action),
            "parameters": dict(self.parameters),
        }


@dataclass(frozen=True)
class NotificationDescriptor:
    """What the notification renderer should show for an event."""

    notification_id: str
    title: str
    body: str
    icon: IconRef
    priority: NotificationPriority = NotificationPriority.NORMAL
    default_action: NotificationAction | None = None
    buttons: tuple[NotificationAction, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "notification_id": self.notification_id,
            "title": self.title,
            "body": self.body,
            "icon": str(self.icon),
            "priority": str(self.priority),
            "default_action": (
                self.default_action.to_dict() if self.default_action else None
            ),
            "buttons": [button.to_dict() for button in self.buttons],
        }


@dataclass
class ConversationMessage:
    """A single line in a conversation log."""

    sender: str
    phone_number: str
    text: str
    received_at: float = field(default_factory=time.time)
    emphasis: bool = False


@dataclass
class Conversation:
    """An open SMS conversation (or a blank composer) for a device."""

    device_id: str
    number: str = ""
    recipients: list[str] = field(default_factory=list)
    contacts: dict[str, Contact] = field(default_factory=dict)
    messages: list[ConversationMessage] = field(default_factory=list)
    notifications: list[str] = field(default_factory=list)
    draft: str = ""
    urgency_hint: bool = False
    presented: bool = False

    def add_recipient(self, number: str, contact: Contact | None = None) -> None:
        """Add a recipient; the first one becomes the conversation number."""
        if number not in self.recipients:
            self.recipients.append(number)
        if contact is not None:
            self.contacts[number] = contact
        if not self.number:
            self.number = number

    def receive_message(self, contact: Contact, phone_number: str, text: str, *, emphasis: bool = False) -> None:
        """Append an incoming message to the log."""
        if not self.number:
            self.add_recipient(phone_number, contact)
        self.messages.append(
            ConversationMessage(
                sender=contact.name,
                phone_number=phone_number,
                text=text,
                emphasis=emphasis,
            )
        )

    def set_message(self, text: str) -> None:
        """Set the outgoing message draft."""
        self.draft = text

    def to_dict(self) -> dict[str, Any]:
        return {
            "device_id": self.device_id,
            "number": self.number,
            "recipients": list(self.recipients),
            "messages": [
                {
                    "sender": message.sender,
                    "phone_number": message.phone_number,
                    "text": message.text,
                    "emphasis": message.emphasis,
                }
                for message in self.messages
            ],
            "draft": self.draft,
            "urgency_hint": self.urgency_hint,
        }


@dataclass
class DispatchOutcome:
    """Result of dispatching one telephony event."""

    accepted: bool
    reason: DispatchRejection | None = None
    notification: NotificationDescriptor | None = None
    conversation: Conversation | None = None
    withdrawn: list[str] = field(default_factory=list)
    audio_state: CallAudioState | None = None

    @classmethod
    def rejected(cls, reason: DispatchRejection) -> DispatchOutcome:
        return cls(accepted=False, reason=reason)


@dataclass
class PhoneLinkState:
    """Runtime state exposed to entities."""

    device_info: DeviceInfo
    audio_state: CallAudioState = CallAudioState.IDLE
    last_event: TelephonyEvent | None = None
    last_outcome: DispatchOutcome | None = None
    events_handled: int = 0
    events_rejected: int = 0
