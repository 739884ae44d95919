"""Open conversation tracking for the PhoneLink integration."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol

from .dialing import strip_to_digits
from .models import Conversation

_LOGGER = logging.getLogger(__name__)

PresentCallback = Callable[[str, dict[str, Any]], None]


class ConversationWindowLocator(Protocol):
    """Look up the open conversation for a number on a device."""

    def find_conversation(self, device_id: str, phone_number: str) -> Conversation | None:
        """Return the matching open conversation, if any."""


class ConversationRegistry:
    """Registry of open conversations shared by all paired devices.

    Presenting a conversation (or a share request) is delegated to
    ``on_present``, which receives a kind (``conversation`` or ``share``)
    and a payload.
    """

    def __init__(self, on_present: PresentCallback | None = None) -> None:
        self._conversations: list[Conversation] = []
        self._on_present = on_present

    def __len__(self) -> int:
        return len(self._conversations)

    def conversations_for_device(self, device_id: str) -> list[Conversation]:
        return [conv for conv in self._conversations if conv.device_id == device_id]

    def has_conversations(self, device_id: str) -> bool:
        """Return True if a conversation with a number is open for the device."""
        return any(conv.number for conv in self.conversations_for_device(device_id))

    def find_conversation(self, device_id: str, phone_number: str) -> Conversation | None:
        digits = strip_to_digits(phone_number)
        if not digits:
            return None

        for conversation in self._conversations:
            if conversation.device_id != device_id:
                continue
            if digits == strip_to_digits(conversation.number):
                return conversation
        return None

    def open(self, device_id: str) -> Conversation:
        """Open a new, blank conversation for the device."""
        conversation = Conversation(device_id=device_id)
        self._conversations.append(conversation)
        return conversation

    def close(self, conversation: Conversation) -> None:
        if conversation in self._conversations:
            self._conversations.remove(conversation)

    def close_device(self, device_id: str) -> None:
        self._conversations = [
            conv for conv in self._conversations if conv.device_id != device_id
        ]

    def present(self, conversation: Conversation) -> None:
        conversation.presented = True
        _LOGGER.debug(
            "Presenting conversation %s for device %s",
            conversation.number or "<new>",
            conversation.device_id,
        )
        if self._on_present:
            self._on_present("conversation", conversation.to_dict())

    def present_share(self, device_id: str, url: str) -> None:
        """Offer the open conversations of the device as share targets."""
        if self._on_present:
            self._on_present(
                "share",
                {
                    "device_id": device_id,
                    "url": url,
                    "recipients": [
                        conv.number for conv in self.conversations_for_device(device_id)
                        if conv.number
                    ],
                },
            )
