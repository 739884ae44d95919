"""Telephony plugin: inbound event handling and host actions for one device."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Protocol

from .audio import CallAudioStateMachine
from .const import (
    PACKET_TYPE_SMS_REQUEST,
    PACKET_TYPE_TELEPHONY_REQUEST,
    TelephonyEventKind,
    TelephonyPermission,
)
from .contacts import ContactResolver
from .conversations import ConversationRegistry
from .dedup import NotificationDeduper
from .dispatcher import DispatchContext, EventDispatcher, EventSignal, format_event_time
from .models import Conversation, DispatchOutcome, NotificationDescriptor
from .normalizer import EventNormalizer
from .sms_uri import SmsUri, parse_sms_uri

_LOGGER = logging.getLogger(__name__)


class PacketSender(Protocol):
    """Outbound transport to the paired device."""

    async def async_send_packet(self, packet_type: str, body: Mapping[str, Any]) -> None:
        """Deliver a packet to the device."""


class NotificationPresenter(Protocol):
    """Renders and withdraws user-visible notifications."""

    def present(self, notification: NotificationDescriptor) -> None:
        """Show *notification*, replacing one with the same id."""

    def withdraw(self, notification_id: str) -> None:
        """Remove the notification with *notification_id*, if shown."""


class TelephonyPlugin:
    """Telephony support for one paired device.

    Packets are handled one at a time so that the avatar written for one
    event is in place before the next event for the same contact is
    normalized.
    """

    def __init__(
        self,
        device_id: str,
        device_name: str,
        contacts: ContactResolver,
        conversations: ConversationRegistry,
        sender: PacketSender,
        presenter: NotificationPresenter,
        *,
        permissions: TelephonyPermission = TelephonyPermission.CALLS | TelephonyPermission.SMS,
        deduper: NotificationDeduper | None = None,
        audio: CallAudioStateMachine | None = None,
        emit: EventSignal | None = None,
    ) -> None:
        self.device_id = device_id
        self.device_name = device_name
        self.permissions = permissions
        self.contacts = contacts
        self.conversations = conversations
        self.deduper = deduper if deduper is not None else NotificationDeduper()
        self.audio = audio if audio is not None else CallAudioStateMachine()
        self._sender = sender
        self._presenter = presenter
        self._lock = asyncio.Lock()
        self._shown: dict[str, str] = {}

        self.normalizer = EventNormalizer(contacts)
        self.dispatcher = EventDispatcher(
            DispatchContext(
                device_id=device_id,
                device_name=device_name,
                deduper=self.deduper,
                locator=conversations,
                audio=self.audio,
            ),
            emit=emit,
        )

    async def async_handle_packet(self, body: Mapping[str, Any]) -> DispatchOutcome:
        """Normalize and dispatch a telephony packet body."""
        async with self._lock:
            event = await self.normalizer.async_normalize(body)
            outcome = self.dispatcher.dispatch(event, self.permissions)

            for notification_id in outcome.withdrawn:
                self._presenter.withdraw(notification_id)
                self.deduper.discard(self._shown.pop(notification_id, notification_id))

            if outcome.notification is not None:
                self._presenter.present(outcome.notification)
                notification_id = outcome.notification.notification_id
                if notification_id != event.local_id:
                    # Ring and call notifications are keyed by contact, not by time
                    self._shown[notification_id] = event.local_id

            return outcome

    async def async_mute_call(self) -> None:
        """Silence an incoming call."""
        self.audio.mute_call()
        await self._sender.async_send_packet(
            PACKET_TYPE_TELEPHONY_REQUEST, {"action": "mute"}
        )

    async def async_send_sms(self, phone_number: str, message_body: str) -> None:
        """Ask the device to send an SMS message."""
        _LOGGER.debug("Sending SMS to %s via %s", phone_number, self.device_id)
        await self._sender.async_send_packet(
            PACKET_TYPE_SMS_REQUEST,
            {
                "sendSms": True,
                "phoneNumber": phone_number,
                "messageBody": message_body,
            },
        )

    def reply_missed_call(self, phone_number: str, contact_name: str | None, time: int) -> Conversation:
        """Open (or reuse) a conversation with a missed caller and log the call."""
        contact = self.contacts.get_contact(contact_name, phone_number)

        conversation = self.conversations.find_conversation(self.device_id, phone_number)
        if conversation is None:
            conversation = self.conversations.open(self.device_id)
            self.deduper.mark_duplicate(
                f"{TelephonyEventKind.MISSED_CALL}|{time}",
                f"Missed call: {contact.name}",
                is_cancel=True,
            )

        conversation.receive_message(
            contact,
            phone_number,
            f"Missed call at {format_event_time(time)}",
            emphasis=True,
        )
        self.conversations.present(conversation)
        return conversation

    def reply_sms(
        self,
        phone_number: str,
        contact_name: str | None,
        message_body: str,
        time: int,
    ) -> Conversation:
        """Open (or reuse) a conversation with the sender of an SMS."""
        conversation = self.conversations.find_conversation(self.device_id, phone_number)
        if conversation is None:
            conversation = self.conversations.open(self.device_id)
            contact = self.contacts.get_contact(contact_name, phone_number)
            conversation.receive_message(contact, phone_number, message_body)
            conversation.urgency_hint = True
            self.deduper.mark_duplicate(
                f"{TelephonyEventKind.SMS}|{time}",
                f"{contact.name}: {message_body}",
                is_cancel=True,
            )

        self.conversations.present(conversation)
        return conversation

    def open_sms(self) -> Conversation:
        """Open and present a new, blank conversation."""
        conversation = self.conversations.open(self.device_id)
        self.conversations.present(conversation)
        return conversation

    def share_uri(self, url: str) -> Conversation | None:
        """Share a link by SMS.

        With conversations open the user picks a recipient among them;
        otherwise a blank conversation is opened with the link as draft.
        """
        if self.conversations.has_conversations(self.device_id):
            self.conversations.present_share(self.device_id, url)
            return None

        conversation = self.conversations.open(self.device_id)
        conversation.set_message(url)
        self.conversations.present(conversation)
        return conversation

    def open_uri(self, uri: str | SmsUri) -> bool:
        """Open a conversation for an sms: URI.

        A single recipient reuses an open conversation with that number;
        several recipients always get a new conversation.
        """
        if not isinstance(uri, SmsUri):
            result = parse_sms_uri(uri)
            if not result.ok:
                _LOGGER.warning("Error parsing sms URI %r: %s", uri, result.error)
                return False
            uri = result.uri

        conversation = None
        if len(uri.recipients) == 1:
            conversation = self.conversations.find_conversation(
                self.device_id, uri.recipients[0]
            )

        if conversation is None:
            conversation = self.conversations.open(self.device_id)
            for recipient in uri.recipients:
                conversation.add_recipient(
                    recipient, self.contacts.get_contact(None, recipient)
                )
            conversation.urgency_hint = True

        if uri.body is not None:
            conversation.set_message(uri.body)

        self.conversations.present(conversation)
        return True

    @staticmethod
    def conversation_uri(conversation: Conversation) -> str:
        """Serialize the composer state of *conversation* as an sms: URI."""
        if not conversation.recipients:
            raise ValueError("Conversation has no recipients")
        return str(
            SmsUri(
                recipients=tuple(conversation.recipients),
                body=conversation.draft or None,
            )
        )

    def shutdown(self) -> None:
        self.conversations.close_device(self.device_id)
        self.deduper.clear()
        self._shown.clear()
        self.audio.reset()
