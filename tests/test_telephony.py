from __future__ import annotations

import pytest
from conftest import DEVICE_ID, FakeSender

from custom_components.phonelink.api_client import PhoneLinkAPIError
from custom_components.phonelink.audio import CallAudioStateMachine
from custom_components.phonelink.const import (
    PACKET_TYPE_SMS_REQUEST,
    PACKET_TYPE_TELEPHONY_REQUEST,
    CallAudioState,
    DispatchRejection,
    TelephonyPermission,
)
from custom_components.phonelink.dedup import NotificationDeduper
from custom_components.phonelink.sms_uri import SmsUri
from custom_components.phonelink.telephony import TelephonyPlugin


async def test_sms_from_unknown_number_end_to_end(plugin, presenter, deduper, signals):
    outcome = await plugin.async_handle_packet(
        {
            "event": "sms",
            "phoneNumber": "5551234567",
            "contactName": "",
            "messageBody": "hi",
        }
    )

    assert outcome.accepted
    assert len(presenter.presented) == 1
    notification = presenter.presented[0]
    assert notification.title == "5551234567"
    assert notification.body == "hi"
    assert len(deduper) == 1
    assert list(deduper.as_dict()) == [notification.notification_id]
    assert len(signals.events) == 1
    assert signals.events[0].to_ha_event_data()["message_body"] == "hi"


async def test_cancel_packet_withdraws_ringing_notification(
    plugin, presenter, signals, audio, deduper
):
    await plugin.async_handle_packet(
        {"event": "ringing", "phoneNumber": "555", "contactName": "Bob"}
    )
    outcome = await plugin.async_handle_packet(
        {"event": "ringing", "phoneNumber": "555", "contactName": "Bob", "isCancel": True}
    )

    assert outcome.accepted
    assert presenter.withdrawn == ["ringing|Bob"]
    assert len(signals.events) == 1
    assert len(deduper) == 0
    assert audio.state is CallAudioState.MUTED


async def test_answered_call_replaces_ringing(plugin, presenter, audio, deduper):
    await plugin.async_handle_packet(
        {"event": "ringing", "phoneNumber": "555", "contactName": "Bob"}
    )
    await plugin.async_handle_packet(
        {"event": "talking", "phoneNumber": "555", "contactName": "Bob"}
    )
    await plugin.async_handle_packet(
        {"event": "ended", "phoneNumber": "555", "contactName": "Bob"}
    )

    assert [n.notification_id for n in presenter.presented] == ["ringing|Bob", "talking|Bob"]
    assert presenter.withdrawn == ["ringing|Bob", "talking|Bob"]
    assert audio.state is CallAudioState.MUTED
    assert len(deduper) == 0


async def test_injected_deduper_and_audio_are_used_even_when_empty(
    contact_book, registry, sender, presenter
):
    deduper = NotificationDeduper(ttl=30, capacity=16)
    audio = CallAudioStateMachine()
    plugin = TelephonyPlugin(
        DEVICE_ID,
        "Pixel",
        contact_book,
        registry,
        sender,
        presenter,
        deduper=deduper,
        audio=audio,
    )

    assert plugin.deduper is deduper
    assert plugin.audio is audio
    assert plugin.dispatcher.context.deduper is deduper
    assert plugin.dispatcher.context.audio is audio

    await plugin.async_handle_packet(
        {"event": "missedCall", "phoneNumber": "555", "contactName": "Bob"}
    )

    assert len(deduper) == 1


async def test_permission_denied_presents_nothing(
    contact_book, registry, sender, presenter, signals
):
    plugin = TelephonyPlugin(
        DEVICE_ID,
        "Pixel",
        contact_book,
        registry,
        sender,
        presenter,
        permissions=TelephonyPermission.CALLS,
        emit=signals.emit,
    )

    outcome = await plugin.async_handle_packet(
        {"event": "sms", "phoneNumber": "555", "messageBody": "hi"}
    )

    assert outcome.reason is DispatchRejection.PERMISSION_DENIED
    assert presenter.presented == []
    assert len(signals.events) == 1


async def test_sms_goes_to_open_conversation(plugin, registry, presenter, deduper):
    conversation = registry.open(DEVICE_ID)
    conversation.add_recipient("+1 (555) 123-4567")

    outcome = await plugin.async_handle_packet(
        {"event": "sms", "phoneNumber": "15551234567", "contactName": "Alice", "messageBody": "yo"}
    )

    assert outcome.conversation is conversation
    assert presenter.presented == []
    (record,) = deduper.as_dict().values()
    assert record["cancelled"]


async def test_mute_call_sends_request(plugin, sender, audio):
    audio.ring()
    await plugin.async_mute_call()

    assert sender.packets == [(PACKET_TYPE_TELEPHONY_REQUEST, {"action": "mute"})]
    assert audio.state is CallAudioState.MUTED


async def test_send_sms_packet(plugin, sender):
    await plugin.async_send_sms("+15551234567", "on my way")

    assert sender.packets == [
        (
            PACKET_TYPE_SMS_REQUEST,
            {"sendSms": True, "phoneNumber": "+15551234567", "messageBody": "on my way"},
        )
    ]


async def test_transport_errors_propagate(contact_book, registry, presenter):
    plugin = TelephonyPlugin(
        DEVICE_ID,
        "Pixel",
        contact_book,
        registry,
        FakeSender(error=PhoneLinkAPIError("Connection timeout")),
        presenter,
    )

    with pytest.raises(PhoneLinkAPIError):
        await plugin.async_send_sms("555", "hi")


def test_reply_missed_call_opens_conversation(plugin, registry, deduper, signals):
    deduper.mark_duplicate("missedCall|100", "Missed call: Bob")

    conversation = plugin.reply_missed_call("555", "Bob", 100)

    assert conversation.number == "555"
    assert conversation.presented
    assert conversation.messages[0].text.startswith("Missed call at ")
    assert deduper.is_cancelled("missedCall|100")
    assert signals.presented[-1][0] == "conversation"

    again = plugin.reply_missed_call("555", "Bob", 200)
    assert again is conversation
    assert len(conversation.messages) == 2
    assert len(registry) == 1


def test_reply_sms_logs_message_once(plugin, registry, deduper):
    deduper.mark_duplicate("sms|5", "Bob: hi")

    conversation = plugin.reply_sms("555", "Bob", "hi", 5)
    plugin.reply_sms("555", "Bob", "hi", 5)

    assert [message.text for message in conversation.messages] == ["hi"]
    assert conversation.urgency_hint
    assert deduper.is_cancelled("sms|5")
    assert len(registry) == 1


def test_open_sms_presents_blank_conversation(plugin, signals):
    conversation = plugin.open_sms()

    assert conversation.number == ""
    assert signals.presented == [("conversation", conversation.to_dict())]


def test_share_uri_without_conversations_opens_draft(plugin, signals):
    conversation = plugin.share_uri("https://example.com")

    assert conversation.draft == "https://example.com"
    assert signals.presented[0][0] == "conversation"


def test_share_uri_with_open_conversations_asks_for_target(plugin, signals):
    plugin.reply_sms("555", "Bob", "hi", 1)

    assert plugin.share_uri("https://example.com") is None
    kind, payload = signals.presented[-1]
    assert kind == "share"
    assert payload == {
        "device_id": DEVICE_ID,
        "url": "https://example.com",
        "recipients": ["555"],
    }


def test_open_uri_single_recipient_reuses_conversation(plugin, registry):
    existing = plugin.reply_sms("5551234567", "Alice", "hi", 1)

    assert plugin.open_uri("sms:555-123-4567?body=see%20you")

    assert existing.draft == "see you"
    assert len(registry) == 1


def test_open_uri_multiple_recipients_opens_new_conversation(plugin, registry):
    plugin.reply_sms("111", "Bob", "hi", 1)

    assert plugin.open_uri(SmsUri(recipients=("111", "222")))

    conversation = registry.conversations_for_device(DEVICE_ID)[-1]
    assert conversation.recipients == ["111", "222"]
    assert conversation.draft == ""
    assert conversation.urgency_hint
    assert len(registry) == 2


def test_open_uri_rejects_malformed(plugin, registry):
    assert not plugin.open_uri("sms:111?body=a&body=b")
    assert not plugin.open_uri("tel:111")
    assert len(registry) == 0


def test_conversation_uri(plugin):
    conversation = plugin.open_sms()
    with pytest.raises(ValueError):
        plugin.conversation_uri(conversation)

    conversation.add_recipient("111")
    conversation.add_recipient("222")
    assert plugin.conversation_uri(conversation) == "sms:111,222"

    conversation.set_message("a b")
    assert plugin.conversation_uri(conversation) == "sms:111,222?body=a%20b"


async def test_shutdown_releases_device_state(plugin, registry, deduper, audio):
    await plugin.async_handle_packet(
        {"event": "ringing", "phoneNumber": "555", "contactName": "Bob"}
    )
    plugin.open_sms()

    plugin.shutdown()

    assert len(registry) == 0
    assert len(deduper) == 0
    assert audio.state is CallAudioState.IDLE


async def test_withheld_caller_rings_without_growing_contacts(
    plugin, contact_book, presenter
):
    for _ in range(3):
        await plugin.async_handle_packet({"event": "ringing", "phoneNumber": ""})

    assert presenter.presented[0].body == "Incoming call from Unknown on Pixel"
    assert contact_book.contacts == []
