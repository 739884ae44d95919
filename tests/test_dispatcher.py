from __future__ import annotations

import pytest
from conftest import DEVICE_ID, DEVICE_NAME, FakeLocator, SignalRecorder, make_event

from custom_components.phonelink.audio import CallAudioStateMachine
from custom_components.phonelink.const import (
    CallAudioState,
    DispatchRejection,
    NotificationPriority,
    TelephonyAction,
    TelephonyPermission,
)
from custom_components.phonelink.dedup import NotificationDeduper
from custom_components.phonelink.dispatcher import (
    DispatchContext,
    EndedHandler,
    EventDispatcher,
    MissedCallHandler,
    SmsHandler,
    TalkingHandler,
)
from custom_components.phonelink.models import Conversation

ALL = TelephonyPermission.CALLS | TelephonyPermission.SMS


@pytest.fixture
def locator() -> FakeLocator:
    return FakeLocator()


@pytest.fixture
def context(locator, deduper, audio) -> DispatchContext:
    return DispatchContext(
        device_id=DEVICE_ID,
        device_name=DEVICE_NAME,
        deduper=deduper,
        locator=locator,
        audio=audio,
    )


@pytest.fixture
def dispatcher(context, signals: SignalRecorder) -> EventDispatcher:
    return EventDispatcher(context, emit=signals.emit)


def test_cancel_withdraws_once_without_emitting(dispatcher, signals, audio):
    audio.ring()
    outcome = dispatcher.dispatch(make_event("ringing", is_cancel=True), ALL)

    assert outcome.accepted
    assert outcome.withdrawn == ["ringing|Alice"]
    assert outcome.notification is None
    assert signals.events == []
    assert audio.state is CallAudioState.MUTED


def test_ended_withdraws_call_in_progress(dispatcher, signals, audio):
    audio.talk()
    outcome = dispatcher.dispatch(make_event("ended"), ALL)

    assert outcome.accepted
    assert outcome.withdrawn == ["talking|Alice"]
    assert outcome.audio_state is CallAudioState.MUTED
    assert [event.kind for event in signals.events] == ["ended"]


def test_ended_requires_call_permission(dispatcher, signals, audio):
    audio.talk()
    outcome = dispatcher.dispatch(make_event("ended"), TelephonyPermission.SMS)

    assert not outcome.accepted
    assert outcome.reason is DispatchRejection.PERMISSION_DENIED
    assert outcome.withdrawn == []
    assert audio.state is CallAudioState.TALKING
    assert [event.kind for event in signals.events] == ["ended"]


def test_cancelled_ended_event_withdraws_call_in_progress(dispatcher, signals):
    outcome = dispatcher.dispatch(make_event("ended", is_cancel=True), ALL)

    assert outcome.withdrawn == ["talking|Alice"]
    assert signals.events == []


def test_generic_event_is_emitted_even_when_rejected(dispatcher, signals, deduper):
    outcome = dispatcher.dispatch(make_event("voicemail"), ALL)

    assert not outcome.accepted
    assert outcome.reason is DispatchRejection.UNKNOWN_EVENT_KIND
    assert [event.kind for event in signals.events] == ["voicemail"]
    assert len(deduper) == 0


def test_permissions_gate_handlers(dispatcher, signals):
    sms_without_permission = dispatcher.dispatch(
        make_event("sms", body="hi"), TelephonyPermission.CALLS
    )
    call_without_permission = dispatcher.dispatch(
        make_event("ringing"), TelephonyPermission.SMS
    )
    nothing_allowed = dispatcher.dispatch(
        make_event("voicemail"), TelephonyPermission.NONE
    )

    assert sms_without_permission.reason is DispatchRejection.PERMISSION_DENIED
    assert call_without_permission.reason is DispatchRejection.PERMISSION_DENIED
    assert nothing_allowed.reason is DispatchRejection.PERMISSION_DENIED
    assert len(signals.events) == 3


def test_missed_call_notification(dispatcher, deduper):
    event = make_event("missedCall", name="Bob", number="555", time=42)
    outcome = dispatcher.dispatch(event, ALL)

    notification = outcome.notification
    assert notification.notification_id == "missedCall|42"
    assert notification.title == "Missed Call"
    assert notification.body == "Missed call from Bob on Pixel"
    assert notification.priority is NotificationPriority.NORMAL
    (button,) = notification.buttons
    assert button.label == "Message"
    assert button.action is TelephonyAction.REPLY_MISSED_CALL
    assert button.parameters == {"phone_number": "555", "contact_name": "Bob", "time": 42}
    assert deduper.get("missedCall|42").ticker == "Missed call: Bob"
    assert not deduper.is_cancelled("missedCall|42")


def test_ringing_notification_and_audio(dispatcher, audio):
    outcome = dispatcher.dispatch(make_event("ringing"), ALL)

    notification = outcome.notification
    assert notification.notification_id == "ringing|Alice"
    assert notification.title == "Incoming Call"
    assert notification.body == "Incoming call from Alice on Pixel"
    assert notification.priority is NotificationPriority.URGENT
    assert notification.buttons[0].action is TelephonyAction.MUTE_CALL
    assert outcome.audio_state is CallAudioState.RINGING
    assert audio.state is CallAudioState.RINGING


def test_talking_withdraws_ringing(dispatcher, audio):
    dispatcher.dispatch(make_event("ringing"), ALL)
    outcome = dispatcher.dispatch(make_event("talking"), ALL)

    assert outcome.withdrawn == ["ringing|Alice"]
    assert outcome.notification.notification_id == "talking|Alice"
    assert outcome.notification.title == "Call In Progress"
    assert outcome.notification.body == "Call in progress with Alice on Pixel"
    assert audio.state is CallAudioState.TALKING


def test_sms_notification(dispatcher):
    outcome = dispatcher.dispatch(make_event("sms", body="hi", time=7), ALL)

    notification = outcome.notification
    assert notification.notification_id == "sms|7"
    assert notification.title == "Alice"
    assert notification.body == "hi"
    assert notification.priority is NotificationPriority.HIGH
    assert notification.default_action.action is TelephonyAction.REPLY_SMS
    assert notification.default_action.parameters["message_body"] == "hi"


def test_open_conversation_takes_the_event(dispatcher, locator, deduper):
    conversation = Conversation(device_id=DEVICE_ID)
    conversation.add_recipient("5551234567")
    locator.conversations["5551234567"] = conversation

    outcome = dispatcher.dispatch(make_event("sms", body="hi", time=9), ALL)

    assert outcome.accepted
    assert outcome.notification is None
    assert outcome.conversation is conversation
    assert [message.text for message in conversation.messages] == ["hi"]
    assert not conversation.messages[0].emphasis
    assert conversation.urgency_hint
    assert conversation.notifications == ["sms|Alice: hi"]
    assert deduper.is_cancelled("sms|9")


def test_missed_call_in_open_conversation_is_emphasized(dispatcher, locator):
    conversation = Conversation(device_id=DEVICE_ID, number="5551234567")
    locator.conversations["5551234567"] = conversation

    dispatcher.dispatch(make_event("missedCall"), ALL)

    (message,) = conversation.messages
    assert message.text.startswith("Missed call at ")
    assert message.emphasis


def test_conversation_of_other_device_is_ignored(dispatcher, locator):
    locator.conversations["5551234567"] = Conversation(
        device_id="other", number="5551234567"
    )

    outcome = dispatcher.dispatch(make_event("sms", body="hi"), ALL)

    assert outcome.notification is not None
    assert locator.lookups == [(DEVICE_ID, "5551234567")]


def test_custom_handler_set():
    context = DispatchContext(
        device_id=DEVICE_ID,
        device_name=DEVICE_NAME,
        deduper=NotificationDeduper(),
        locator=FakeLocator(),
        audio=CallAudioStateMachine(),
    )
    dispatcher = EventDispatcher(context, handlers=[SmsHandler(), MissedCallHandler()])

    assert dispatcher.dispatch(make_event("talking"), ALL).reason is (
        DispatchRejection.UNKNOWN_EVENT_KIND
    )
    assert TalkingHandler().handles("talking")
    assert EndedHandler().handles("ended")
    assert EndedHandler().required_permission is TelephonyPermission.CALLS
    assert not SmsHandler().handles("ringing")
