"""Shared test fixtures for PhoneLink tests."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from custom_components.phonelink.audio import CallAudioStateMachine  # noqa: E402
from custom_components.phonelink.contacts import ContactBook  # noqa: E402
from custom_components.phonelink.conversations import ConversationRegistry  # noqa: E402
from custom_components.phonelink.dedup import NotificationDeduper  # noqa: E402
from custom_components.phonelink.models import (  # noqa: E402
    Contact,
    Conversation,
    IconRef,
    NotificationDescriptor,
    TelephonyEvent,
)
from custom_components.phonelink.telephony import TelephonyPlugin  # noqa: E402

DEVICE_ID = "pixel"
DEVICE_NAME = "Pixel"


class InlineContactBook(ContactBook):
    """Contact book that writes avatars without an executor."""

    def __init__(self, cache_dir: Path) -> None:
        super().__init__(cache_dir)
        self.changes = 0

    async def _async_run_io(self, func, *args):
        return func(*args)

    def _changed(self) -> None:
        self.changes += 1


@dataclass
class FakeLocator:
    """Conversation locator backed by a plain dict of number -> conversation."""

    conversations: dict[str, Conversation] = field(default_factory=dict)
    lookups: list[tuple[str, str]] = field(default_factory=list)

    def find_conversation(self, device_id: str, phone_number: str) -> Conversation | None:
        self.lookups.append((device_id, phone_number))
        conversation = self.conversations.get(phone_number)
        if conversation is not None and conversation.device_id == device_id:
            return conversation
        return None


class FakePresenter:
    """Records notifications presented and withdrawn."""

    def __init__(self) -> None:
        self.presented: list[NotificationDescriptor] = []
        self.withdrawn: list[str] = []

    def present(self, notification: NotificationDescriptor) -> None:
        self.presented.append(notification)

    def withdraw(self, notification_id: str) -> None:
        self.withdrawn.append(notification_id)


class FakeSender:
    """Records packets sent to the device."""

    def __init__(self, error: Exception | None = None) -> None:
        self.packets: list[tuple[str, dict[str, Any]]] = []
        self.error = error

    async def async_send_packet(self, packet_type: str, body: dict[str, Any]) -> None:
        if self.error is not None:
            raise self.error
        self.packets.append((packet_type, dict(body)))


class SignalRecorder:
    """Collects generic telephony events and presentation requests."""

    def __init__(self) -> None:
        self.events: list[TelephonyEvent] = []
        self.presented: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event: TelephonyEvent) -> None:
        self.events.append(event)

    def on_present(self, kind: str, payload: dict[str, Any]) -> None:
        self.presented.append((kind, payload))


def make_event(
    kind: str,
    *,
    name: str = "Alice",
    number: str = "5551234567",
    time: int = 1_700_000_000,
    body: str | None = None,
    is_cancel: bool = False,
) -> TelephonyEvent:
    return TelephonyEvent(
        kind=kind,
        phone_number=number,
        contact=Contact(name=name, numbers=[number]),
        icon=IconRef(name="mdi:phone"),
        time=time,
        contact_name=name,
        message_body=body,
        is_cancel=is_cancel,
    )


@pytest.fixture
def contact_book(tmp_path: Path) -> InlineContactBook:
    return InlineContactBook(tmp_path / "avatars")


@pytest.fixture
def signals() -> SignalRecorder:
    return SignalRecorder()


@pytest.fixture
def registry(signals: SignalRecorder) -> ConversationRegistry:
    return ConversationRegistry(on_present=signals.on_present)


@pytest.fixture
def presenter() -> FakePresenter:
    return FakePresenter()


@pytest.fixture
def sender() -> FakeSender:
    return FakeSender()


@pytest.fixture
def deduper() -> NotificationDeduper:
    return NotificationDeduper()


@pytest.fixture
def audio() -> CallAudioStateMachine:
    return CallAudioStateMachine()


@pytest.fixture
def plugin(
    contact_book: InlineContactBook,
    registry: ConversationRegistry,
    sender: FakeSender,
    presenter: FakePresenter,
    deduper: NotificationDeduper,
    audio: CallAudioStateMachine,
    signals: SignalRecorder,
) -> TelephonyPlugin:
    return TelephonyPlugin(
        DEVICE_ID,
        DEVICE_NAME,
        contact_book,
        registry,
        sender,
        presenter,
        deduper=deduper,
        audio=audio,
        emit=signals.emit,
    )
