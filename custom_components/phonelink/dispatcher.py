"""Routing of normalized telephony events to their handlers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from homeassistant.util import dt as dt_util

from .audio import CallAudioStateMachine
from .const import (
    DispatchRejection,
    NotificationPriority,
    TelephonyAction,
    TelephonyEventKind,
    TelephonyPermission,
)
from .conversations import ConversationWindowLocator
from .dedup import NotificationDeduper
from .models import (
    Conversation,
    DispatchOutcome,
    NotificationAction,
    NotificationDescriptor,
    TelephonyEvent,
)

_LOGGER = logging.getLogger(__name__)

EventSignal = Callable[[TelephonyEvent], None]


def notification_key(kind: TelephonyEventKind | str, name: str) -> str:
    """Id of the notification for an ongoing ring or call with *name*."""
    return f"{kind}|{name}"


def format_event_time(timestamp: int) -> str:
    return dt_util.as_local(dt_util.utc_from_timestamp(timestamp)).strftime("%H:%M")


@dataclass
class DispatchContext:
    """Per-device collaborators shared by the handlers."""

    device_id: str
    device_name: str
    deduper: NotificationDeduper
    locator: ConversationWindowLocator
    audio: CallAudioStateMachine


class TelephonyEventHandler(ABC):
    """Handle one telephony event kind."""

    kind: TelephonyEventKind
    required_permission: TelephonyPermission = TelephonyPermission.CALLS

    def handles(self, kind: TelephonyEventKind | str) -> bool:
        return kind == self.kind

    @abstractmethod
    def handle(self, event: TelephonyEvent, context: DispatchContext) -> DispatchOutcome:
        """Apply *event* and return the notification decision."""


class NotifyingEventHandler(TelephonyEventHandler):
    """Handler that shows a notification or logs to an open conversation.

    The ticker is registered with the deduper before the conversation
    lookup. When a conversation for the number is open the event is logged
    there and the registered entry is cancelled; otherwise a notification
    descriptor is produced.
    """

    @abstractmethod
    def ticker(self, event: TelephonyEvent) -> str:
        """Text another notification source would show for this event."""

    @abstractmethod
    def build_notification(
        self, event: TelephonyEvent, context: DispatchContext
    ) -> NotificationDescriptor:
        """Describe the system notification for this event."""

    @abstractmethod
    def log_text(self, event: TelephonyEvent) -> str:
        """Line appended to an open conversation for this event."""

    def notification_id(self, event: TelephonyEvent) -> str:
        return event.local_id

    def before(self, event: TelephonyEvent, context: DispatchContext, outcome: DispatchOutcome) -> None:
        """Run before the deduper and conversation lookup."""

    def after(self, event: TelephonyEvent, context: DispatchContext, outcome: DispatchOutcome) -> None:
        """Run once the notification decision is made."""

    def handle(self, event: TelephonyEvent, context: DispatchContext) -> DispatchOutcome:
        outcome = DispatchOutcome(accepted=True)
        self.before(event, context, outcome)

        ticker = self.ticker(event)
        context.deduper.mark_duplicate(event.local_id, ticker)

        conversation = context.locator.find_conversation(
            context.device_id, event.phone_number
        )
        if conversation is not None:
            self._log_to_conversation(conversation, event, ticker)
            context.deduper.mark_duplicate(event.local_id, ticker, is_cancel=True)
            outcome.conversation = conversation
        else:
            outcome.notification = self.build_notification(event, context)

        self.after(event, context, outcome)
        outcome.audio_state = context.audio.state
        return outcome

    def _log_to_conversation(
        self, conversation: Conversation, event: TelephonyEvent, ticker: str
    ) -> None:
        conversation.receive_message(
            event.contact,
            event.phone_number,
            self.log_text(event),
            emphasis=self.kind is not TelephonyEventKind.SMS,
        )
        conversation.urgency_hint = True
        conversation.notifications.append(f"{event.kind}|{ticker}")


class MissedCallHandler(NotifyingEventHandler):
    kind = TelephonyEventKind.MISSED_CALL

    def ticker(self, event: TelephonyEvent) -> str:
        return f"Missed call: {event.contact.name}"

    def log_text(self, event: TelephonyEvent) -> str:
        return f"Missed call at {format_event_time(event.time)}"

    def build_notification(
        self, event: TelephonyEvent, context: DispatchContext
    ) -> NotificationDescriptor:
        return NotificationDescriptor(
            notification_id=self.notification_id(event),
            title="Missed Call",
            body=f"Missed call from {event.contact.name} on {context.device_name}",
            icon=event.icon,
            priority=NotificationPriority.NORMAL,
            buttons=(
                NotificationAction(
                    label="Message",
                    action=TelephonyAction.REPLY_MISSED_CALL,
                    parameters={
                        "phone_number": event.phone_number,
                        "contact_name": event.contact.name,
                        "time": event.time,
                    },
                ),
            ),
        )


class RingingHandler(NotifyingEventHandler):
    kind = TelephonyEventKind.RINGING

    def ticker(self, event: TelephonyEvent) -> str:
        return f"Incoming call: {event.contact.name}"

    def log_text(self, event: TelephonyEvent) -> str:
        return f"Incoming call at {format_event_time(event.time)}"

    def notification_id(self, event: TelephonyEvent) -> str:
        return notification_key(event.kind, event.contact.name)

    def build_notification(
        self, event: TelephonyEvent, context: DispatchContext
    ) -> NotificationDescriptor:
        return NotificationDescriptor(
            notification_id=self.notification_id(event),
            title="Incoming Call",
            body=f"Incoming call from {event.contact.name} on {context.device_name}",
            icon=event.icon,
            priority=NotificationPriority.URGENT,
            buttons=(
                NotificationAction(label="Mute", action=TelephonyAction.MUTE_CALL),
            ),
        )

    def after(self, event: TelephonyEvent, context: DispatchContext, outcome: DispatchOutcome) -> None:
        context.audio.ring()


class SmsHandler(NotifyingEventHandler):
    kind = TelephonyEventKind.SMS
    required_permission = TelephonyPermission.SMS

    def ticker(self, event: TelephonyEvent) -> str:
        return f"{event.contact.name}: {event.message_body or ''}"

    def log_text(self, event: TelephonyEvent) -> str:
        return event.message_body or ""

    def build_notification(
        self, event: TelephonyEvent, context: DispatchContext
    ) -> NotificationDescriptor:
        return NotificationDescriptor(
            notification_id=self.notification_id(event),
            title=event.contact.name,
            body=event.message_body or "",
            icon=event.icon,
            priority=NotificationPriority.HIGH,
            default_action=NotificationAction(
                label="Reply",
                action=TelephonyAction.REPLY_SMS,
                parameters={
                    "phone_number": event.phone_number,
                    "contact_name": event.contact.name,
                    "message_body": event.message_body or "",
                    "time": event.time,
                },
            ),
        )


class TalkingHandler(NotifyingEventHandler):
    kind = TelephonyEventKind.TALKING

    def ticker(self, event: TelephonyEvent) -> str:
        return f"Call in progress: {event.contact.name}"

    def log_text(self, event: TelephonyEvent) -> str:
        return f"Call in progress at {format_event_time(event.time)}"

    def notification_id(self, event: TelephonyEvent) -> str:
        return notification_key(event.kind, event.contact.name)

    def before(self, event: TelephonyEvent, context: DispatchContext, outcome: DispatchOutcome) -> None:
        # The call was answered, the ring is over
        outcome.withdrawn.append(
            notification_key(TelephonyEventKind.RINGING, event.contact.name)
        )

    def build_notification(
        self, event: TelephonyEvent, context: DispatchContext
    ) -> NotificationDescriptor:
        return NotificationDescriptor(
            notification_id=self.notification_id(event),
            title="Call In Progress",
            body=f"Call in progress with {event.contact.name} on {context.device_name}",
            icon=event.icon,
            priority=NotificationPriority.NORMAL,
        )

    def after(self, event: TelephonyEvent, context: DispatchContext, outcome: DispatchOutcome) -> None:
        context.audio.talk()


class EndedHandler(TelephonyEventHandler):
    """A call hung up: withdraw the call in progress and cancel audio."""

    kind = TelephonyEventKind.ENDED

    def handle(self, event: TelephonyEvent, context: DispatchContext) -> DispatchOutcome:
        return DispatchOutcome(
            accepted=True,
            withdrawn=[notification_key(TelephonyEventKind.TALKING, event.contact.name)],
            audio_state=context.audio.cancel(),
        )


def default_handlers() -> list[TelephonyEventHandler]:
    return [
        MissedCallHandler(),
        RingingHandler(),
        SmsHandler(),
        TalkingHandler(),
        EndedHandler(),
    ]


class EventDispatcher:
    """Route telephony events of one device to the matching handler."""

    def __init__(
        self,
        context: DispatchContext,
        handlers: Iterable[TelephonyEventHandler] | None = None,
        emit: EventSignal | None = None,
    ) -> None:
        self.context = context
        self._handlers = list(handlers) if handlers is not None else default_handlers()
        self._emit = emit

    def dispatch(
        self, event: TelephonyEvent, permissions: TelephonyPermission
    ) -> DispatchOutcome:
        """Handle *event* and return the notification decision.

        Cancel events restore the audio state and withdraw the ongoing
        notification without emitting the generic event. Every other event,
        ``ended`` included, is emitted regardless of permissions before the
        handler runs.
        """
        if event.is_cancel:
            return self._dispatch_cancel(event)

        if self._emit is not None:
            self._emit(event)

        handler = self._select_handler(event.kind, permissions)
        if isinstance(handler, DispatchRejection):
            if handler is DispatchRejection.UNKNOWN_EVENT_KIND:
                _LOGGER.info(
                    "Unknown telephony event %r from %s", event.kind, self.context.device_id
                )
            else:
                _LOGGER.debug(
                    "Telephony event %s from %s not permitted (%s)",
                    event.kind,
                    self.context.device_id,
                    permissions,
                )
            return DispatchOutcome.rejected(handler)

        _LOGGER.debug("Dispatching %s from %s", event.kind, self.context.device_id)
        return handler.handle(event, self.context)

    def _select_handler(
        self, kind: TelephonyEventKind | str, permissions: TelephonyPermission
    ) -> TelephonyEventHandler | DispatchRejection:
        handler = self._handler_for(kind)
        if handler is None:
            # Unrecognized kinds are only reported to devices allowed calls
            if permissions & TelephonyPermission.CALLS:
                return DispatchRejection.UNKNOWN_EVENT_KIND
            return DispatchRejection.PERMISSION_DENIED

        if not permissions & handler.required_permission:
            return DispatchRejection.PERMISSION_DENIED
        return handler

    def _handler_for(self, kind: TelephonyEventKind | str) -> TelephonyEventHandler | None:
        for handler in self._handlers:
            if handler.handles(kind):
                return handler
        return None

    def _dispatch_cancel(self, event: TelephonyEvent) -> DispatchOutcome:
        kind = (
            TelephonyEventKind.TALKING
            if event.kind == TelephonyEventKind.ENDED
            else event.kind
        )
        key = notification_key(kind, event.contact.name)
        _LOGGER.debug("Telephony event %s ended, withdrawing %s", event.kind, key)
        return DispatchOutcome(
            accepted=True,
            withdrawn=[key],
            audio_state=self.context.audio.cancel(),
        )
