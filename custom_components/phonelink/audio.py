"""Call audio state tracking for the PhoneLink integration."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .const import CallAudioState

_LOGGER = logging.getLogger(__name__)

AudioStateListener = Callable[[CallAudioState, CallAudioState], None]


class CallAudioStateMachine:
    """Track local ducking state driven by ringing, talking and cancel events.

    A ring or talk moves the device into the matching state from any state,
    including while muted or while another call is ringing or in progress.
    The end of a ring or call (a cancel) restores to ``muted``, and the
    ``mute_call`` action forces ``muted`` as well.
    """

    def __init__(self) -> None:
        self._state = CallAudioState.IDLE
        self._listeners: list[AudioStateListener] = []

    @property
    def state(self) -> CallAudioState:
        return self._state

    def add_listener(self, listener: AudioStateListener) -> Callable[[], None]:
        """Subscribe to transitions; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def ring(self) -> CallAudioState:
        return self._transition(CallAudioState.RINGING)

    def talk(self) -> CallAudioState:
        return self._transition(CallAudioState.TALKING)

    def cancel(self) -> CallAudioState:
        return self._transition(CallAudioState.MUTED)

    def mute_call(self) -> CallAudioState:
        return self._transition(CallAudioState.MUTED)

    def reset(self) -> CallAudioState:
        return self._transition(CallAudioState.IDLE)

    def _transition(self, new_state: CallAudioState) -> CallAudioState:
        old_state = self._state
        self._state = new_state
        if old_state is not new_state:
            _LOGGER.debug("Call audio state %s -> %s", old_state, new_state)
            for listener in list(self._listeners):
                listener(old_state, new_state)
        return new_state
