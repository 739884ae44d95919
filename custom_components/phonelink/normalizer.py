"""Turn raw telephony packet bodies into normalized events."""

from __future__ import annotations

import base64
import binascii
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any

from .const import DEFAULT_EVENT_ICONS, ICON_CALL, TelephonyEventKind
from .contacts import ContactResolver
from .models import Contact, IconRef, TelephonyEvent

_LOGGER = logging.getLogger(__name__)


def parse_event_kind(value: Any) -> TelephonyEventKind | str:
    """Return the known event kind for *value*, or the raw string."""
    raw = "" if value is None else str(value)
    try:
        return TelephonyEventKind(raw)
    except ValueError:
        return raw


def select_icon(kind: TelephonyEventKind | str, contact: Contact) -> IconRef:
    """Prefer the contact avatar, else the default icon for the event kind."""
    if contact.avatar_path:
        return IconRef(path=contact.avatar_path)
    return IconRef(name=DEFAULT_EVENT_ICONS.get(kind, ICON_CALL))


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


class EventNormalizer:
    """Resolve contacts and icons for incoming telephony packets."""

    def __init__(
        self,
        contacts: ContactResolver,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._contacts = contacts
        self._clock = clock

    async def async_normalize(self, body: Mapping[str, Any]) -> TelephonyEvent:
        """Build a TelephonyEvent from a packet body.

        The event time is taken when the packet is normalized. A thumbnail in
        the packet becomes the contact avatar when the contact has none; it
        is never carried on the event.
        """
        kind = parse_event_kind(body.get("event"))
        phone_number = str(body.get("phoneNumber") or "")
        contact_name = _optional_str(body.get("contactName"))

        contact = self._contacts.get_contact(contact_name, phone_number)

        thumbnail = body.get("phoneThumbnail")
        if thumbnail and not contact.avatar_path:
            await self._async_update_avatar(contact, thumbnail)

        return TelephonyEvent(
            kind=kind,
            phone_number=phone_number,
            contact=contact,
            icon=select_icon(kind, contact),
            time=int(self._clock()),
            contact_name=contact_name,
            message_body=_optional_str(body.get("messageBody")),
            is_cancel=_coerce_bool(body.get("isCancel", False)),
        )

    async def _async_update_avatar(self, contact: Contact, thumbnail: Any) -> None:
        try:
            image = base64.b64decode(str(thumbnail), validate=True)
        except (binascii.Error, ValueError) as err:
            _LOGGER.warning("Ignoring malformed thumbnail for %s: %s", contact.name, err)
            return

        _LOGGER.debug("Updating avatar for %s", contact.name)
        await self._contacts.async_set_avatar(contact, image)
