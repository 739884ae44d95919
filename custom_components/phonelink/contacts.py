"""Contact resolution and avatar caching for the PhoneLink integration."""

from __future__ import annotations

import asyncio
import logging
import os
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol, TypeVar

from homeassistant.core import HomeAssistant
from homeassistant.helpers.storage import Store

from .const import (
    AVATAR_CACHE_DIR,
    AVATAR_EXTENSION,
    DOMAIN,
    STORAGE_KEY_CONTACTS,
    STORAGE_VERSION_CONTACTS,
    UNKNOWN_CONTACT_NAME,
)
from .dialing import numbers_match, strip_to_digits
from .models import Contact

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")

# Delay before persisting contact changes (seconds)
CONTACTS_SAVE_DELAY = 10


class ContactResolver(Protocol):
    """Resolve a (name, number) pair to a contact record."""

    def get_contact(self, name: str | None, number: str) -> Contact:
        """Return a best-effort contact; never fails."""

    async def async_set_avatar(self, contact: Contact, image: bytes) -> str:
        """Store *image* as the avatar of *contact* and return its path."""


def write_avatar_file(cache_dir: Path, image: bytes) -> str:
    """Write *image* under a random name in *cache_dir* and return the path."""
    cache_dir.mkdir(parents=True, exist_ok=True)
    path = cache_dir / f"{uuid.uuid4()}{AVATAR_EXTENSION}"
    path.write_bytes(image)
    return str(path)


class ContactBook:
    """In-memory contact book with an on-disk avatar cache."""

    def __init__(self, cache_dir: Path | str) -> None:
        self.cache_dir = Path(cache_dir)
        self._contacts: list[Contact] = []

    @property
    def contacts(self) -> list[Contact]:
        return list(self._contacts)

    def load(self, contacts: list[Contact]) -> None:
        self._contacts = list(contacts)

    def find_by_number(self, number: str | None) -> Contact | None:
        for contact in self._contacts:
            if any(numbers_match(number, known) for known in contact.numbers):
                return contact
        return None

    def find_by_name(self, name: str | None) -> Contact | None:
        if not name:
            return None
        for contact in self._contacts:
            if contact.name == name:
                return contact
        return None

    def get_contact(self, name: str | None, number: str) -> Contact:
        """Return the contact for *number*, creating one when unknown.

        A new contact is named after *name*, falling back to the number.
        A number without digits (a withheld caller) is never stored; a
        throwaway contact is returned unless *name* is already known.
        """
        name = (name or "").strip()
        number = (number or "").strip()

        if not strip_to_digits(number):
            contact = self.find_by_name(name)
            if contact is not None:
                return contact
            return Contact(name=name or number or UNKNOWN_CONTACT_NAME)

        contact = self.find_by_number(number)
        if contact is not None:
            # Upgrade a placeholder created from a bare number
            if name and contact.name == number:
                contact.name = name
                self._changed()
            return contact

        contact = self.find_by_name(name)
        if contact is not None:
            contact.numbers.append(number)
            self._changed()
            return contact

        contact = Contact(name=name or number, numbers=[number])
        self._contacts.append(contact)
        _LOGGER.debug("Created contact %s", contact.name)
        self._changed()
        return contact

    async def async_set_avatar(self, contact: Contact, image: bytes) -> str:
        """Write *image* to the cache and point *contact* at it.

        Concurrent writes for one contact may each create a file; the record
        keeps the last one written.
        """
        path = await self._async_run_io(write_avatar_file, self.cache_dir, image)
        previous = contact.avatar_path
        contact.avatar_path = path
        _LOGGER.debug("Updated avatar for %s", contact.name)
        if previous and previous != path:
            await self._async_run_io(_remove_file, previous)
        self._changed()
        return path

    async def _async_run_io(self, func: Callable[..., _T], *args: Any) -> _T:
        return await asyncio.get_running_loop().run_in_executor(None, func, *args)

    def _changed(self) -> None:
        """Hook called whenever a contact record changes."""


def _remove_file(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class ContactStore(ContactBook):
    """Contact book persisted with the Home Assistant storage helper."""

    def __init__(self, hass: HomeAssistant, device_id: str) -> None:
        super().__init__(Path(hass.config.path(AVATAR_CACHE_DIR)) / device_id)
        self.hass = hass
        self.device_id = device_id
        self._store: Store[dict[str, Any]] = Store(
            hass,
            STORAGE_VERSION_CONTACTS,
            f"{DOMAIN}_{device_id}_{STORAGE_KEY_CONTACTS}",
        )

    async def async_initialize(self) -> None:
        """Load contacts from storage."""
        data = await self._store.async_load()
        if data:
            try:
                self.load([Contact.from_dict(item) for item in data.get("contacts", [])])
            except (KeyError, TypeError) as err:
                _LOGGER.warning("Ignoring unreadable contact cache: %s", err)
        _LOGGER.debug(
            "Loaded %d contacts for device %s", len(self._contacts), self.device_id
        )

    async def _async_run_io(self, func: Callable[..., _T], *args: Any) -> _T:
        return await self.hass.async_add_executor_job(func, *args)

    def _changed(self) -> None:
        self._store.async_delay_save(self._data_to_save, CONTACTS_SAVE_DELAY)

    def _data_to_save(self) -> dict[str, Any]:
        return {
            "device_id": self.device_id,
            "contacts": [contact.to_dict() for contact in self._contacts],
        }

    async def async_flush(self) -> None:
        """Persist pending changes immediately."""
        await self._store.async_save(self._data_to_save())
