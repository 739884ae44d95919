"""Notification presentation for the PhoneLink integration."""

from __future__ import annotations

import logging

from homeassistant.components.persistent_notification import (
    async_create,
    async_dismiss,
)
from homeassistant.core import HomeAssistant

from .const import DOMAIN, HA_EVENT_NOTIFICATION
from .models import NotificationDescriptor

_LOGGER = logging.getLogger(__name__)


class PhoneLinkNotificationManager:
    """Show telephony notifications as persistent notifications.

    Each notification is also fired on the event bus together with its
    actions so automations can forward it, for example to a mobile app.
    """

    def __init__(self, hass: HomeAssistant, device_id: str, device_name: str) -> None:
        """Initialize notification manager."""
        self.hass = hass
        self.device_id = device_id
        self.device_name = device_name
        self._active: set[str] = set()

    def get_notification_id(self, notification_id: str) -> str:
        """Generate the Home Assistant notification id for this device."""
        return f"{DOMAIN}_{self.device_id}_{notification_id}"

    @property
    def active(self) -> set[str]:
        return set(self._active)

    def present(self, notification: NotificationDescriptor) -> None:
        async_create(
            self.hass,
            message=notification.body,
            title=notification.title,
            notification_id=self.get_notification_id(notification.notification_id),
        )
        self._active.add(notification.notification_id)
        self.hass.bus.async_fire(
            HA_EVENT_NOTIFICATION,
            {
                "device_id": self.device_id,
                "device_name": self.device_name,
                **notification.to_dict(),
            },
        )
        _LOGGER.debug(
            "Presented notification %s for device %s",
            notification.notification_id,
            self.device_id,
        )

    def withdraw(self, notification_id: str) -> None:
        if notification_id not in self._active:
            _LOGGER.debug("Notification %s is not shown, nothing to withdraw", notification_id)
            return
        async_dismiss(self.hass, self.get_notification_id(notification_id))
        self._active.discard(notification_id)
        _LOGGER.debug(
            "Withdrew notification %s for device %s", notification_id, self.device_id
        )

    def dismiss_all(self) -> None:
        """Dismiss all notifications for this device."""
        for notification_id in list(self._active):
            async_dismiss(self.hass, self.get_notification_id(notification_id))
        self._active.clear()
        _LOGGER.info("Dismissed all notifications for device %s", self.device_id)
