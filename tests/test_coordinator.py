from __future__ import annotations

from custom_components.phonelink.const import (
    CONF_ALLOW_CALLS,
    CONF_ALLOW_SMS,
    TelephonyPermission,
)
from custom_components.phonelink.coordinator import permissions_from_options


def test_permissions_default_to_everything():
    assert permissions_from_options({}) == (
        TelephonyPermission.CALLS | TelephonyPermission.SMS
    )


def test_permissions_follow_options():
    assert permissions_from_options({CONF_ALLOW_SMS: False}) == TelephonyPermission.CALLS
    assert permissions_from_options({CONF_ALLOW_CALLS: False}) == TelephonyPermission.SMS
    assert (
        permissions_from_options({CONF_ALLOW_CALLS: False, CONF_ALLOW_SMS: False})
        == TelephonyPermission.NONE
    )
