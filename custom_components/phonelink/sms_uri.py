"""Parsing and serialization of ``sms:`` URIs (RFC 5724).

The grammar is deliberately lenient about the number format: recipients may
use characters from global and local tel numbers as well as single interior
spaces, so numbers can be passed verbatim from an address book or a platform
lookup. A ``sms:///`` prefix, as produced by file-style URI handlers, is
accepted too.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Final
from urllib.parse import quote, unquote

_LOGGER = logging.getLogger(__name__)

SMS_SCHEME: Final = "sms:"
BODY_FIELD: Final = "body"
PHONE_CONTEXT_PARAM: Final = "phone-context"

_SMS_PARAM = r"[\w.!~*'()-]+(?:=(?:[\w.!~*'()-]|%[0-9A-F]{2})*)?"
_TEL_PARAM = r";[a-zA-Z0-9-]+=(?:[\w\[\]/:&+$.!~*'()-]|%[0-9A-F]{2})+"
_LENIENT_DIGITS = r"[+]?(?:[0-9A-F*#().-]| (?! )|%20(?!%20))+"
_LENIENT_NUMBER = _LENIENT_DIGITS + "(?:" + _TEL_PARAM + ")*"

# Fragments (#foo) are not allowed.
_SMS_RE: Final = re.compile(
    r"sms:"
    r"(?:/{2,3})?"
    r"(" + _LENIENT_NUMBER + r"(?:," + _LENIENT_NUMBER + r")*)"
    r"(?:\?(" + _SMS_PARAM + r"(?:&" + _SMS_PARAM + r")*))?",
    re.ASCII,
)

_NUMBER_RE: Final = re.compile(
    r"(" + _LENIENT_DIGITS + r")((?:" + _TEL_PARAM + r")*)",
    re.ASCII,
)

# Characters the query grammar accepts unescaped in a field value.
_BODY_SAFE: Final = "!~*'()"


class SmsUriError(ValueError):
    """Base error for sms: URI parsing."""


class MalformedUriError(SmsUriError):
    """The input does not match the sms: URI grammar."""


class DuplicateFieldError(SmsUriError):
    """A query field that may appear once appeared more than once."""

    def __init__(self, field_name: str) -> None:
        super().__init__(f'duplicate "{field_name}" field')
        self.field_name = field_name


def _parse_recipient(recipient: str) -> str:
    match = _NUMBER_RE.fullmatch(recipient)
    if match is None:
        raise MalformedUriError(f"malformed recipient: {recipient!r}")

    number, params = match.groups()
    if params:
        for param in params[1:].split(";"):
            key, _, value = param.partition("=")
            if key == PHONE_CONTEXT_PARAM and value.startswith("+"):
                return value + unquote(number)

    return unquote(number)


def _parse_body(query: str | None) -> str | None:
    if not query:
        return None

    body: str | None = None
    seen = False
    for field in query.split("&"):
        key, has_value, value = field.partition("=")
        if key != BODY_FIELD:
            continue
        if seen:
            raise DuplicateFieldError(BODY_FIELD)
        seen = True
        if has_value:
            try:
                body = unquote(value, errors="strict")
            except UnicodeDecodeError as err:
                raise MalformedUriError("body is not valid UTF-8") from err

    return body


def escape_body(body: str) -> str:
    """Percent-encode a message body for use in an sms: query."""
    return quote(body, safe=_BODY_SAFE)


@dataclass(frozen=True, slots=True)
class SmsUri:
    """An sms: URI: one or more recipients and an optional message body."""

    recipients: tuple[str, ...]
    body: str | None = None

    def __post_init__(self) -> None:
        if not self.recipients:
            raise ValueError("sms: URI requires at least one recipient")

    @classmethod
    def parse(cls, uri: str) -> SmsUri:
        """Parse *uri*, raising a SmsUriError subclass on failure."""
        match = _SMS_RE.fullmatch(uri) if isinstance(uri, str) else None
        if match is None:
            raise MalformedUriError("malformed sms URI")

        recipients, query = match.groups()
        return cls(
            recipients=tuple(
                _parse_recipient(recipient) for recipient in recipients.split(",")
            ),
            body=_parse_body(query),
        )

    def __str__(self) -> str:
        uri = SMS_SCHEME + ",".join(self.recipients)
        if self.body is None:
            return uri
        return f"{uri}?{BODY_FIELD}={escape_body(self.body)}"


@dataclass(frozen=True, slots=True)
class SmsUriResult:
    """Outcome of parsing an sms: URI without raising."""

    uri: SmsUri | None = None
    error: SmsUriError | None = None

    @property
    def ok(self) -> bool:
        return self.uri is not None


def parse_sms_uri(uri: str) -> SmsUriResult:
    """Parse *uri* into an SmsUriResult carrying either the URI or the error."""
    try:
        return SmsUriResult(uri=SmsUri.parse(uri))
    except SmsUriError as err:
        _LOGGER.debug("Error parsing sms URI %r: %s", uri, err)
        return SmsUriResult(error=err)


def serialize_sms_uri(uri: SmsUri) -> str:
    """Return the string form of *uri*."""
    return str(uri)
