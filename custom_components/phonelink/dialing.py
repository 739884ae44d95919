"""Phone number matching helpers for the PhoneLink integration."""

from __future__ import annotations

from dataclasses import dataclass

_FORMATTING_CHARS = {" ", "-", "(", ")", ".", "/", "\t", "\r", "\n"}


def strip_to_digits(value: str | None) -> str:
    """Return only the digit characters from *value*."""
    if not value:
        return ""
    return "".join(ch for ch in value if ch.isdigit())


def clean_phone_number(value: str | None) -> str:
    """Remove formatting characters while preserving a leading plus and digits."""
    if value is None:
        return ""

    result: list[str] = []
    for char in str(value).strip():
        if char in _FORMATTING_CHARS:
            continue
        if char == "+":
            if not result:
                result.append(char)
            continue
        if char.isdigit():
            result.append(char)

    cleaned = "".join(result)
    return cleaned if strip_to_digits(cleaned) else ""


def numbers_match(lhs: str | None, rhs: str | None) -> bool:
    """Return True when both numbers carry the same digit sequence.

    Spacing, punctuation and a leading plus are ignored; a number
    without any digit never matches.
    """
    lhs_digits = strip_to_digits(lhs)
    if not lhs_digits:
        return False
    return lhs_digits == strip_to_digits(rhs)


@dataclass(frozen=True, slots=True)
class PhoneNumberMatcher:
    """Digit-sequence matcher bound to one query number."""

    number: str

    @property
    def digits(self) -> str:
        return strip_to_digits(self.number)

    def matches(self, candidate: str | None) -> bool:
        return numbers_match(self.number, candidate)
