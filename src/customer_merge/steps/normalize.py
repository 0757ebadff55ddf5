from __future__ import annotations

import re

_NON_DIGIT = re.compile(r"\D")


def normalize_phone(
    raw: object,
    country_prefix: str = "33",
    national_length: int = 9,
    trunk_digit: str = "0",
) -> str:
    """Reduce a phone number to its core national digits.

    ``+33 6 12 34 56 78`` loses the country prefix and ``06 12 34 56 78``
    loses the trunk digit, so both yield ``612345678``. Anything else comes
    back as its bare digit string.
    """
    if raw is None:
        return ""
    digits = _NON_DIGIT.sub("", str(raw))
    if not digits:
        return ""
    if digits.startswith(country_prefix) and len(digits) >= len(country_prefix) + national_length:
        return digits[len(country_prefix) :]
    if digits.startswith(trunk_digit) and len(digits) == national_length + len(trunk_digit):
        return digits[len(trunk_digit) :]
    return digits


def normalize_name(raw: object) -> str:
    """Lowercase, trim and collapse whitespace runs. Empty means "not matchable"."""
    if raw is None:
        return ""
    return " ".join(str(raw).lower().split())


def normalize_email(raw: object) -> str:
    if raw is None:
        return ""
    return str(raw).strip().lower()


def full_name_key(first_name: object, last_name: object) -> str:
    return normalize_name(f"{first_name or ''} {last_name or ''}")
