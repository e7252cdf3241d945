# app/carriers/msisdn.py
from __future__ import annotations

import re

COUNTRY_CODE = "254"
LOCAL_PREFIX = "0"
NATIONAL_LENGTH = 9  # digits after the country code / leading zero

_SEPARATORS = re.compile(r"[\s\-().]")


def _strip(raw: str | None) -> str:
    return _SEPARATORS.sub("", (raw or "").strip())


def to_local(raw: str | None) -> str | None:
    """
    Canonical local form: 0XXXXXXXXX (10 digits).

    Accepts +254XXXXXXXXX, 254XXXXXXXXX and 0XXXXXXXXX. Anything else
    (bare national digits, wrong length, non-numeric) returns None.
    """
    value = _strip(raw)
    if value.startswith("+"):
        value = value[1:]
        if not value.startswith(COUNTRY_CODE):
            return None

    if not (value.isascii() and value.isdigit()):
        return None

    if value.startswith(COUNTRY_CODE) and len(value) == len(COUNTRY_CODE) + NATIONAL_LENGTH:
        value = LOCAL_PREFIX + value[len(COUNTRY_CODE):]

    if len(value) != NATIONAL_LENGTH + 1 or not value.startswith(LOCAL_PREFIX):
        return None
    return value


def national_number(raw: str | None) -> str | None:
    local = to_local(raw)
    return local[1:] if local else None


def to_e164(raw: str | None) -> str | None:
    nsn = national_number(raw)
    return f"+{COUNTRY_CODE}{nsn}" if nsn else None
