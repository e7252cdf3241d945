from __future__ import annotations

import re
from typing import Any


# Kenyan mobile numbers: +2547XXXXXXXX / 2547XXXXXXXX / 07XXXXXXXX / 01XXXXXXXX
_PHONE_RE = re.compile(r"(?<!\d)(?:\+?254|0)[17]\d{8}(?!\d)")

_SECRET_KEY_MARKERS = ("token", "authorization", "secret", "password", "pin", "apikey", "api_key")

# callback fields that always carry a subscriber number, whatever its format
_PHONE_KEYS = {"msisdn", "billrefnumber", "payer_msisdn", "topup_number", "phonenumber", "receivermsisdn"}

_NAME_KEYS = {"firstname", "middlename", "lastname", "payer_name"}

_TOKEN_MARKERS = ("access_token", "bearer ")

REDACTED = "[REDACTED]"


def _mask_phone(value: str) -> str:
    if len(value) <= 6:
        return "*" * len(value)
    return f"{value[:-6]}****{value[-2:]}"


def redact_msisdn(value: str | None) -> str:
    if not value:
        return ""
    return _mask_phone(str(value).strip())


def redact_text(value: str) -> str:
    lowered = value.lower()
    if any(marker in lowered for marker in _TOKEN_MARKERS):
        return REDACTED
    return _PHONE_RE.sub(lambda m: _mask_phone(m.group(0)), value)


def _key_class(key: str) -> str | None:
    key_l = (key or "").lower()
    if any(marker in key_l for marker in _SECRET_KEY_MARKERS):
        return "secret"
    if key_l in _PHONE_KEYS:
        return "phone"
    if key_l in _NAME_KEYS:
        return "name"
    return None


def redact_value(value: Any) -> Any:
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, dict):
        return redact_dict(value)
    if isinstance(value, (list, tuple)):
        return [redact_value(v) for v in value]
    return value


def redact_dict(payload: dict[str, Any]) -> dict[str, Any]:
    """Copy of payload that is safe to log: secrets dropped, numbers and names masked."""
    out: dict[str, Any] = {}
    for k, v in payload.items():
        kind = _key_class(k)
        if kind == "secret":
            out[k] = REDACTED
        elif kind == "phone" and v is not None and not isinstance(v, (dict, list)):
            out[k] = redact_msisdn(str(v))
        elif kind == "name" and v:
            out[k] = str(v)[:1] + "***"
        else:
            out[k] = redact_value(v)
    return out
