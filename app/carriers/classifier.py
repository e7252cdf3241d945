# app/carriers/classifier.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from app.carriers.msisdn import to_local


class Carrier(str, Enum):
    SAFARICOM = "SAFARICOM"
    AIRTEL = "AIRTEL"
    TELKOM = "TELKOM"
    EQUITEL = "EQUITEL"
    FAIBA = "FAIBA"
    UNKNOWN = "UNKNOWN"


def _span(start: int, end: int) -> list[str]:
    return [f"{n:04d}" for n in range(start, end + 1)]


# Four-digit local prefixes (0XXX) allocated to each national operator.
PREFIX_TABLE: dict[str, Carrier] = {}
for _prefixes, _carrier in (
    (_span(700, 729), Carrier.SAFARICOM),
    (_span(740, 743), Carrier.SAFARICOM),
    (["0745", "0746", "0748"], Carrier.SAFARICOM),
    (_span(757, 759), Carrier.SAFARICOM),
    (["0768", "0769"], Carrier.SAFARICOM),
    (_span(790, 799), Carrier.SAFARICOM),
    (_span(110, 119), Carrier.SAFARICOM),
    (_span(730, 739), Carrier.AIRTEL),
    (_span(750, 756), Carrier.AIRTEL),
    (["0762"], Carrier.AIRTEL),
    (_span(780, 789), Carrier.AIRTEL),
    (_span(100, 109), Carrier.AIRTEL),
    (_span(770, 779), Carrier.TELKOM),
    (_span(763, 766), Carrier.EQUITEL),
    (["0747"], Carrier.FAIBA),
):
    for _p in _prefixes:
        PREFIX_TABLE[_p] = _carrier


@dataclass(frozen=True)
class Classification:
    carrier: Carrier
    msisdn: Optional[str]  # canonical local form, None when unparsable
    pool_key: Optional[str] = None

    @property
    def known(self) -> bool:
        return self.carrier != Carrier.UNKNOWN


UNKNOWN = Classification(carrier=Carrier.UNKNOWN, msisdn=None)


def classify(phone_number: str | None, pools: Mapping[str, str] | None = None) -> Classification:
    """
    Map a phone number to its carrier and, when a pool mapping is supplied,
    the float pool that funds it. pool_key stays None for carriers the
    mapping does not cover; resolving that is the caller's concern.
    """
    local = to_local(phone_number)
    if local is None:
        return UNKNOWN

    carrier = PREFIX_TABLE.get(local[:4])
    if carrier is None:
        return Classification(carrier=Carrier.UNKNOWN, msisdn=local)

    pool_key = (pools or {}).get(carrier.value)
    return Classification(carrier=carrier, msisdn=local, pool_key=pool_key)
