from __future__ import annotations

from threading import Lock
from typing import Tuple

LabelKey = Tuple[Tuple[str, str], ...]

_lock = Lock()
_counters: dict[str, dict[LabelKey, int]] = {}
# last-written values (current float balance per pool)
_gauges: dict[str, dict[LabelKey, int]] = {}


def _key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted((labels or {}).items()))


def _inc(name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
    key = _key(labels)
    with _lock:
        series = _counters.setdefault(name, {})
        series[key] = int(series.get(key, 0)) + int(value)


def _set(name: str, labels: dict[str, str] | None, value: int) -> None:
    with _lock:
        _gauges.setdefault(name, {})[_key(labels)] = int(value)


def increment_http_requests(route: str, status: int) -> None:
    _inc("http_requests_total", {"route": route, "status": str(status)})


def increment_confirmation(outcome: str) -> None:
    _inc("c2b_confirmations_total", {"outcome": outcome})


def increment_validation(accepted: bool) -> None:
    _inc("c2b_validations_total", {"accepted": str(accepted).lower()})


def increment_dispatch_attempt(provider: str, result: str) -> None:
    _inc("airtime_dispatch_total", {"provider": provider, "result": result})


def increment_ledger_adjustment(kind: str, result: str) -> None:
    _inc("float_adjustments_total", {"kind": kind, "result": result})


def set_float_balance(pool_id: str, balance_cents: int) -> None:
    _set("float_balance_cents", {"pool": pool_id}, balance_cents)


def counter_value(name: str, labels: dict[str, str] | None = None) -> int:
    with _lock:
        return int(_counters.get(name, {}).get(_key(labels), 0))


def gauge_value(name: str, labels: dict[str, str] | None = None) -> int | None:
    with _lock:
        return _gauges.get(name, {}).get(_key(labels))


def reset() -> None:
    with _lock:
        _counters.clear()
        _gauges.clear()


def _render(kind: str, families: dict[str, dict[LabelKey, int]], lines: list[str]) -> None:
    for name, series in sorted(families.items()):
        lines.append(f"# TYPE {name} {kind}")
        for labels, value in sorted(series.items()):
            if labels:
                label_str = ",".join(f'{k}="{v}"' for k, v in labels)
                lines.append(f"{name}{{{label_str}}} {value}")
            else:
                lines.append(f"{name} {value}")


def render_prometheus() -> str:
    lines: list[str] = []
    with _lock:
        _render("counter", _counters, lines)
        _render("gauge", _gauges, lines)
    return "\n".join(lines) + ("\n" if lines else "")
