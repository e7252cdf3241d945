# app/providers/airtime/http.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

logger = logging.getLogger("airtime.http.client")

_REDACTED_HEADERS = {"authorization", "apikey", "x-api-key"}


@dataclass
class HttpResponse:
    status_code: int
    json: Optional[Any]
    text: str


class HttpClient:
    """
    Thin httpx wrapper for provider calls. Every call carries the finite
    timeout given here; httpx.TimeoutException and httpx.HTTPError reach the
    caller unchanged.
    """

    def __init__(self, timeout_s: float = 20.0, follow_redirects: bool = True):
        self._client = httpx.Client(timeout=timeout_s, follow_redirects=follow_redirects)

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        json_body: dict[str, Any] | None = None,
        debug: bool = False,
    ) -> HttpResponse:
        r = self._client.request(method, url, headers=headers, json=json_body)
        if debug or logger.isEnabledFor(logging.DEBUG):
            _debug_dump(method, url, headers, r)
        return _wrap(r)

    def post(self, url: str, *, headers: dict[str, str], json_body: dict[str, Any] | None = None, debug: bool = False):
        return self.request("POST", url, headers=headers, json_body=json_body, debug=debug)

    def get(self, url: str, *, headers: dict[str, str], debug: bool = False):
        return self.request("GET", url, headers=headers, debug=debug)

    def close(self) -> None:
        self._client.close()


def _wrap(r: httpx.Response) -> HttpResponse:
    try:
        payload = r.json()
    except ValueError:
        payload = None
    return HttpResponse(status_code=r.status_code, json=payload, text=r.text)


def _debug_dump(method: str, url: str, headers: dict[str, str], r: httpx.Response) -> None:
    # request bodies are never logged: they carry service PINs
    safe_headers = {k: ("REDACTED" if k.lower() in _REDACTED_HEADERS else v) for k, v in (headers or {}).items()}
    logger.debug(
        "http %s %s headers=%s -> status=%s text=%s",
        method,
        url,
        safe_headers,
        r.status_code,
        r.text[:300],
    )
