"""Fakes shared by the test modules."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

_INVALID_JSON = object()


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200):
        self._payload = payload
        self.status_code = status_code
        self.headers: Dict[str, str] = {}

    def json(self):
        if self._payload is _INVALID_JSON:
            raise ValueError("No JSON object could be decoded")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            import requests

            raise requests.HTTPError(f"{self.status_code} error")
        return None


def invalid_json_response(status_code: int = 200) -> FakeResponse:
    return FakeResponse(_INVALID_JSON, status_code=status_code)


class FakeSession:
    """Answers GET requests by the last path segment(s) of the URL.

    A value in ``routes`` may be a payload, a :class:`FakeResponse` or an
    exception instance to raise.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes = dict(routes or {})
        self.headers: Dict[str, str] = {}
        self.calls: List[Dict[str, Any]] = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        for suffix in sorted(self.routes, key=len, reverse=True):
            if url.endswith(suffix):
                value = self.routes[suffix]
                break
        else:
            return FakeResponse({"message": "No route"}, status_code=404)
        if isinstance(value, BaseException):
            raise value
        if isinstance(value, FakeResponse):
            return value
        return FakeResponse(value)

    def calls_to(self, suffix: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["url"].endswith(suffix)]


def make_place(place_id: int, **overrides: Any) -> Dict[str, Any]:
    place: Dict[str, Any] = {
        "id": place_id,
        "title": {"raw": f"Shop {place_id}", "rendered": f"Shop {place_id}"},
        "content": {"raw": "", "rendered": f"<p>Shop number {place_id}</p>"},
        "region": "California",
        "city": "Fresno",
        "rating": 4.0,
    }
    place.update(overrides)
    return place


class FakeClock:
    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
