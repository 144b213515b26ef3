"""Geocoding and distance helpers."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import requests
from geopy.distance import great_circle

from .models import GeocodeResult
from .settings import GeocodeSettings

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

UNITS = ("mi", "km")


class NominatimGeocoder:
    """Thin wrapper around the public Nominatim search API."""

    def __init__(self, settings: Optional[GeocodeSettings] = None, session: Optional[requests.Session] = None) -> None:
        self.settings = settings or GeocodeSettings()
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": self.settings.user_agent})

    def geocode(self, query: str) -> Optional[GeocodeResult]:
        """Return the best match for a zip code or city name, if any."""

        logger.debug("Geocoding %r", query)
        response = self._session.get(
            self.settings.provider_url,
            params=self.settings.query_params(query),
            timeout=self.settings.timeout,
        )
        response.raise_for_status()
        items = response.json()
        if not items:
            return None
        item = items[0]
        try:
            latitude = float(item["lat"])
            longitude = float(item["lon"])
        except (KeyError, TypeError, ValueError):
            return None
        return GeocodeResult(
            address=item.get("display_name", query),
            latitude=latitude,
            longitude=longitude,
            raw=item,
        )


def distance_between(a: Point, b: Point, unit: str = "mi") -> float:
    """Great-circle distance between two ``(lat, lon)`` points in degrees.

    Uses the spherical model with the Earth's mean radius. Points are put in a
    canonical order first so ``d(a, b) == d(b, a)`` holds bit for bit.
    """

    if unit not in UNITS:
        raise ValueError(f"Unknown distance unit: {unit}")
    if a == b:
        return 0.0
    first, second = sorted((tuple(a), tuple(b)))
    distance = great_circle(first, second)
    return float(distance.miles if unit == "mi" else distance.kilometers)


def format_distance(value: float, unit: str = "mi") -> str:
    """Render a distance as a short label.

    Below 0.1 the label is clamped, below 1 two decimals are shown, below 10
    one decimal, otherwise whole units.
    """

    if value < 0.1:
        return f"< 0.1 {unit}"
    if value < 1:
        return f"{value:.2f} {unit}"
    if value < 10:
        return f"{value:.1f} {unit}"
    return f"{value:.0f} {unit}"
