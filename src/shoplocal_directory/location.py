"""Resolution of the user's location for distance sorting.

The resolver first tries the device position (an injected provider, since
positioning is owned by the embedding runtime) and, when that fails, offers a
manual lookup of a zip code or city name through the geocoder.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, List, Optional, Tuple

import requests

from .geocode import NominatimGeocoder
from .models import Location, LocationSource

logger = logging.getLogger(__name__)

PositionProvider = Callable[[], Tuple[float, float]]


class ResolverState(str, Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    FAILED = "failed"


class GeolocationFailure(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    POLICY_BLOCKED = "policy_blocked"
    UNSUPPORTED = "unsupported"
    UNKNOWN = "unknown"


FAILURE_MESSAGES = {
    GeolocationFailure.PERMISSION_DENIED: (
        "Location access denied. This feature requires location permissions. "
        "Please enable location access in your browser settings, or try using HTTPS."
    ),
    GeolocationFailure.POSITION_UNAVAILABLE: (
        "Location unavailable. Please check your device's location services."
    ),
    GeolocationFailure.TIMEOUT: "Location request timed out. Please try again.",
    GeolocationFailure.POLICY_BLOCKED: (
        "Location access is blocked by your browser. This may happen when the site is "
        "embedded or not served over HTTPS. Try opening the site directly in a new tab."
    ),
    GeolocationFailure.UNSUPPORTED: "Geolocation is not supported by your browser",
    GeolocationFailure.UNKNOWN: "Unable to detect your location.",
}

MANUAL_EMPTY_MESSAGE = "Please enter a zip code or city name"
MANUAL_NOT_FOUND_MESSAGE = "Location not found. Please try a valid US zip code or city name."
MANUAL_FAILED_MESSAGE = "Unable to find location. Please try again."

# Position error codes as reported by device geolocation.
_CODE_FAILURES = {
    1: GeolocationFailure.PERMISSION_DENIED,
    2: GeolocationFailure.POSITION_UNAVAILABLE,
    3: GeolocationFailure.TIMEOUT,
}


class GeolocationError(Exception):
    """Raised by a position provider when the device cannot report a position."""

    def __init__(self, code: int, message: str = "") -> None:
        super().__init__(message or f"geolocation error {code}")
        self.code = code
        self.message = message


class ResolutionInProgress(RuntimeError):
    """A location resolution attempt is already running."""


def classify_geolocation_error(error: GeolocationError) -> GeolocationFailure:
    if error.message and "permissions policy" in error.message.lower():
        return GeolocationFailure.POLICY_BLOCKED
    return _CODE_FAILURES.get(error.code, GeolocationFailure.UNKNOWN)


class LocationResolver:
    """State machine owning the single current location value."""

    def __init__(
        self,
        position_provider: Optional[PositionProvider] = None,
        geocoder: Optional[NominatimGeocoder] = None,
    ) -> None:
        self.position_provider = position_provider
        self.geocoder = geocoder or NominatimGeocoder()
        self.state = ResolverState.IDLE
        self.location: Optional[Location] = None
        self.error: Optional[str] = None
        self.failure: Optional[GeolocationFailure] = None
        self.manual_entry_offered = False
        self.manual_query = ""
        self._lock = threading.Lock()
        self._listeners: List[Callable[["LocationResolver"], None]] = []

    def on_change(self, callback: Callable[["LocationResolver"], None]) -> None:
        self._listeners.append(callback)

    def _notify(self) -> None:
        for callback in list(self._listeners):
            callback(self)

    def _begin(self) -> None:
        with self._lock:
            if self.state is ResolverState.RESOLVING:
                raise ResolutionInProgress("A location lookup is already in progress")
            self.state = ResolverState.RESOLVING
            self.error = None
            self.failure = None

    def _resolved(self, location: Location) -> None:
        with self._lock:
            self.location = location
            self.state = ResolverState.RESOLVED
            self.error = None
            self.failure = None
            self.manual_entry_offered = False
        logger.info("User location set from %s", location.source.value)
        self._notify()

    def _failed(self, message: str, failure: Optional[GeolocationFailure] = None) -> None:
        with self._lock:
            self.state = ResolverState.FAILED
            self.error = message
            self.failure = failure
            self.manual_entry_offered = True

    def detect(self) -> Optional[Location]:
        """Resolve the location from the device position."""

        if self.position_provider is None:
            self._failed(FAILURE_MESSAGES[GeolocationFailure.UNSUPPORTED], GeolocationFailure.UNSUPPORTED)
            return None

        self._begin()
        try:
            latitude, longitude = self.position_provider()
        except GeolocationError as exc:
            failure = classify_geolocation_error(exc)
            logger.warning("Geolocation failed (%s), manual location offered", failure.value)
            self._failed(FAILURE_MESSAGES[failure], failure)
            return None
        except Exception:
            self._failed(FAILURE_MESSAGES[GeolocationFailure.UNKNOWN], GeolocationFailure.UNKNOWN)
            raise

        location = Location(latitude=float(latitude), longitude=float(longitude), source=LocationSource.DEVICE)
        self._resolved(location)
        return location

    def lookup(self, query: str) -> Optional[Location]:
        """Resolve the location from a zip code or city name."""

        text = (query or "").strip()
        if not text:
            with self._lock:
                self.error = MANUAL_EMPTY_MESSAGE
            return None

        self._begin()
        with self._lock:
            self.manual_query = text
        try:
            result = self.geocoder.geocode(text)
        except requests.RequestException:
            logger.warning("Geocoding failed for %r", text, exc_info=True)
            self._failed(MANUAL_FAILED_MESSAGE)
            return None
        except Exception:
            self._failed(MANUAL_FAILED_MESSAGE)
            raise

        if result is None:
            self._failed(MANUAL_NOT_FOUND_MESSAGE)
            return None

        location = Location(
            latitude=result.latitude,
            longitude=result.longitude,
            source=LocationSource.MANUAL,
            label=result.address,
        )
        self._resolved(location)
        return location

    def clear(self) -> None:
        with self._lock:
            self.state = ResolverState.IDLE
            self.location = None
            self.error = None
            self.failure = None
            self.manual_entry_offered = False
            self.manual_query = ""
        logger.info("User location cleared")
        self._notify()
