import pytest
import requests

from shoplocal_directory.location import (
    FAILURE_MESSAGES,
    MANUAL_EMPTY_MESSAGE,
    MANUAL_FAILED_MESSAGE,
    MANUAL_NOT_FOUND_MESSAGE,
    GeolocationError,
    GeolocationFailure,
    LocationResolver,
    ResolutionInProgress,
    ResolverState,
    classify_geolocation_error,
)
from shoplocal_directory.models import GeocodeResult, LocationSource


class FakeGeocoder:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.queries = []

    def geocode(self, query):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return self.result


FRESNO = GeocodeResult(address="Fresno, California, United States", latitude=36.7378, longitude=-119.7871, raw={})


def failing_provider(code, message=""):
    def provider():
        raise GeolocationError(code, message)

    return provider


@pytest.mark.parametrize(
    "code, message, expected",
    [
        (1, "User denied Geolocation", GeolocationFailure.PERMISSION_DENIED),
        (2, "", GeolocationFailure.POSITION_UNAVAILABLE),
        (3, "Timeout expired", GeolocationFailure.TIMEOUT),
        (1, "Geolocation has been disabled in this document by Permissions Policy.", GeolocationFailure.POLICY_BLOCKED),
        (99, "", GeolocationFailure.UNKNOWN),
    ],
)
def test_classify_geolocation_error(code, message, expected):
    assert classify_geolocation_error(GeolocationError(code, message)) is expected


def test_detect_resolves_device_location():
    changes = []
    resolver = LocationResolver(position_provider=lambda: (40.0, -75.0), geocoder=FakeGeocoder())
    resolver.on_change(lambda r: changes.append(r.state))

    location = resolver.detect()

    assert location.point == (40.0, -75.0)
    assert location.source is LocationSource.DEVICE
    assert resolver.state is ResolverState.RESOLVED
    assert resolver.error is None
    assert changes == [ResolverState.RESOLVED]


def test_detect_denied_offers_manual_entry():
    resolver = LocationResolver(position_provider=failing_provider(1), geocoder=FakeGeocoder())

    assert resolver.detect() is None

    assert resolver.state is ResolverState.FAILED
    assert resolver.failure is GeolocationFailure.PERMISSION_DENIED
    assert resolver.error == FAILURE_MESSAGES[GeolocationFailure.PERMISSION_DENIED]
    assert resolver.manual_entry_offered
    assert resolver.location is None


def test_detect_without_provider_is_unsupported():
    resolver = LocationResolver(geocoder=FakeGeocoder())

    assert resolver.detect() is None

    assert resolver.state is ResolverState.FAILED
    assert resolver.failure is GeolocationFailure.UNSUPPORTED
    assert resolver.manual_entry_offered


def test_failed_detection_keeps_previous_location_value():
    resolver = LocationResolver(position_provider=lambda: (40.0, -75.0), geocoder=FakeGeocoder())
    resolver.detect()
    resolver.position_provider = failing_provider(3)

    resolver.detect()

    assert resolver.state is ResolverState.FAILED
    assert resolver.location.point == (40.0, -75.0)


def test_manual_lookup_resolves():
    geocoder = FakeGeocoder(result=FRESNO)
    resolver = LocationResolver(geocoder=geocoder)

    location = resolver.lookup("  93721 ")

    assert geocoder.queries == ["93721"]
    assert location.source is LocationSource.MANUAL
    assert location.label == FRESNO.address
    assert resolver.state is ResolverState.RESOLVED
    assert not resolver.manual_entry_offered


def test_manual_lookup_blank_input():
    geocoder = FakeGeocoder(result=FRESNO)
    resolver = LocationResolver(geocoder=geocoder)

    assert resolver.lookup("   ") is None

    assert resolver.error == MANUAL_EMPTY_MESSAGE
    assert resolver.state is ResolverState.IDLE
    assert geocoder.queries == []


def test_manual_lookup_not_found():
    resolver = LocationResolver(geocoder=FakeGeocoder(result=None))
    assert resolver.lookup("nowhere") is None
    assert resolver.error == MANUAL_NOT_FOUND_MESSAGE
    assert resolver.state is ResolverState.FAILED


def test_manual_lookup_network_failure():
    resolver = LocationResolver(geocoder=FakeGeocoder(error=requests.ConnectionError("down")))
    assert resolver.lookup("Fresno") is None
    assert resolver.error == MANUAL_FAILED_MESSAGE
    assert resolver.state is ResolverState.FAILED


def test_clear_returns_to_idle_and_notifies():
    changes = []
    resolver = LocationResolver(geocoder=FakeGeocoder(result=FRESNO))
    resolver.on_change(lambda r: changes.append(r.location))
    resolver.lookup("Fresno")

    resolver.clear()

    assert resolver.state is ResolverState.IDLE
    assert resolver.location is None
    assert changes[-1] is None
    assert len(changes) == 2


def test_second_resolution_while_resolving_is_rejected():
    resolver = LocationResolver(geocoder=FakeGeocoder(result=FRESNO))

    def reentrant_provider():
        resolver.lookup("Fresno")
        return (40.0, -75.0)

    resolver.position_provider = reentrant_provider

    with pytest.raises(ResolutionInProgress):
        resolver.detect()
    assert resolver.state is ResolverState.FAILED


def test_unsupported_device_after_manual_location_is_a_failure():
    resolver = LocationResolver(geocoder=FakeGeocoder(result=FRESNO))
    resolver.lookup("Fresno")

    resolver.detect()

    assert resolver.state is ResolverState.FAILED
    assert resolver.error == FAILURE_MESSAGES[GeolocationFailure.UNSUPPORTED]
    assert resolver.location.label == FRESNO.address


class RecordingLock:
    def __init__(self):
        self.entered = 0

    def __enter__(self):
        self.entered += 1
        return self

    def __exit__(self, *exc_info):
        return False


def test_blank_lookup_sets_error_under_lock():
    resolver = LocationResolver(geocoder=FakeGeocoder(result=FRESNO))
    resolver._lock = RecordingLock()

    resolver.lookup("")

    assert resolver._lock.entered == 1
    assert resolver.error == MANUAL_EMPTY_MESSAGE
