import math
from datetime import datetime, timezone

import pytest

from shoplocal_directory.models import FilterState, Location, LocationSource, SortCriterion, Vendor
from shoplocal_directory.pipeline import (
    available_cities,
    build_page,
    clamp_page,
    filter_by_location,
    filtered_vendors,
    location_pairs,
    sort_vendors,
    unique_cities,
    unique_regions,
)

from helpers import make_place


def thirty_places():
    places = [make_place(index) for index in range(1, 31)]
    for place in places[:5]:
        place["region"] = "Texas"
        place["city"] = "Austin"
    return places


def test_first_page_of_thirty():
    result = build_page(thirty_places(), FilterState(), page=1)

    assert len(result.vendors) == 12
    assert result.total_filtered == 30
    assert result.total_pages == 3


def test_region_narrows_to_single_page():
    result = build_page(thirty_places(), FilterState(region="Texas"), page=1)

    assert len(result.vendors) == 5
    assert result.total_filtered == 5
    assert result.total_pages == 1
    assert {vendor.region for vendor in result.vendors} == {"Texas"}


def test_city_filter():
    places = thirty_places()
    places[0]["city"] = "Dallas"
    result = build_page(places, FilterState(region="Texas", city="Austin"))
    assert result.total_filtered == 4


@pytest.mark.parametrize("count", [0, 1, 11, 12, 13, 24, 25, 30, 100])
def test_pages_cover_every_item_once(count):
    places = [make_place(index) for index in range(count)]
    filters = FilterState()
    total_pages = build_page(places, filters).total_pages

    seen = []
    for page in range(1, total_pages + 1):
        result = build_page(places, filters, page=page)
        assert result.total_filtered == count
        seen.extend(vendor.id for vendor in result.vendors)

    assert total_pages == max(1, math.ceil(count / 12))
    assert sorted(seen) == sorted(str(index) for index in range(count))


def test_no_matches_is_an_empty_page():
    result = build_page(thirty_places(), FilterState(region="Nevada"))
    assert result.vendors == []
    assert result.total_filtered == 0
    assert result.total_pages == 1


def test_min_rating_is_inclusive_and_page_local():
    places = [make_place(1, rating=4.0), make_place(2, rating=3.9), make_place(3, rating=5)]
    result = build_page(places, FilterState(min_rating=4.0))

    assert [vendor.id for vendor in result.vendors] == ["1", "3"]
    assert result.total_filtered == 3


def test_verified_and_featured_toggles():
    places = [make_place(1, claimed=1), make_place(2, featured=1), make_place(3, claimed=1, featured=1)]
    assert [v.id for v in build_page(places, FilterState(verified_only=True)).vendors] == ["1", "3"]
    assert [v.id for v in build_page(places, FilterState(featured_only=True)).vendors] == ["2", "3"]


def test_open_now_toggle():
    monday_noon = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
    places = [
        make_place(1, business_hours='["Mo 09:00-17:00"],["UTC":"+0"]'),
        make_place(2, business_hours='["Tu 09:00-17:00"],["UTC":"+0"]'),
        make_place(3),
    ]
    result = build_page(places, FilterState(open_now=True), now=monday_noon)
    assert [vendor.id for vendor in result.vendors] == ["1"]


def test_pinned_vendor_overrides_every_filter():
    places = thirty_places()
    places[29]["rating"] = 1.0
    filters = FilterState(region="Texas", min_rating=5, verified_only=True, pinned_id="30")

    result = build_page(places, filters, page=1)

    assert [vendor.id for vendor in result.vendors] == ["30"]


def test_pinned_unknown_vendor_shows_nothing():
    result = build_page(thirty_places(), FilterState(pinned_id="999"))
    assert result.vendors == []


def vendor(vendor_id, name="x", rating=4.0, distance=None):
    return Vendor(
        id=vendor_id,
        name=name,
        slug=vendor_id,
        logo="",
        banner="",
        tagline="",
        bio="",
        rating=rating,
        distance=distance,
    )


def test_sort_featured_keeps_order():
    items = [vendor("b"), vendor("a"), vendor("c")]
    assert [v.id for v in sort_vendors(items, SortCriterion.FEATURED)] == ["b", "a", "c"]


def test_sort_rating_descending():
    items = [vendor("a", rating=3), vendor("b", rating=5), vendor("c", rating=4)]
    assert [v.id for v in sort_vendors(items, SortCriterion.RATING)] == ["b", "c", "a"]


def test_sort_name_ascending():
    items = [vendor("1", name="delta"), vendor("2", name="Alpha"), vendor("3", name="charlie")]
    assert [v.name for v in sort_vendors(items, SortCriterion.NAME)] == ["Alpha", "charlie", "delta"]


def test_sort_distance_puts_unknown_last():
    items = [vendor("none1"), vendor("far", distance=10.0), vendor("none2"), vendor("near", distance=2.0)]
    assert [v.id for v in sort_vendors(items, SortCriterion.DISTANCE)] == ["near", "far", "none1", "none2"]


def test_distance_sort_with_user_location():
    user = Location(latitude=40.0, longitude=-75.0, source=LocationSource.DEVICE)
    places = [
        make_place(2, latitude="40.09", longitude="-75.0"),
        make_place(3),
        make_place(1, latitude="40.018", longitude="-75.0"),
    ]
    result = build_page(places, FilterState(), sort=SortCriterion.DISTANCE, location=user, unit="km")

    assert [v.id for v in result.vendors] == ["1", "2", "3"]
    assert result.vendors[0].distance == pytest.approx(2.0, rel=0.01)
    assert result.vendors[1].distance == pytest.approx(10.0, rel=0.01)
    assert result.vendors[2].distance is None


def test_clamp_page():
    assert clamp_page(2, 3) == 2
    assert clamp_page(0, 3) is None
    assert clamp_page(4, 3) is None
    assert clamp_page(1, 1) == 1


def test_filtered_vendors_spans_all_pages_and_ignores_pin():
    vendors = filtered_vendors(thirty_places(), FilterState(pinned_id="3"))
    assert len(vendors) == 30


def test_location_options():
    places = [
        make_place(1, region="Texas", city="Austin"),
        make_place(2, region="Texas", city="Dallas"),
        make_place(3, region="California", city="Fresno"),
        make_place(4, region="California", city=""),
        make_place(5, region="Texas", city="Austin"),
    ]
    pairs = location_pairs(places)

    assert len(pairs) == 4
    assert available_cities(pairs, "Texas") == ["Austin", "Dallas"]
    assert available_cities(pairs) == ["Austin", "Dallas", "Fresno"]
    assert unique_regions(places) == ["California", "Texas"]
    assert unique_cities(places) == ["Austin", "Dallas", "Fresno"]


def test_filter_by_location_all_is_noop():
    places = thirty_places()
    assert filter_by_location(places) == places
