"""Client-side filter, sort and pagination of the fetched place collection."""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .hours import is_open_now
from .models import ALL, FilterState, Location, PageResult, SortCriterion, Vendor
from .parser import place_to_vendor
from .settings import PAGE_SIZE

logger = logging.getLogger(__name__)

Place = Mapping[str, Any]


def filter_by_location(places: Iterable[Place], region: str = ALL, city: str = ALL) -> List[Place]:
    """Keep places in the selected region and city; ``"all"`` disables a filter."""

    result = list(places)
    if region and region != ALL:
        result = [place for place in result if place.get("region") == region]
    if city and city != ALL:
        result = [place for place in result if place.get("city") == city]
    return result


def total_pages_for(total: int, page_size: int = PAGE_SIZE) -> int:
    return max(1, math.ceil(total / page_size))


def paginate(items: Sequence[Place], page: int, page_size: int = PAGE_SIZE) -> List[Place]:
    start = (page - 1) * page_size
    return list(items[start : start + page_size])


def clamp_page(requested: int, total_pages: int) -> Optional[int]:
    """Return ``requested`` when it is a valid page, ``None`` otherwise."""

    if 1 <= requested <= total_pages:
        return requested
    return None


def matches_display_filters(vendor: Vendor, filters: FilterState, now: Optional[datetime] = None) -> bool:
    if filters.min_rating and vendor.rating < filters.min_rating:
        return False
    if filters.verified_only and not vendor.verified:
        return False
    if filters.featured_only and not vendor.featured:
        return False
    if filters.open_now and not is_open_now(vendor.business_hours, now):
        return False
    return True


def _distance_key(vendor: Vendor) -> Tuple[int, float]:
    if vendor.distance is None:
        return (1, 0.0)
    return (0, vendor.distance)


def sort_vendors(vendors: Iterable[Vendor], criterion: SortCriterion) -> List[Vendor]:
    """Return vendors ordered by ``criterion``; every sort is stable."""

    items = list(vendors)
    if criterion is SortCriterion.RATING:
        return sorted(items, key=lambda vendor: vendor.rating, reverse=True)
    if criterion is SortCriterion.NAME:
        return sorted(items, key=lambda vendor: (vendor.name.casefold(), vendor.name))
    if criterion is SortCriterion.DISTANCE:
        return sorted(items, key=_distance_key)
    return items


def build_page(
    places: Sequence[Place],
    filters: FilterState,
    page: int = 1,
    sort: SortCriterion = SortCriterion.FEATURED,
    location: Optional[Location] = None,
    page_size: int = PAGE_SIZE,
    unit: str = "mi",
    now: Optional[datetime] = None,
) -> PageResult:
    """Run the full pipeline over the fetched collection.

    Region and city narrow the collection, which is then sliced into the
    requested page and normalised.  Rating, verified, featured and open-now
    apply to the displayed page only.  A pinned vendor id replaces the result
    with exactly that vendor, looked up in the whole collection.
    """

    narrowed = filter_by_location(places, filters.region, filters.city)
    total = len(narrowed)
    total_pages = total_pages_for(total, page_size)
    sliced = paginate(narrowed, page, page_size)
    vendors = [place_to_vendor(place, location, unit=unit) for place in sliced]

    if filters.pinned_id is not None:
        vendors = [
            place_to_vendor(place, location, unit=unit)
            for place in places
            if str(place.get("id")) == filters.pinned_id
        ][:1]
    else:
        vendors = [vendor for vendor in vendors if matches_display_filters(vendor, filters, now)]

    vendors = sort_vendors(vendors, sort)
    logger.debug("Page %d/%d shows %d of %d places", page, total_pages, len(vendors), total)
    return PageResult(vendors=vendors, total_filtered=total, total_pages=total_pages, page=page, sort=sort)


def filtered_vendors(
    places: Sequence[Place],
    filters: FilterState,
    location: Optional[Location] = None,
    unit: str = "mi",
    now: Optional[datetime] = None,
) -> List[Vendor]:
    """Every vendor matching the filters across all pages, ignoring the pin."""

    narrowed = filter_by_location(places, filters.region, filters.city)
    vendors = [place_to_vendor(place, location, unit=unit) for place in narrowed]
    return [vendor for vendor in vendors if matches_display_filters(vendor, filters, now)]


def location_pairs(places: Iterable[Place]) -> List[Tuple[str, str]]:
    """Return ``(region, city)`` pairs of places carrying both values."""

    pairs: List[Tuple[str, str]] = []
    for place in places:
        region, city = place.get("region"), place.get("city")
        if isinstance(region, str) and isinstance(city, str) and region and city:
            pairs.append((region, city))
    return pairs


def available_cities(pairs: Iterable[Tuple[str, str]], region: str = ALL) -> List[str]:
    """Cities offered for ``region``, or for every region when it is ``"all"``."""

    return sorted({city for pair_region, city in pairs if region == ALL or pair_region == region})


def _unique_field(places: Iterable[Place], field: str) -> List[str]:
    values: Dict[str, None] = {}
    for place in places:
        value = place.get(field)
        if isinstance(value, str) and value.strip():
            values[value] = None
    return sorted(values)


def unique_regions(places: Iterable[Place]) -> List[str]:
    return _unique_field(places, "region")


def unique_cities(places: Iterable[Place]) -> List[str]:
    return _unique_field(places, "city")
