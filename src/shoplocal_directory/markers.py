"""Projection of vendors onto map markers."""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional, Sequence

from .models import Category, MapMarker, Vendor
from .resolution import resolve_first

logger = logging.getLogger(__name__)


def _parse_coordinate(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def category_by_id(vendor: Vendor, categories: Sequence[Category]) -> Optional[Category]:
    if vendor.category_id is None:
        return None
    return next((category for category in categories if category.id == vendor.category_id), None)


def category_by_name(vendor: Vendor, categories: Sequence[Category]) -> Optional[Category]:
    specialty = vendor.specialty.lower()
    for category in categories:
        name = category.name.lower()
        if name == specialty or (name and name in specialty):
            return category
    return None


def resolve_category_icon(vendor: Vendor, categories: Sequence[Category]) -> Optional[str]:
    """Icon of the vendor's category, matched by id first and by name second."""

    _, category = resolve_first(
        [
            ("id", lambda: category_by_id(vendor, categories)),
            ("name", lambda: category_by_name(vendor, categories)),
        ]
    )
    return category.icon if category is not None else None


def project_markers(vendors: Iterable[Vendor], categories: Sequence[Category] = ()) -> List[MapMarker]:
    """Markers for every vendor with a valid latitude and longitude."""

    markers: List[MapMarker] = []
    for vendor in vendors:
        lat = _parse_coordinate(vendor.latitude)
        lng = _parse_coordinate(vendor.longitude)
        if lat is None or lng is None:
            continue
        markers.append(
            MapMarker(
                id=vendor.id,
                name=vendor.name,
                lat=lat,
                lng=lng,
                specialty=vendor.specialty,
                category_icon=resolve_category_icon(vendor, categories),
                rating=vendor.rating,
                location=vendor.location,
            )
        )
    logger.debug("Projected %d markers", len(markers))
    return markers
