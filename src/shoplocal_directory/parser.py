"""Normalisation of raw GeoDirectory place records into vendors.

Place records are loosely shaped: the title and content may be plain strings
or ``{"raw", "rendered"}`` wrappers, the category may be a string, an object
or a list of objects, and any field may be missing.  Every heterogeneous field
is first parsed into one of the tagged variants in :mod:`models` and only then
flattened, so the rest of the engine never probes types itself.  Nothing in
this module raises on malformed input; missing values fall back to defaults.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

from bs4 import BeautifulSoup

from .geocode import distance_between
from .models import (
    Category,
    CategoryField,
    CategoryList,
    CategoryName,
    CategoryObject,
    Location,
    NoCategory,
    PlainText,
    RenderedText,
    TextField,
    Vendor,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_LOGO = "https://via.placeholder.com/150"
PLACEHOLDER_BANNER = "https://via.placeholder.com/800x300"
DEFAULT_RATING = 4.5
DEFAULT_TAGLINE = "Quality local business"
DEFAULT_BIO = "A trusted local business in your community."
DEFAULT_TITLE = "Business"
TAGLINE_LENGTH = 100

DEFAULT_POLICIES = {
    "shipping": "Please contact us for shipping details and rates.",
    "returns": "Returns accepted within 30 days. Please contact us for more information.",
    "faqs": "For any questions, please reach out to us directly.",
}

_SLUG_SPACES_RE = re.compile(r"\s+")
_SLUG_INVALID_RE = re.compile(r"[^a-z0-9-]")


def parse_text_field(value: Any) -> TextField:
    if isinstance(value, str):
        return PlainText(value)
    if isinstance(value, Mapping):
        raw = value.get("raw")
        rendered = value.get("rendered")
        return RenderedText(
            raw=raw if isinstance(raw, str) else "",
            rendered=rendered if isinstance(rendered, str) else "",
        )
    return PlainText("")


def text_value(field: TextField) -> str:
    """Return the displayable string of a text field."""

    if isinstance(field, RenderedText):
        return field.rendered
    return field.value


def _parse_category_object(value: Mapping[str, Any]) -> CategoryObject:
    name = value.get("name")
    slug = value.get("slug")
    return CategoryObject(
        id=_safe_int(value.get("id")),
        name=name if isinstance(name, str) else "",
        slug=slug if isinstance(slug, str) else "",
    )


def parse_category_field(value: Any) -> CategoryField:
    if isinstance(value, str):
        return CategoryName(value) if value.strip() else NoCategory()
    if isinstance(value, Mapping):
        return _parse_category_object(value)
    if isinstance(value, (list, tuple)):
        items = tuple(_parse_category_object(item) for item in value if isinstance(item, Mapping))
        return CategoryList(items) if items else NoCategory()
    return NoCategory()


def flatten_category(field: CategoryField) -> Tuple[str, Optional[int]]:
    """Return ``(specialty label, category id)`` for a parsed category."""

    if isinstance(field, CategoryName):
        return field.name, None
    if isinstance(field, CategoryObject):
        return field.name or "General", field.id
    if isinstance(field, CategoryList):
        names = ", ".join(item.name for item in field.items)
        return names or "General", field.items[0].id
    return "General", None


def strip_html(html: Optional[str]) -> str:
    if not html or not isinstance(html, str):
        return ""
    if "<" not in html and "&" not in html:
        return html.strip()
    soup = BeautifulSoup(html, "html.parser")
    return soup.get_text(" ", strip=True)


def slugify(name: str) -> str:
    lowered = _SLUG_SPACES_RE.sub("-", name.strip().lower())
    return _SLUG_INVALID_RE.sub("", lowered)


def _safe_float(value: object) -> Optional[float]:
    try:
        result = float(value) if value is not None else None
    except (TypeError, ValueError):
        return None
    if result is None or not math.isfinite(result):
        return None
    return result


def _safe_int(value: object) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def _coordinate(value: Any) -> Optional[str]:
    """Keep a coordinate as its numeric string when it parses as a number."""

    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if _safe_float(text) is None:
        return None
    return text


def _image_url(place: Mapping[str, Any]) -> str:
    featured = place.get("featured_image")
    if isinstance(featured, Mapping) and isinstance(featured.get("src"), str) and featured["src"]:
        return featured["src"]
    if isinstance(featured, str) and featured:
        return featured
    images = place.get("images")
    if isinstance(images, list) and images and isinstance(images[0], Mapping):
        src = images[0].get("src")
        if isinstance(src, str) and src:
            return src
    return ""


def _location_label(city: Optional[str], region: Optional[str]) -> str:
    if city and region:
        return f"{city}, {region}"
    return city or region or "Local"


def _optional_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _flag(value: Any) -> bool:
    return value in (1, "1", True, "true")


def place_to_vendor(place: Mapping[str, Any], user_location: Optional[Location] = None, unit: str = "mi") -> Vendor:
    """Convert a raw place record into a :class:`Vendor`.

    ``distance`` is only computed when both the vendor and ``user_location``
    carry valid coordinates.
    """

    title = strip_html(text_value(parse_text_field(place.get("title")))) or DEFAULT_TITLE
    body = strip_html(text_value(parse_text_field(place.get("content"))))
    specialty, category_id = flatten_category(parse_category_field(place.get("post_category")))
    default_category = _safe_int(place.get("default_category"))
    if default_category:
        category_id = default_category

    identifier = place.get("id")
    vendor_id = str(identifier) if identifier is not None else ""
    slug = _optional_str(place.get("slug"))
    slug = slugify(slug) if slug else slugify(title)
    if not slug:
        slug = f"vendor-{slugify(vendor_id) or 'unknown'}"

    image = _image_url(place)
    rating = _safe_float(place.get("rating"))
    city = _optional_str(place.get("city"))
    region = _optional_str(place.get("region"))
    latitude = _coordinate(place.get("latitude"))
    longitude = _coordinate(place.get("longitude"))

    distance = None
    if user_location is not None and latitude is not None and longitude is not None:
        distance = distance_between(user_location.point, (float(latitude), float(longitude)), unit=unit)

    social_links: Dict[str, str] = {}
    for key, source in (("website", "website"), ("instagram", "twitter")):
        value = _optional_str(place.get(source))
        if value:
            social_links[key] = value

    policies = dict(DEFAULT_POLICIES)
    offers = _optional_str(place.get("special_offers"))
    if offers:
        policies["shipping"] = offers

    return Vendor(
        id=vendor_id,
        name=title,
        slug=slug,
        logo=image or PLACEHOLDER_LOGO,
        banner=image or PLACEHOLDER_BANNER,
        tagline=body[:TAGLINE_LENGTH] or DEFAULT_TAGLINE,
        bio=body or DEFAULT_BIO,
        specialty=specialty,
        category_id=category_id,
        rating=rating if rating else DEFAULT_RATING,
        location=_location_label(city, region),
        region=region,
        city=city,
        latitude=latitude,
        longitude=longitude,
        distance=distance,
        verified=_flag(place.get("claimed")),
        featured=_flag(place.get("featured")),
        business_hours=_optional_str(place.get("business_hours")),
        social_links=social_links,
        policies=policies,
    )


def parse_category(entry: Mapping[str, Any]) -> Optional[Category]:
    """Parse one taxonomy entry, returning ``None`` for nameless records."""

    name = entry.get("name")
    identifier = _safe_int(entry.get("id"))
    if not isinstance(name, str) or not name.strip() or identifier is None:
        return None
    icon = entry.get("icon")
    icon_src = icon.get("src") if isinstance(icon, Mapping) else None
    slug = entry.get("slug")
    return Category(
        id=identifier,
        name=name,
        slug=slug if isinstance(slug, str) else slugify(name),
        icon=icon_src if isinstance(icon_src, str) and icon_src else None,
    )


def parse_categories(payload: List[Any]) -> List[Category]:
    categories = [item for item in (parse_category(entry) for entry in payload if isinstance(entry, Mapping)) if item]
    categories.sort(key=lambda category: category.name.lower())
    logger.debug("Parsed %d categories", len(categories))
    return categories
