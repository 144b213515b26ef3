"""Data models used throughout the directory engine."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

ALL = "all"


# Text fields arrive either as a plain string or as a WordPress
# ``{"raw": ..., "rendered": ...}`` wrapper.


@dataclass(frozen=True, slots=True)
class PlainText:
    value: str


@dataclass(frozen=True, slots=True)
class RenderedText:
    raw: str
    rendered: str


TextField = Union[PlainText, RenderedText]


@dataclass(frozen=True, slots=True)
class NoCategory:
    pass


@dataclass(frozen=True, slots=True)
class CategoryName:
    name: str


@dataclass(frozen=True, slots=True)
class CategoryObject:
    id: Optional[int]
    name: str
    slug: str = ""


@dataclass(frozen=True, slots=True)
class CategoryList:
    items: Tuple[CategoryObject, ...]


CategoryField = Union[NoCategory, CategoryName, CategoryObject, CategoryList]


@dataclass(slots=True)
class Category:
    """Entry of the category taxonomy."""

    id: int
    name: str
    slug: str = ""
    icon: Optional[str] = None


@dataclass(slots=True)
class Vendor:
    """Normalized representation of a directory place."""

    id: str
    name: str
    slug: str
    logo: str
    banner: str
    tagline: str
    bio: str
    specialty: str = "General"
    category_id: Optional[int] = None
    rating: float = 4.5
    location: str = "Local"
    region: Optional[str] = None
    city: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    distance: Optional[float] = None
    verified: bool = False
    featured: bool = False
    business_hours: Optional[str] = None
    social_links: Dict[str, str] = field(default_factory=dict)
    policies: Dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        """Return the vendor as primitive types, omitting an unknown distance."""

        data = {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "logo": self.logo,
            "banner": self.banner,
            "tagline": self.tagline,
            "bio": self.bio,
            "specialty": self.specialty,
            "categoryId": self.category_id,
            "rating": self.rating,
            "location": self.location,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "verified": self.verified,
            "featured": self.featured,
            "socialLinks": dict(self.social_links),
            "policies": dict(self.policies),
        }
        if self.distance is not None:
            data["distance"] = self.distance
        return data


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Filter values sent (or that would be sent) with a place fetch."""

    search: str = ""
    category: str = ALL
    region: str = ALL
    city: str = ALL

    def as_dict(self) -> Dict[str, str]:
        return {"search": self.search, "category": self.category, "region": self.region, "city": self.city}


@dataclass(slots=True)
class CacheEntry:
    places: List[Dict[str, Any]]
    key: CacheKey
    stored_at: float


@dataclass(frozen=True, slots=True)
class FilterState:
    """Every predicate that is active on the directory at the same time."""

    search: str = ""
    category: str = ALL
    region: str = ALL
    city: str = ALL
    min_rating: float = 0.0
    open_now: bool = False
    verified_only: bool = False
    featured_only: bool = False
    pinned_id: Optional[str] = None

    def server_key(self) -> CacheKey:
        return CacheKey(search=self.search, category=self.category, region=self.region, city=self.city)

    def update(self, **changes: Any) -> "FilterState":
        return replace(self, **changes)


class LocationSource(str, Enum):
    DEVICE = "device"
    MANUAL = "manual"


@dataclass(frozen=True, slots=True)
class Location:
    latitude: float
    longitude: float
    source: LocationSource
    label: Optional[str] = None

    @property
    def point(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


class SortCriterion(str, Enum):
    FEATURED = "featured"
    RATING = "rating"
    NAME = "name"
    DISTANCE = "distance"


@dataclass(slots=True)
class MapMarker:
    id: str
    name: str
    lat: float
    lng: float
    specialty: str
    category_icon: Optional[str]
    rating: float
    location: str


@dataclass(slots=True)
class PageResult:
    """Vendors displayed on one page together with pagination metadata."""

    vendors: List[Vendor]
    total_filtered: int
    total_pages: int
    page: int
    sort: SortCriterion = SortCriterion.FEATURED


@dataclass(slots=True)
class GeocodeResult:
    """Result returned by a geocoding provider."""

    address: str
    latitude: float
    longitude: float
    raw: dict
