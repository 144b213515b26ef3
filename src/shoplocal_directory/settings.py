"""Configuration objects for the business directory engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

DEFAULT_API_BASE = "https://shoplocal.kinsta.cloud/wp-json/geodir/v2"
DEFAULT_GEOCODER_URL = "https://nominatim.openstreetmap.org/search"
DEFAULT_STORAGE_KEY = "vendorsDirectory_cache"

PAGE_SIZE = 12
BULK_PAGE_SIZE = 100
SUGGESTION_PAGE_SIZE = 10
CACHE_TTL_SECONDS = 10 * 60
DEBOUNCE_SECONDS = 0.8


@dataclass(slots=True)
class ApiSettings:
    """Settings for the GeoDirectory REST API."""

    base_url: str = DEFAULT_API_BASE
    per_page: int = BULK_PAGE_SIZE
    request_timeout: float = 10.0
    user_agent: str = "shoplocal-directory/0.1.0"
    extra_headers: Mapping[str, str] = field(default_factory=dict)

    def headers(self) -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        headers.update(self.extra_headers)
        return headers

    def url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"


@dataclass(slots=True)
class CacheSettings:
    """Settings for the persisted result cache."""

    db_path: str = ":memory:"
    ttl_seconds: float = CACHE_TTL_SECONDS
    storage_key: str = DEFAULT_STORAGE_KEY
    enabled: bool = True


@dataclass(slots=True)
class GeocodeSettings:
    """Settings used for the manual location lookup."""

    provider_url: str = DEFAULT_GEOCODER_URL
    country_codes: Optional[str] = "us"
    email: Optional[str] = None
    timeout: float = 10.0
    user_agent: str = "ShopLocal Marketplace Directory"

    def query_params(self, query: str) -> Dict[str, str]:
        params = {"format": "json", "q": query, "limit": "1"}
        if self.country_codes:
            params["countrycodes"] = self.country_codes
        if self.email:
            params["email"] = self.email
        return params


@dataclass(slots=True)
class DirectorySettings:
    """Composite settings structure for the directory view."""

    api: ApiSettings = field(default_factory=ApiSettings)
    cache: CacheSettings = field(default_factory=CacheSettings)
    geocode: GeocodeSettings = field(default_factory=GeocodeSettings)
    page_size: int = PAGE_SIZE
    debounce_seconds: float = DEBOUNCE_SECONDS
    distance_unit: str = "mi"
