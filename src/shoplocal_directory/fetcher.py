"""HTTP client for the GeoDirectory places API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from .cache import ResultCache
from .models import CacheKey, Category
from .parser import parse_categories
from .settings import ApiSettings

logger = logging.getLogger(__name__)


class DirectoryError(Exception):
    """Base class for errors reported to the directory view."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NetworkError(DirectoryError):
    """The request could not be completed (connection failure or timeout)."""


class ServerError(DirectoryError):
    """The API answered with an error status or an unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("message"), str) and payload["message"]:
        return payload["message"]
    return f"Request failed with status code {response.status_code}"


class PlaceFetcher:
    """Fetch places and taxonomies using ``requests``."""

    def __init__(self, settings: Optional[ApiSettings] = None, session: Optional[requests.Session] = None) -> None:
        self.settings = settings or ApiSettings()
        self._session = session or requests.Session()
        self._session.headers.update(self.settings.headers())

    @property
    def session(self) -> requests.Session:
        """Return the HTTP session used to talk to the API."""

        return self._session

    def _get_list(self, path: str, params: Dict[str, Any]) -> List[Any]:
        url = self.settings.url(path)
        logger.debug("Fetching %s params=%s", url, params)
        try:
            response = self._session.get(url, params=params, timeout=self.settings.request_timeout)
        except requests.Timeout as exc:
            raise NetworkError(f"timeout of {self.settings.request_timeout}s exceeded") from exc
        except requests.RequestException as exc:
            raise NetworkError(str(exc) or "Network Error") from exc

        if not 200 <= response.status_code < 300:
            raise ServerError(_error_message(response), status_code=response.status_code)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ServerError("Invalid JSON in response", status_code=response.status_code) from exc
        if not isinstance(payload, list):
            raise ServerError("Unexpected response shape", status_code=response.status_code)
        return payload

    def fetch_places(self, search: str = "", category_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Fetch every place matching the server-side filters in one bulk page.

        Region and city are not sent; the API does not filter on them.
        """

        params: Dict[str, Any] = {"per_page": self.settings.per_page, "page": 1}
        if search and search.strip():
            params["search"] = search.strip()
        if category_id is not None:
            params["gd_placecategory"] = category_id
        places = [place for place in self._get_list("places", params) if isinstance(place, dict)]
        logger.info("Fetched %d places", len(places))
        return places

    def search_places(self, query: str, per_page: int) -> List[Dict[str, Any]]:
        """Small search request used for suggestions."""

        params = {"search": query, "per_page": per_page}
        return [place for place in self._get_list("places", params) if isinstance(place, dict)]

    def fetch_categories(self) -> List[Category]:
        payload = self._get_list("places/categories", {"per_page": self.settings.per_page, "hide_empty": "false"})
        return parse_categories(payload)

    def fetch_regions(self) -> List[str]:
        return self._taxonomy_names("places/regions")

    def fetch_cities(self) -> List[str]:
        return self._taxonomy_names("places/cities")

    def _taxonomy_names(self, path: str) -> List[str]:
        payload = self._get_list(path, {})
        names = {
            entry["name"].strip()
            for entry in payload
            if isinstance(entry, dict) and isinstance(entry.get("name"), str) and entry["name"].strip()
        }
        return sorted(names)


def load_places(
    fetcher: PlaceFetcher,
    cache: Optional[ResultCache],
    key: CacheKey,
    category_id: Optional[int] = None,
    use_cache: bool = True,
) -> List[Dict[str, Any]]:
    """Return the place collection for ``key``, reusing a valid cache entry.

    Errors propagate unchanged and leave the cache untouched.
    """

    if use_cache and cache is not None:
        cached = cache.get(key)
        if cached is not None:
            logger.debug("Loading %d places from cache", len(cached))
            return cached

    places = fetcher.fetch_places(search=key.search, category_id=category_id)
    if cache is not None:
        cache.put(key, places)
    return places
