"""Directory view controller tying fetch, cache, location and pipeline together."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from .cache import ResultCache
from .fetcher import DirectoryError, PlaceFetcher, load_places
from .geocode import NominatimGeocoder
from .location import LocationResolver, PositionProvider
from .markers import project_markers
from .models import ALL, Category, FilterState, Location, MapMarker, PageResult, SortCriterion
from .pipeline import (
    available_cities,
    build_page,
    clamp_page,
    filter_by_location,
    filtered_vendors,
    location_pairs,
    total_pages_for,
    unique_cities,
    unique_regions,
)
from .resolution import resolve_first
from .settings import DirectorySettings

logger = logging.getLogger(__name__)

FALLBACK_CATEGORIES = (
    Category(id=1, name="Sportswear", slug="sportswear"),
    Category(id=2, name="Electronics", slug="electronics"),
    Category(id=3, name="Fashion", slug="fashion"),
    Category(id=4, name="Home & Garden", slug="home-garden"),
    Category(id=5, name="Food & Beverage", slug="food-beverage"),
)
FALLBACK_REGIONS = ("California", "Florida", "New York", "Texas")

ERROR_TEMPLATE = "Network Error: {message}. Please check your connection and try again."


class Debouncer:
    """Run ``callback`` once the triggers have been quiet for ``delay`` seconds.

    A non-positive delay runs the callback synchronously on every trigger.
    """

    def __init__(self, delay: float, callback: Callable[[], Any]) -> None:
        self.delay = delay
        self.callback = callback
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def trigger(self) -> None:
        if self.delay <= 0:
            self.callback()
            return
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.delay, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        self.callback()

    def flush(self) -> None:
        """Run a pending callback now instead of waiting for the timer."""

        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            self.callback()

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None


class DirectoryView:
    """State of the business directory page.

    The view owns the result cache, the filters, the current page and sort,
    the single map/list selection (``filters.pinned_id``) and the error panel.
    """

    def __init__(
        self,
        settings: Optional[DirectorySettings] = None,
        fetcher: Optional[PlaceFetcher] = None,
        cache: Optional[ResultCache] = None,
        resolver: Optional[LocationResolver] = None,
        position_provider: Optional[PositionProvider] = None,
    ) -> None:
        self.settings = settings or DirectorySettings()
        self.fetcher = fetcher or PlaceFetcher(self.settings.api)
        if cache is None and self.settings.cache.enabled:
            cache = ResultCache(
                db_path=self.settings.cache.db_path,
                ttl_seconds=self.settings.cache.ttl_seconds,
                storage_key=self.settings.cache.storage_key,
            )
        self.cache = cache
        self.resolver = resolver or LocationResolver(
            position_provider=position_provider,
            geocoder=NominatimGeocoder(self.settings.geocode),
        )
        self.resolver.on_change(self._on_location_change)

        self.filters = FilterState()
        self.page = 1
        self.sort = SortCriterion.FEATURED
        self.sort_chosen_by_user = False
        self.places: List[Dict[str, Any]] = []
        self.error: Optional[str] = None
        self.loading = False
        self.categories: List[Category] = []
        self.regions: List[str] = []
        self.cities: List[str] = []
        self.pairs: List[Tuple[str, str]] = []

        self._lock = threading.RLock()
        self._generation = 0
        self._debouncer = Debouncer(self.settings.debounce_seconds, self.refresh)

    # -- fetching -----------------------------------------------------------------

    def category_id(self, name: str) -> Optional[int]:
        if not name or name == ALL:
            return None
        match = next((category for category in self.categories if category.name == name), None)
        return match.id if match else None

    def refresh(self, use_cache: bool = True) -> bool:
        """Load the collection for the current server-side filters.

        Returns ``True`` when the result was applied.  A refresh that was
        overtaken by a newer one is discarded.
        """

        with self._lock:
            self._generation += 1
            generation = self._generation
            key = self.filters.server_key()
            category_id = self.category_id(self.filters.category)
            self.loading = True
            self.error = None

        try:
            places = load_places(self.fetcher, self.cache, key, category_id, use_cache=use_cache)
        except DirectoryError as exc:
            with self._lock:
                if generation != self._generation:
                    return False
                logger.error("Error fetching places: %s", exc.message)
                self.error = ERROR_TEMPLATE.format(message=exc.message)
                self.places = []
                self.loading = False
            return False

        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding superseded result for %s", key)
                return False
            self.places = places
            self.loading = False
            narrowed = filter_by_location(places, self.filters.region, self.filters.city)
            self.page = min(max(self.page, 1), total_pages_for(len(narrowed), self.settings.page_size))
        return True

    def retry(self) -> bool:
        with self._lock:
            self.page = 1
        return self.refresh(use_cache=True)

    def dismiss_error(self) -> None:
        with self._lock:
            self.error = None

    def flush_pending(self) -> None:
        """Run a debounced refresh immediately, if one is waiting."""

        self._debouncer.flush()

    def load_taxonomies(self) -> None:
        """Load categories, regions and cities, falling back when endpoints fail."""

        _, categories = resolve_first(
            [
                ("endpoint", self.fetcher.fetch_categories),
                ("fallback", lambda: list(FALLBACK_CATEGORIES)),
            ],
            tolerate=(DirectoryError,),
        )

        try:
            all_places = self.fetcher.fetch_places()
        except DirectoryError:
            logger.warning("Could not load places for location options", exc_info=True)
            all_places = []

        region_source, regions = resolve_first(
            [
                ("taxonomy", self.fetcher.fetch_regions),
                ("places", lambda: unique_regions(all_places)),
                ("fallback", lambda: list(FALLBACK_REGIONS)),
            ],
            tolerate=(DirectoryError,),
        )
        city_source, cities = resolve_first(
            [
                ("taxonomy", self.fetcher.fetch_cities),
                ("places", lambda: unique_cities(all_places)),
            ],
            tolerate=(DirectoryError,),
        )
        logger.info("Regions from %s, cities from %s", region_source, city_source)

        with self._lock:
            self.categories = categories or []
            self.regions = regions or []
            self.cities = cities or []
            self.pairs = location_pairs(all_places)

    # -- filters ------------------------------------------------------------------

    def _change_filters(self, refetch: bool, **changes: Any) -> None:
        with self._lock:
            self.filters = self.filters.update(**changes)
            self.page = 1
        if refetch:
            self._debouncer.trigger()

    def set_search(self, text: str) -> None:
        self._change_filters(True, search=text)

    def set_category(self, name: str) -> None:
        self._change_filters(True, category=name or ALL)

    def set_region(self, region: str) -> None:
        self._change_filters(True, region=region or ALL, city=ALL)

    def set_city(self, city: str) -> None:
        self._change_filters(True, city=city or ALL)

    def set_min_rating(self, rating: float) -> None:
        self._change_filters(False, min_rating=max(0.0, float(rating)))

    def set_open_now(self, enabled: bool) -> None:
        self._change_filters(False, open_now=bool(enabled))

    def set_verified_only(self, enabled: bool) -> None:
        self._change_filters(False, verified_only=bool(enabled))

    def set_featured_only(self, enabled: bool) -> None:
        self._change_filters(False, featured_only=bool(enabled))

    def apply_filters(self, filters: FilterState) -> None:
        """Replace every filter at once and schedule one refresh."""

        with self._lock:
            self.filters = filters
            self.page = 1
        self._debouncer.trigger()

    def clear_filters(self) -> None:
        self.apply_filters(FilterState())

    def city_options(self) -> List[str]:
        if self.pairs:
            return available_cities(self.pairs, self.filters.region)
        return list(self.cities)

    # -- selection ----------------------------------------------------------------

    def select_marker(self, vendor_id: str) -> None:
        """Pin the list to the vendor whose marker was clicked."""

        with self._lock:
            self.filters = self.filters.update(pinned_id=str(vendor_id))

    def clear_selection(self) -> None:
        with self._lock:
            self.filters = self.filters.update(pinned_id=None)

    # -- paging and sorting -------------------------------------------------------

    def total_pages(self) -> int:
        return self.page_result().total_pages

    def go_to_page(self, page: int) -> bool:
        """Move to ``page``; out-of-range requests are ignored."""

        target = clamp_page(page, self.total_pages())
        if target is None:
            logger.debug("Ignoring out-of-range page %s", page)
            return False
        with self._lock:
            self.page = target
        return True

    def set_sort(self, criterion: SortCriterion | str) -> None:
        with self._lock:
            self.sort = SortCriterion(criterion)
            self.sort_chosen_by_user = True

    # -- location -----------------------------------------------------------------

    @property
    def location(self) -> Optional[Location]:
        return self.resolver.location

    def use_my_location(self) -> Optional[Location]:
        return self.resolver.detect()

    def use_manual_location(self, text: str) -> Optional[Location]:
        return self.resolver.lookup(text)

    def clear_location(self) -> None:
        self.resolver.clear()

    def _on_location_change(self, resolver: LocationResolver) -> None:
        with self._lock:
            if resolver.location is not None:
                if not self.sort_chosen_by_user:
                    self.sort = SortCriterion.DISTANCE
            elif not self.sort_chosen_by_user or self.sort is SortCriterion.DISTANCE:
                self.sort = SortCriterion.FEATURED
                self.sort_chosen_by_user = False

    # -- derived views ------------------------------------------------------------

    def page_result(self, now: Optional[datetime] = None) -> PageResult:
        with self._lock:
            places, filters, page, sort = self.places, self.filters, self.page, self.sort
        return build_page(
            places,
            filters,
            page=page,
            sort=sort,
            location=self.resolver.location,
            page_size=self.settings.page_size,
            unit=self.settings.distance_unit,
            now=now,
        )

    def markers(self, now: Optional[datetime] = None) -> List[MapMarker]:
        """Markers for every vendor matching the filters, across all pages."""

        with self._lock:
            places, filters = self.places, self.filters
        vendors = filtered_vendors(places, filters, self.resolver.location, unit=self.settings.distance_unit, now=now)
        return project_markers(vendors, self.categories)

    def close(self) -> None:
        self._debouncer.cancel()
        if self.cache is not None:
            self.cache.close()
