"""Type-ahead business suggestions used by the claim-listing search box.

Unlike the directory refresh, which lets a newer response overwrite an older
one, a new suggestion search cancels the previous request so stale results
can never replace newer ones.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from .fetcher import PlaceFetcher
from .parser import PLACEHOLDER_LOGO, flatten_category, parse_category_field, parse_text_field, text_value
from .settings import SUGGESTION_PAGE_SIZE

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2


class SearchSuperseded(Exception):
    """The search was replaced by a newer one before its result arrived."""


@dataclass(slots=True)
class Suggestion:
    id: str
    name: str
    address: str
    category: str
    verified: bool
    image: str


def _address(place: Mapping[str, Any]) -> str:
    address = ""
    for key in ("street", "city", "region"):
        value = place.get(key)
        if isinstance(value, str) and value:
            address += (", " if address else "") + value
    zip_code = place.get("zip")
    if isinstance(zip_code, str) and zip_code:
        address += " " + zip_code
    return address.strip() or "Address not available"


def place_to_suggestion(place: Mapping[str, Any]) -> Suggestion:
    specialty, _ = flatten_category(parse_category_field(place.get("post_category")))
    featured = place.get("featured_image")
    image = featured.get("src") if isinstance(featured, Mapping) else None
    return Suggestion(
        id=str(place.get("id", "")),
        name=text_value(parse_text_field(place.get("title"))) or "Business",
        address=_address(place),
        category=specialty,
        verified=place.get("claimed") in (1, "1", True),
        image=image if isinstance(image, str) and image else PLACEHOLDER_LOGO,
    )


class SuggestionSearch:
    """Runs one authoritative suggestion lookup at a time."""

    def __init__(
        self,
        fetcher: PlaceFetcher,
        per_page: int = SUGGESTION_PAGE_SIZE,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.fetcher = fetcher
        self.per_page = per_page
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="suggestions")
        self._lock = threading.Lock()
        self._generation = 0
        self._pending: Optional[Future] = None

    def search(self, query: str) -> Future:
        """Start a lookup, cancelling the previous one.

        The returned future resolves to a list of :class:`Suggestion`, or
        raises :class:`SearchSuperseded` if a newer search started meanwhile.
        """

        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
            self._generation += 1
            generation = self._generation
            text = (query or "").strip()
            if len(text) < MIN_QUERY_LENGTH:
                self._pending = None
                done: Future = Future()
                done.set_result([])
                return done
            self._pending = self._executor.submit(self._run, text, generation)
            return self._pending

    def _run(self, query: str, generation: int) -> List[Suggestion]:
        places = self.fetcher.search_places(query, self.per_page)
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding superseded suggestions for %r", query)
                raise SearchSuperseded(query)
        return [place_to_suggestion(place) for place in places]

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
