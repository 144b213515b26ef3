"""Command line interface for querying the business directory."""

from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict

from .directory import DirectoryView
from .fetcher import DirectoryError
from .geocode import format_distance
from .models import FilterState, SortCriterion
from .settings import ApiSettings, CacheSettings, DirectorySettings, GeocodeSettings
from .suggestions import SuggestionSearch

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search the ShopLocal business directory")
    parser.add_argument("--search", default="", help="Free-text search sent to the API")
    parser.add_argument("--category", default="all", help="Category name")
    parser.add_argument("--region", default="all", help="Region to narrow results to")
    parser.add_argument("--city", default="all", help="City to narrow results to")
    parser.add_argument("--min-rating", type=float, default=0.0, help="Minimum rating (inclusive)")
    parser.add_argument("--verified", action="store_true", help="Only show verified businesses")
    parser.add_argument("--featured", action="store_true", help="Only show featured businesses")
    parser.add_argument("--open-now", action="store_true", help="Only show businesses open right now")
    parser.add_argument(
        "--sort",
        choices=[criterion.value for criterion in SortCriterion],
        default=None,
        help="Sort criterion (defaults to featured, or distance when --near is given)",
    )
    parser.add_argument("--page", type=int, default=1, help="Page number to show")
    parser.add_argument("--near", default=None, help="Zip code or city name used for distances")
    parser.add_argument("--markers", action="store_true", help="Print map markers instead of the list")
    parser.add_argument("--suggest", default=None, metavar="QUERY", help="Print type-ahead business suggestions and exit")
    parser.add_argument("--cache", type=Path, default=None, help="SQLite file for the result cache")
    parser.add_argument("--config", type=Path, help="Optional JSON file overriding settings")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    return parser.parse_args(argv)


def load_config(path: Path | None) -> Dict[str, Any]:
    if not path:
        return {}
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def build_settings(args: argparse.Namespace, config: Dict[str, Any]) -> DirectorySettings:
    api_config = dict(config.get("api", {}))
    cache_config = dict(config.get("cache", {}))
    geocode_config = dict(config.get("geocode", {}))

    if args.cache is not None:
        cache_config["db_path"] = str(args.cache)

    return DirectorySettings(
        api=ApiSettings(**api_config),
        cache=CacheSettings(**cache_config),
        geocode=GeocodeSettings(**geocode_config),
        debounce_seconds=0.0,
        distance_unit=config.get("distance_unit", "mi"),
    )


def _print_suggestions(view: DirectoryView, query: str) -> int:
    search = SuggestionSearch(view.fetcher)
    try:
        suggestions = search.search(query).result()
    except DirectoryError as exc:
        logger.error("Suggestion search failed: %s", exc.message)
        return 1
    finally:
        search.close()

    for suggestion in suggestions:
        badge = " [verified]" if suggestion.verified else ""
        print(f"{suggestion.name}{badge} - {suggestion.address} ({suggestion.category})")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    _configure_logging(args.verbose)

    settings = build_settings(args, load_config(args.config))
    view = DirectoryView(settings)
    try:
        if args.suggest is not None:
            return _print_suggestions(view, args.suggest)

        view.load_taxonomies()
        view.apply_filters(
            FilterState(
                search=args.search,
                category=args.category,
                region=args.region,
                city=args.city,
                min_rating=args.min_rating,
                open_now=args.open_now,
                verified_only=args.verified,
                featured_only=args.featured,
            )
        )

        if args.near:
            if view.use_manual_location(args.near) is None:
                logger.error("%s", view.resolver.error)
                return 1
        if args.sort:
            view.set_sort(args.sort)

        if view.error:
            logger.error("%s", view.error)
            return 1

        if args.markers:
            print(json.dumps([asdict(marker) for marker in view.markers()], indent=2))
            return 0

        if args.page != 1 and not view.go_to_page(args.page):
            logger.error("Page %d is out of range (1-%d)", args.page, view.total_pages())
            return 1

        result = view.page_result()
        for vendor in result.vendors:
            suffix = f" - {format_distance(vendor.distance, settings.distance_unit)}" if vendor.distance is not None else ""
            print(f"{vendor.name} ({vendor.specialty}) {vendor.rating:.1f} - {vendor.location}{suffix}")
        print(f"Page {result.page} of {result.total_pages} ({result.total_filtered} businesses)")
        return 0
    finally:
        view.close()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
