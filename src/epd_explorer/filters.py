"""Filter Pipeline Module

Applies the structural and search criteria to normalized locations in a
single pass and reports declaration statistics for the caller's counters.

Predicates, combined with AND:
  1. declaration-only gate
  2. active search-result gate (when active, it replaces 3-5)
  3. country
  4. year range
  5. category

Also provides the "new arrivals" sort and the category index, which callers
apply to the filter output explicitly.
"""

import logging
import math
from collections import Counter
from datetime import datetime, timezone
from functools import cmp_to_key
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from .config import CATEGORY_DELIMITER, UNCATEGORIZED
from .matcher import NameMatcher, matches
from .models import ALL, FilterCriteria, FilterOutcome, FilterStats, Location

logger = logging.getLogger(__name__)

YearBounds = Tuple[float, float]


def is_declaration_sourced(location: Location) -> bool:
    return location.is_declaration and location.source_catalog == "declaration"


def _parse_bound(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def year_bounds(year_range: Sequence[Any]) -> Optional[YearBounds]:
    """Return numeric (min, max) bounds, or None when year filtering is off.

    Any bound that is "all", missing or non-numeric switches the filter off.
    """
    if not year_range or len(year_range) != 2:
        return None
    low, high = (_parse_bound(v) for v in year_range)
    if low is None or high is None:
        return None
    return low, high


def year_matches(location: Location, bounds: Optional[YearBounds], declaration_only: bool) -> bool:
    if bounds is None:
        return True
    # With the declaration-only toggle on, only declaration-sourced entities are year-filtered.
    if declaration_only and not is_declaration_sourced(location):
        return True
    if location.reference_year == ALL:
        return True
    return bounds[0] <= location.reference_year <= bounds[1]


def _is_unset(value: Optional[str]) -> bool:
    return not value or value == ALL


def country_matches(location: Location, country: Optional[str]) -> bool:
    return _is_unset(country) or location.country == country


def category_matches(categories: Union[str, Iterable[str], None], category: Optional[str]) -> bool:
    """Case-insensitive substring test over a category string or list of strings."""
    if _is_unset(category):
        return True
    if not categories:
        return False
    if isinstance(categories, str):
        categories = [categories]
    term = category.lower()
    return any(isinstance(c, str) and term in c.lower() for c in categories)


def search_matches(
    location: Location,
    search_names: Sequence[str],
    matcher: Optional[NameMatcher] = None,
) -> bool:
    """True when the location matches a general-catalog search result name.

    Only the token rules (exact or vendor prefix) count here. The first-character
    fallback narrows the dropdown while typing but never admits a marker.
    """
    for name in search_names:
        result = matches(name, location.product_name, matcher)
        if result.is_match and result.score is not None:
            return True
    return False


def filter_locations(
    locations: Sequence[Location],
    criteria: FilterCriteria,
    matcher: Optional[NameMatcher] = None,
) -> FilterOutcome:
    """Filter ``locations`` by ``criteria``.

    The output keeps input order. ``stats.declaration_total`` counts the
    declaration-sourced entities in the input and
    ``stats.declaration_kept_by_year`` those of them not excluded by the year
    predicate.

    Raises:
        TypeError: If ``locations`` is None.
    """
    if locations is None:
        raise TypeError("filter_locations() requires a list of locations, got None")

    logger.debug(
        "Filtering %d locations: country=%r years=%r category=%r declaration_only=%s search=%d",
        len(locations),
        criteria.country,
        criteria.year_range,
        criteria.category,
        criteria.declaration_only,
        len(criteria.active_search_results or []),
    )

    search_active = bool(criteria.active_search_results)
    search_names = [
        r.product_name
        for r in (criteria.active_search_results or [])
        if r.source_catalog == "general"
    ]
    bounds = year_bounds(criteria.year_range)

    declaration_total = 0
    excluded_by_year = 0
    filtered: List[Location] = []

    for location in locations:
        declaration = is_declaration_sourced(location)
        if declaration:
            declaration_total += 1

        if criteria.declaration_only and location.source_catalog != "declaration":
            continue

        if search_active:
            if search_matches(location, search_names, matcher):
                filtered.append(location)
            continue

        country_ok = country_matches(location, criteria.country)
        year_ok = year_matches(location, bounds, criteria.declaration_only)
        category_ok = category_matches(location.categories, criteria.category)

        if not year_ok and declaration:
            excluded_by_year += 1
            logger.debug(
                "Year filter excluded: %s, year: %s, range: %s",
                location.product_name,
                location.reference_year,
                bounds,
            )

        if country_ok and year_ok and category_ok:
            filtered.append(location)

    stats = FilterStats(
        declaration_total=declaration_total,
        declaration_kept_by_year=declaration_total - excluded_by_year,
    )

    if bounds is not None:
        logger.debug(
            "Declaration statistics: %d/%d within year range [%s, %s]",
            stats.declaration_kept_by_year,
            stats.declaration_total,
            bounds[0],
            bounds[1],
        )
    logger.debug("Filtered locations: %d of %d", len(filtered), len(locations))

    return FilterOutcome(filtered=filtered, stats=stats)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    # Naive timestamps are taken as UTC.
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _year_or_zero(location: Location) -> int:
    return location.reference_year if isinstance(location.reference_year, int) else 0


def _compare_arrivals(a: Location, b: Location) -> int:
    ta = _parse_timestamp(a.created_at)
    tb = _parse_timestamp(b.created_at)
    if ta is not None and tb is not None:
        return (tb > ta) - (tb < ta)
    return _year_or_zero(b) - _year_or_zero(a)


def sort_new_arrivals(locations: Iterable[Location]) -> List[Location]:
    """Newest first: by creation timestamp when both sides have one, else by reference year."""
    return sorted(locations, key=cmp_to_key(_compare_arrivals))


def _split_categories(location: Location) -> List[str]:
    labels = [
        part.strip()
        for category in (location.categories or [UNCATEGORIZED])
        for part in category.split(CATEGORY_DELIMITER)
    ]
    return [label for label in labels if label]


def list_categories(locations: Iterable[Location]) -> List[str]:
    """Distinct category labels in first-seen order."""
    return list(dict.fromkeys(label for loc in locations for label in _split_categories(loc)))


def top_categories(locations: Iterable[Location], limit: int = 4) -> List[Tuple[str, int]]:
    """Most frequent category labels with their counts; ties keep first-seen order."""
    counts = Counter(label for loc in locations for label in _split_categories(loc))
    return counts.most_common(limit)
