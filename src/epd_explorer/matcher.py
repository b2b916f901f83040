"""Fuzzy Name Matching Module

Decides whether a free-text query matches a product name. Rules, first
applicable wins:

  1. Exact match of the lower-cased, trimmed strings.
  2. Vendor-prefixed comparison: when both names start with the same known
     vendor prefix ("zehnder-..."), the prefix is stripped and the remaining
     hyphen-separated tokens are compared. The share of query tokens found in
     the candidate decides, with a threshold of 0.5 by default.
  3. First-character fallback for queries without a vendor prefix. Loose on
     purpose: it runs on every keystroke and only narrows the list.

Also provides catalog search over general-catalog locations and resolution
of a picked product name back to a single location.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from .config import MATCH_RATIO_THRESHOLD, VENDOR_PREFIXES
from .models import Location, MatchResult

logger = logging.getLogger(__name__)

NO_MATCH = MatchResult(is_match=False)


def _normalize(name: Optional[str]) -> str:
    return (name or "").strip().lower()


class NameMatcher:
    """Stateless matcher configured with vendor prefixes and a token threshold."""

    def __init__(
        self,
        vendor_prefixes: Sequence[str] = VENDOR_PREFIXES,
        threshold: float = MATCH_RATIO_THRESHOLD,
    ):
        self.vendor_prefixes: Tuple[str, ...] = tuple(
            p.strip().lower().rstrip("-") + "-" for p in vendor_prefixes if p and p.strip()
        )
        self.threshold = threshold

    def vendor_prefix(self, name: str) -> Optional[str]:
        """Return the vendor prefix (with hyphen) that ``name`` starts with, if any."""
        normalized = _normalize(name)
        for prefix in self.vendor_prefixes:
            if normalized.startswith(prefix):
                return prefix
        return None

    def token_ratio(self, query_rest: str, candidate_rest: str) -> float:
        """Share of distinct query tokens that also occur in the candidate."""
        query_tokens = list(dict.fromkeys(t for t in query_rest.split("-") if t))
        if not query_tokens:
            return 0.0
        candidate_tokens = {t for t in candidate_rest.split("-") if t}
        matching = sum(1 for t in query_tokens if t in candidate_tokens)
        return matching / len(query_tokens)

    def matches(self, query: str, candidate_name: str) -> MatchResult:
        q = _normalize(query)
        c = _normalize(candidate_name)

        if not q or not c:
            return NO_MATCH

        if q == c:
            return MatchResult(is_match=True, score=1.0)

        query_prefix = self.vendor_prefix(q)
        candidate_prefix = self.vendor_prefix(c)

        if query_prefix is not None and query_prefix == candidate_prefix:
            ratio = self.token_ratio(q[len(query_prefix):], c[len(candidate_prefix):])
            if ratio == 1.0:
                return MatchResult(is_match=True, score=1.0)
            return MatchResult(is_match=ratio >= self.threshold, score=ratio)

        if query_prefix is None:
            return MatchResult(is_match=q[0] == c[0])

        return NO_MATCH


_default_matcher = NameMatcher()


def matches(
    query: str,
    candidate_name: str,
    matcher: Optional[NameMatcher] = None,
) -> MatchResult:
    """Match ``query`` against ``candidate_name`` with the configured matcher."""
    return (matcher or _default_matcher).matches(query, candidate_name)


def search_locations(
    query: str,
    locations: Iterable[Location],
    matcher: Optional[NameMatcher] = None,
    limit: Optional[int] = None,
) -> List[Tuple[Location, MatchResult]]:
    """Return general-catalog locations matching ``query``, in arrival order.

    Declaration-catalog locations are never returned by text search. No
    ranking is applied; ``limit`` simply truncates.
    """
    if locations is None:
        raise TypeError("search_locations() requires a list of locations, got None")

    matcher = matcher or _default_matcher
    if not _normalize(query):
        return []

    hits: List[Tuple[Location, MatchResult]] = []
    for location in locations:
        if location.source_catalog != "general":
            continue
        result = matcher.matches(query, location.product_name)
        if result.is_match:
            hits.append((location, result))
            if limit is not None and len(hits) >= limit:
                break

    logger.debug("Search %r matched %d locations", query, len(hits))
    return hits


def resolve_by_name(
    name: str,
    locations: Sequence[Location],
    matcher: Optional[NameMatcher] = None,
) -> Optional[Location]:
    """Find the location a picked product name refers to.

    Tries exact equality, then case-insensitive equality, then the first
    token-based fuzzy match (exact or vendor rule). The first-character
    fallback is not used here since it would resolve to an arbitrary entity.
    """
    if not name:
        return None

    for location in locations:
        if location.product_name == name:
            return location

    lowered = _normalize(name)
    for location in locations:
        if _normalize(location.product_name) == lowered:
            return location

    matcher = matcher or _default_matcher
    for location in locations:
        result = matcher.matches(name, location.product_name)
        if result.is_match and result.score is not None:
            logger.debug("Resolved %r to %r (score=%.2f)", name, location.product_name, result.score)
            return location

    logger.warning("No matching location found for: %s", name)
    return None
