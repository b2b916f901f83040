"""Selection/Search State Synchronizer

Keeps the search query, the selected location and the structural filters
consistent with each other:

  - Typing a non-empty query clears the selection. If structural filters are
    active when the query goes from empty to non-empty, the declaration-only
    toggle is switched off.
  - Picking a location sets the query to its name and leaves filters alone.
  - Clearing the query clears the selection and, if country, category or
    declaration-only changed while the query was non-empty, restores the
    filters captured on the first keystroke.

States: IDLE -> TYPING -> RESULTS_SHOWN | NO_RESULTS, back to IDLE on clear,
SELECTED on a pick, and TYPING again on the next keystroke.
"""

import logging
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .config import SEARCH_RESULT_LIMIT
from .events import AllMarkersRequested, FiltersReset, Message, MessageBus, SearchCleared
from .matcher import NameMatcher, resolve_by_name, search_locations
from .models import ALL, FilterCriteria, Location, MatchResult

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    IDLE = "idle"
    TYPING = "typing"
    RESULTS_SHOWN = "results_shown"
    NO_RESULTS = "no_results"
    SELECTED = "selected"


class StructuralFilters(BaseModel):
    """Filter toggles chosen by the user, independent of the search query."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    country: Optional[str] = None
    category: Optional[str] = None
    declaration_only: bool = False
    year_range: Tuple[Any, Any] = (ALL, ALL)

    def tracked(self) -> Tuple[Optional[str], Optional[str], bool]:
        """Values whose change while searching arms the restore on clear."""
        return (self.country, self.category, self.declaration_only)

    def is_active(self) -> bool:
        return (
            self.country not in (None, "", ALL)
            or self.category not in (None, "", ALL)
            or self.declaration_only
        )


class SearchSynchronizer:
    """Owns query, selection and filter state for one map view."""

    def __init__(
        self,
        locations: Iterable[Location] = (),
        matcher: Optional[NameMatcher] = None,
        bus: Optional[MessageBus] = None,
        filters: Optional[StructuralFilters] = None,
        result_limit: int = SEARCH_RESULT_LIMIT,
    ):
        self.matcher = matcher
        self.result_limit = result_limit
        self.query: str = ""
        self.selected: Optional[Location] = None
        self.filters: StructuralFilters = filters or StructuralFilters()
        self.results: List[Tuple[Location, MatchResult]] = []
        self.phase: Phase = Phase.IDLE

        self._locations: List[Location] = list(locations)
        self._baseline: Optional[StructuralFilters] = None
        self._filters_changed = False

        if bus is not None:
            self.attach(bus)

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def attach(self, bus: MessageBus) -> None:
        bus.subscribe(FiltersReset, self._on_filters_reset)
        bus.subscribe(SearchCleared, self._on_search_cleared)
        bus.subscribe(AllMarkersRequested, self._on_all_markers_requested)

    def set_locations(self, locations: Iterable[Location]) -> None:
        """Replace the searchable catalog and refresh results for the current query."""
        self._locations = list(locations)
        if self.query:
            self._refresh_results()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def set_query(self, text: str) -> None:
        """Handle a keystroke. An empty query is treated as a clear."""
        text = text or ""
        if not text.strip():
            self.clear()
            return

        became_non_empty = not self.query
        if self._baseline is None:
            self._baseline = self.filters
            logger.debug("Captured filter baseline: %s", self._baseline)

        self.query = text
        self.selected = None
        self.phase = Phase.TYPING

        if became_non_empty and self.filters.is_active() and self.filters.declaration_only:
            logger.info("User typing with active filters, disabling declaration-only")
            self._apply_filters(self.filters.model_copy(update={"declaration_only": False}))

        self._refresh_results()

    def select(self, location: Location) -> None:
        """Pick a location from the results; filters are kept."""
        self.selected = location
        self.query = location.product_name
        self.phase = Phase.SELECTED
        self._refresh_results()
        logger.debug("Product selected: %s", location.product_name)

    def select_by_name(self, name: str) -> Optional[Location]:
        """Resolve ``name`` against the catalog and select it. Returns the pick or None."""
        location = resolve_by_name(name, self._locations, self.matcher)
        if location is not None:
            self.select(location)
        return location

    def clear(self) -> None:
        """Explicit clear of the search box."""
        restore = self._baseline is not None and self._filters_changed

        self.query = ""
        self.selected = None
        self.results = []
        self.phase = Phase.IDLE

        if restore:
            logger.info("Search cleared, restoring filters: %s", self._baseline)
            self.filters = self._baseline

        self._baseline = None
        self._filters_changed = False

    def update_filters(self, **changes: Any) -> StructuralFilters:
        """Change structural filters, e.g. ``update_filters(country="Germany")``.

        Raises:
            pydantic.ValidationError: On unknown filter names or bad values.
        """
        updated = StructuralFilters(**{**self.filters.model_dump(), **changes})
        self._apply_filters(updated)
        return self.filters

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def criteria(self) -> FilterCriteria:
        """Build a fresh FilterCriteria from the current state."""
        return FilterCriteria(
            country=self.filters.country,
            year_range=self.filters.year_range,
            category=self.filters.category,
            declaration_only=self.filters.declaration_only,
            active_search_results=[loc for loc, _ in self.results] if self.query else None,
        )

    def dropdown(self) -> List[Tuple[Location, MatchResult]]:
        """Top search results in arrival order, for the dropdown."""
        return self.results[: self.result_limit]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _apply_filters(self, updated: StructuralFilters) -> None:
        if self.query and updated.tracked() != self.filters.tracked():
            self._filters_changed = True
        self.filters = updated

    def _refresh_results(self) -> None:
        self.results = search_locations(self.query, self._locations, self.matcher)
        if self.phase is not Phase.SELECTED:
            self.phase = Phase.RESULTS_SHOWN if self.results else Phase.NO_RESULTS
        logger.debug("Search %r: %d results, phase=%s", self.query, len(self.results), self.phase.value)

    def _on_filters_reset(self, message: Message) -> None:
        logger.debug("Resetting filters from: %s", message.source)
        if self.filters.category not in (None, "", ALL) or self.filters.declaration_only:
            self.update_filters(category=None, declaration_only=False)

    def _on_search_cleared(self, message: Message) -> None:
        logger.debug("Clearing search from: %s", message.source)
        self.clear()

    def _on_all_markers_requested(self, message: Message) -> None:
        logger.debug("Showing all markers, triggered by: %s", message.source)
        self.update_filters(country=None, category=None, declaration_only=False)
