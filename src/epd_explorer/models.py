"""Data Models Module

Defines Pydantic models for the records flowing through the engine: raw
catalog items as delivered upstream, the canonical Location entity, and the
value objects exchanged between the filter, matcher and de-clusterer.
"""

from typing import Any, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator

ALL = "all"

SourceCatalog = Literal["general", "declaration"]
ReferenceYear = Union[int, Literal["all"]]


class RawGeneralRecord(BaseModel):
    """Item from the general product catalog.

    Every field is optional; upstream data is frequently incomplete.
    Unknown keys are kept so nothing from the source page is lost.
    """
    model_config = ConfigDict(extra="allow")

    id: Optional[Any] = None
    name: Optional[str] = None
    product_name: Optional[str] = None
    category_name: Optional[Any] = None
    industry_solution: Optional[str] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
    pdf_url: Optional[str] = None
    geo: Optional[str] = None
    country: Optional[str] = None
    lat: Optional[Any] = None
    lng: Optional[Any] = None
    company_name: Optional[str] = None
    created_at: Optional[str] = None
    type: Optional[str] = None


class RawDeclarationRecord(BaseModel):
    """Item from the environmental-declaration catalog."""
    model_config = ConfigDict(extra="allow")

    uuid: Optional[str] = None
    name: Optional[str] = None
    classific: Optional[Any] = None
    ref_year: Optional[Any] = None
    pdf_url: Optional[str] = None
    geo: Optional[str] = None
    country: Optional[str] = None
    lat: Optional[Any] = None
    lng: Optional[Any] = None


class GeoPoint(BaseModel):
    """Entry of the country-coordinate index, keyed by geo hint."""
    model_config = ConfigDict(allow_inf_nan=False)

    country: str
    lat: float
    lng: float


class Location(BaseModel):
    """Canonical, displayable entity.

    Immutable: every transformation returns a new instance via
    ``model_copy(update=...)``.
    """
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    product_name: str
    latitude: float
    longitude: float
    country: str = "Unknown"
    reference_year: ReferenceYear = ALL
    is_declaration: bool = False
    source_catalog: SourceCatalog = "general"
    categories: List[str] = []
    document_url: Optional[str] = None
    company_name: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[str] = None
    external_id: Optional[str] = None
    geo: Optional[str] = None
    geo_mapped: bool = False

    @field_validator("categories", mode="before")
    @classmethod
    def _categories_as_list(cls, value: Any) -> List[str]:
        # A scalar label is wrapped, not split, so substring matching sees it whole.
        if value is None or value == "":
            return []
        if isinstance(value, str):
            return [value]
        if not isinstance(value, (list, tuple)):
            return [str(value)]
        return [str(v) for v in value if v is not None and v != ""]


class FilterCriteria(BaseModel):
    """Criteria for one filter pass. Built fresh per invocation, never mutated.

    ``year_range`` bounds are deliberately untyped: a non-numeric bound
    disables year filtering instead of failing validation.
    """
    model_config = ConfigDict(frozen=True)

    country: Optional[str] = None
    year_range: Tuple[Any, Any] = (ALL, ALL)
    category: Optional[str] = None
    declaration_only: bool = False
    active_search_results: Optional[List[Location]] = None


class FilterStats(BaseModel):
    declaration_total: int = 0
    declaration_kept_by_year: int = 0


class FilterOutcome(BaseModel):
    filtered: List[Location]
    stats: FilterStats


class MatchResult(BaseModel):
    """Matcher verdict. ``score`` is the matched-token fraction when a token
    rule decided the outcome, and None for the first-character fallback."""
    model_config = ConfigDict(frozen=True)

    is_match: bool
    score: Optional[float] = None


class Coordinate(BaseModel):
    lat: float
    lng: float
