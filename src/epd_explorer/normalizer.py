"""Record Normalization Module

Converts raw items from the general product catalog and the environmental
declaration catalog into the canonical Location entity.

Key responsibilities:
  - Map both source shapes onto one set of fields
  - Parse coordinates and drop records without a finite coordinate pair
  - Resolve geo hints through an optional country-coordinate index
  - Bound the amount of work with a configurable cap on input records
"""

import logging
import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from .config import MAX_LOCATIONS, UNKNOWN_COUNTRY, UNNAMED_PRODUCT
from .models import (
    ALL,
    GeoPoint,
    Location,
    RawDeclarationRecord,
    RawGeneralRecord,
    ReferenceYear,
)

logger = logging.getLogger(__name__)

YEAR_RE = re.compile(r"^\s*(\d{4})")

RawRecord = Union[Dict[str, Any], RawGeneralRecord, RawDeclarationRecord]


def parse_coordinate(value: Any) -> Optional[float]:
    """Return ``value`` as a finite float, or None if it is not one.

    Numeric strings are accepted; booleans, blanks, NaN and infinities are not.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_reference_year(value: Any) -> ReferenceYear:
    """Read a reference year, falling back to the "all" sentinel."""
    if value is None or isinstance(value, bool):
        return ALL
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else ALL
    if isinstance(value, str):
        if value.strip().lower() == ALL:
            return ALL
        if match := YEAR_RE.match(value):
            return int(match.group(1))
    logger.debug("Unreadable reference year %r, using %r", value, ALL)
    return ALL


def _normalize_optional_str(value: Any) -> Optional[str]:
    """Normalize to string or None. Empty strings become None."""
    if value is None:
        return None
    s = str(value).strip()
    return s if s else None


def _resolve_position(
    raw: RawGeneralRecord | RawDeclarationRecord,
    geo_index: Optional[Mapping[str, GeoPoint]],
) -> Optional[Dict[str, Any]]:
    """Work out latitude, longitude and country for one record.

    Returns None when the record has to be dropped.
    """
    lat = parse_coordinate(raw.lat)
    lng = parse_coordinate(raw.lng)
    hint = (raw.geo or "").strip().upper()
    indexed = geo_index.get(hint) if geo_index and hint else None

    country = _normalize_optional_str(raw.country) or (indexed.country if indexed else None)

    if lat is not None and lng is not None:
        return {
            "latitude": lat,
            "longitude": lng,
            "country": country or UNKNOWN_COUNTRY,
            "geo_mapped": False,
        }

    if indexed is not None:
        return {
            "latitude": indexed.lat,
            "longitude": indexed.lng,
            "country": country or UNKNOWN_COUNTRY,
            "geo_mapped": True,
        }

    return None


def general_to_location(
    raw: RawGeneralRecord,
    geo_index: Optional[Mapping[str, GeoPoint]] = None,
) -> Optional[Location]:
    """Convert one general-catalog record. Returns None if it has no position."""
    position = _resolve_position(raw, geo_index)
    if position is None:
        return None

    return Location(
        product_name=_normalize_optional_str(raw.product_name)
        or _normalize_optional_str(raw.name)
        or UNNAMED_PRODUCT,
        reference_year=ALL,
        is_declaration=(raw.type or "").upper() == "EPD",
        source_catalog="general",
        categories=raw.category_name,
        document_url=_normalize_optional_str(raw.pdf_url),
        company_name=_normalize_optional_str(raw.company_name),
        description=_normalize_optional_str(raw.description),
        image_url=_normalize_optional_str(raw.image_url),
        created_at=_normalize_optional_str(raw.created_at),
        external_id=_normalize_optional_str(raw.id),
        geo=_normalize_optional_str(raw.geo),
        **position,
    )


def declaration_to_location(
    raw: RawDeclarationRecord,
    geo_index: Optional[Mapping[str, GeoPoint]] = None,
) -> Optional[Location]:
    """Convert one declaration-catalog record. Returns None if it has no position."""
    position = _resolve_position(raw, geo_index)
    if position is None:
        return None

    return Location(
        product_name=_normalize_optional_str(raw.name) or UNNAMED_PRODUCT,
        reference_year=parse_reference_year(raw.ref_year),
        is_declaration=True,
        source_catalog="declaration",
        categories=raw.classific,
        document_url=_normalize_optional_str(raw.pdf_url),
        external_id=_normalize_optional_str(raw.uuid),
        geo=_normalize_optional_str(raw.geo),
        **position,
    )


def _as_raw(record: RawRecord, model: type) -> Any:
    """Validate one upstream item; None for items that are not records at all."""
    if isinstance(record, model):
        return record
    if isinstance(record, dict):
        return model.model_validate(record)
    return None


def normalize(
    general_records: Iterable[RawRecord],
    declaration_records: Iterable[RawRecord],
    max_locations: int = MAX_LOCATIONS,
    geo_index: Optional[Mapping[str, GeoPoint]] = None,
) -> List[Location]:
    """Normalize both catalogs into one list of Locations.

    Arrival order is general records first, then declaration records. When the
    combined input is larger than ``max_locations`` only the first
    ``max_locations`` records are normalized. Records without a valid
    coordinate pair (after geo-hint resolution) are skipped.

    Raises:
        TypeError: If either record collection is None.
        ValueError: If ``max_locations`` is not positive.
    """
    if general_records is None or declaration_records is None:
        raise TypeError("normalize() requires record lists, got None")
    if max_locations <= 0:
        raise ValueError(f"max_locations must be positive, got {max_locations}")

    tagged = [(r, RawGeneralRecord, general_to_location) for r in general_records]
    tagged += [(r, RawDeclarationRecord, declaration_to_location) for r in declaration_records]

    if len(tagged) > max_locations:
        logger.warning(
            "Too many records (%d), limiting to %d for performance",
            len(tagged),
            max_locations,
        )
        tagged = tagged[:max_locations]

    locations: List[Location] = []
    dropped = 0
    invalid = 0

    for idx, (record, model, convert) in enumerate(tagged):
        try:
            raw = _as_raw(record, model)
        except ValidationError as e:
            logger.warning(
                "Skipping malformed %s at idx=%d: %d validation error(s)",
                model.__name__,
                idx,
                e.error_count(),
            )
            invalid += 1
            continue

        if raw is None:
            logger.warning("Skipping non-record item at idx=%d: %r", idx, record)
            invalid += 1
            continue

        location = convert(raw, geo_index)
        if location is None:
            logger.debug(
                "Record missing valid coordinates: %r",
                getattr(raw, "product_name", None) or raw.name,
            )
            dropped += 1
            continue
        locations.append(location)

    logger.info(
        "✓ Normalized %d locations (dropped=%d without coordinates, invalid=%d)",
        len(locations),
        dropped,
        invalid,
    )
    return locations
