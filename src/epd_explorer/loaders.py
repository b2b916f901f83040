"""Data Loader Module

Provides utilities to load raw catalog pages and the country-coordinate
index from JSON files. Catalog pages may be a flat array or wrapped in the
envelope the catalog API returns ('results' key, or 'documents').
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

from .models import GeoPoint

logger = logging.getLogger(__name__)


def load_catalog_page(path: str | Path) -> List[Dict[str, Any]]:
    """Load raw catalog records from a JSON file.

    Supports flexible input formats:
      - Direct list of records: [{...}, {...}, ...]
      - Wrapped in 'results' key: {"results": [...]}
      - Wrapped in 'documents' key: {"documents": [...]}

    Args:
        path: File path to JSON file containing one catalog page

    Returns:
        List of raw record dictionaries

    Raises:
        FileNotFoundError: If file does not exist
        json.JSONDecodeError: If file is not valid JSON
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, list):
        return data
    # fall back if wrapped
    return data.get("results") or data.get("documents") or []


def load_geo_index(path: str | Path) -> Dict[str, GeoPoint]:
    """Load the country-coordinate index.

    Accepts either a mapping ``{"DE": {"country": "Germany", "lat": .., "lng": ..}}``
    or a list of entries that each carry a ``code`` key. Keys are upper-cased.
    Entries without usable coordinates are skipped.
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, list):
        items = [(entry.get("code"), entry) for entry in data if isinstance(entry, dict)]
    else:
        items = list(data.items())

    index: Dict[str, GeoPoint] = {}
    for code, entry in items:
        if not code or not isinstance(entry, dict):
            continue
        try:
            index[str(code).strip().upper()] = GeoPoint(
                country=entry.get("country") or str(code),
                lat=entry["lat"],
                lng=entry["lng"],
            )
        except (KeyError, ValueError):
            logger.warning("Skipping geo index entry %r: missing or invalid coordinates", code)

    logger.debug("Loaded %d geo index entries from %s", len(index), path)
    return index
