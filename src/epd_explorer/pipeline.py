"""
Placement Pipeline for the EPD product map

Runs the engine end to end on catalog pages stored as JSON files: the
records are normalized, searched, filtered and de-clustered, and the
results are written as JSON ready for the map view.

Features:
- Criteria passed explicitly for each run
- Timestamped versioning of outputs
- Seedable placement for reproducible runs
- Step timing and structured logging
"""

from pathlib import Path
import json
import logging
import random
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .config import DECLUSTER_MAX_RADIUS, MAX_LOCATIONS
from .decluster import decluster_all
from .filters import filter_locations, sort_new_arrivals
from .loaders import load_catalog_page, load_geo_index
from .matcher import NameMatcher, search_locations
from .models import ALL, FilterCriteria, FilterOutcome, Location
from .normalizer import normalize


logger = logging.getLogger(__name__)


def _dump_locations(locations: List[Location]) -> List[Dict[str, Any]]:
    return [loc.model_dump(mode="json") for loc in locations]


def _load_page(path: Optional[Path | str], label: str) -> List[Dict[str, Any]]:
    if path is None:
        logger.info("No %s catalog given, using empty page", label)
        return []
    path = Path(path)
    try:
        return load_catalog_page(path)
    except FileNotFoundError:
        logger.exception("%s catalog not found: %s", label.capitalize(), path)
        raise
    except json.JSONDecodeError:
        logger.exception("Invalid JSON in %s catalog: %s", label, path)
        raise


def run_pipeline(
    general_path: Optional[Path | str] = "data/products.json",
    declaration_path: Optional[Path | str] = "data/declarations.json",
    output_dir: Path | str = "output",
    geo_index_path: Optional[Path | str] = None,
    country: Optional[str] = None,
    year_range: Tuple[Any, Any] = (ALL, ALL),
    category: Optional[str] = None,
    declaration_only: bool = False,
    query: Optional[str] = None,
    new_arrivals: bool = False,
    max_locations: int = MAX_LOCATIONS,
    max_radius: float = DECLUSTER_MAX_RADIUS,
    seed: Optional[int] = None,
    matcher: Optional[NameMatcher] = None,
    dry_run: bool = False,
    keep_history: bool = True,
) -> Tuple[int, int, Dict[str, Path]]:
    """
    Run the complete placement pipeline.

    Pipeline Steps:
    1. Load raw catalog pages from JSON
    2. Normalize into Locations (capped at max_locations)
    3. Resolve the search query against general-catalog locations
    4. Filter by the criteria (optionally sort as new arrivals)
    5. De-cluster and save outputs

    Args:
        general_path: General-catalog page (None = empty)
        declaration_path: Declaration-catalog page (None = empty)
        output_dir: Directory for all output files
        geo_index_path: Optional country-coordinate index for geo hints
        country, year_range, category, declaration_only: Structural filters
        query: Free-text search; when given, it supersedes structural filters
        new_arrivals: Sort filtered locations newest first
        seed: Seed for placement randomness (None = non-deterministic)
        dry_run: Process everything but write nothing
        keep_history: If True, keep timestamped versions; if False, overwrite

    Returns:
        Tuple of (total_raw_records, placed_locations, output_paths_dict)

    Raises:
        FileNotFoundError: If an input path doesn't exist
        json.JSONDecodeError: If an input file is invalid JSON
    """
    output_dir = Path(output_dir)
    run_timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    job_start = time.time()

    logger.debug("Starting placement run: placement_%s", run_timestamp)

    # ========== STEP 1: LOAD CATALOG PAGES ==========
    t0 = time.time()
    logger.info("STEP 1/5: Loading catalog pages")

    general_raw = _load_page(general_path, "general")
    declaration_raw = _load_page(declaration_path, "declaration")
    geo_index = load_geo_index(geo_index_path) if geo_index_path else None
    total_raw = len(general_raw) + len(declaration_raw)

    logger.info(
        "✓ Loaded %d general and %d declaration records in %.2fs",
        len(general_raw),
        len(declaration_raw),
        time.time() - t0,
    )

    # ========== STEP 2: NORMALIZE ==========
    t1 = time.time()
    logger.info("STEP 2/5: Normalizing %d records", total_raw)
    locations = normalize(general_raw, declaration_raw, max_locations=max_locations, geo_index=geo_index)
    logger.info("✓ Normalize step completed in %.2fs (%d locations)", time.time() - t1, len(locations))

    # ========== STEP 3: SEARCH ==========
    search_results: Optional[List[Location]] = None
    if query and query.strip():
        logger.info("STEP 3/5: Searching for %r", query)
        search_results = [loc for loc, _ in search_locations(query, locations, matcher)]
        logger.info("✓ Search matched %d locations", len(search_results))
    else:
        logger.info("STEP 3/5: No search query, skipping search")

    # ========== STEP 4: FILTER ==========
    t3 = time.time()
    logger.info("STEP 4/5: Filtering %d locations", len(locations))
    criteria = FilterCriteria(
        country=country,
        year_range=year_range,
        category=category,
        declaration_only=declaration_only,
        active_search_results=search_results,
    )
    outcome: FilterOutcome = filter_locations(locations, criteria, matcher)
    filtered = sort_new_arrivals(outcome.filtered) if new_arrivals else outcome.filtered
    logger.info(
        "✓ Filter step completed in %.2fs (kept=%d, declarations in range=%d/%d)",
        time.time() - t3,
        len(filtered),
        outcome.stats.declaration_kept_by_year,
        outcome.stats.declaration_total,
    )

    # ========== STEP 5: DE-CLUSTER & SAVE ==========
    logger.info("STEP 5/5: De-clustering and saving outputs")
    rng = random.Random(seed)
    placed = decluster_all(filtered, max_radius=max_radius, rng=rng)

    output_paths: Dict[str, Path] = {}

    if dry_run:
        logger.info("DRY RUN: skipping write of filtered and placed locations")
        return total_raw, len(placed), output_paths

    suffix = f"_{run_timestamp}" if keep_history else ""
    filtered_path = output_dir / f"filtered{suffix}.json"
    placed_path = output_dir / f"placed{suffix}.json"

    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        with filtered_path.open("w", encoding="utf-8") as f:
            json.dump(_dump_locations(filtered), f, ensure_ascii=False, indent=2)
        output_paths["filtered"] = filtered_path

        with placed_path.open("w", encoding="utf-8") as f:
            json.dump(_dump_locations(placed), f, ensure_ascii=False, indent=2)
        output_paths["placed"] = placed_path

        logger.info("✓ Wrote %d placed locations to %s", len(placed), placed_path.name)
    except Exception:
        logger.exception("Failed to save placement outputs")
        raise

    _save_metadata(output_dir, run_timestamp, keep_history, {
        "general_file": str(general_path) if general_path else None,
        "declaration_file": str(declaration_path) if declaration_path else None,
        "total_raw": total_raw,
        "normalized": len(locations),
        "filtered": len(filtered),
        "placed": len(placed),
        "criteria": criteria.model_dump(mode="json", exclude={"active_search_results"}),
        "query": query,
        "search_results": len(search_results) if search_results is not None else None,
        "stats": outcome.stats.model_dump(),
        "seed": seed,
        "outputs": {k: str(v) for k, v in output_paths.items()},
        "duration_seconds": time.time() - job_start,
    })

    logger.debug(
        "Placement run completed: %d raw → %d normalized → %d placed",
        total_raw,
        len(locations),
        len(placed),
    )

    return total_raw, len(placed), output_paths


def _save_metadata(
    output_dir: Path,
    run_timestamp: str,
    keep_history: bool,
    metadata: Dict[str, Any]
) -> None:
    """Save pipeline run metadata."""
    if keep_history:
        meta_filename = f"run_metadata_{run_timestamp}.json"
    else:
        meta_filename = "run_metadata.json"

    meta_path = output_dir / meta_filename
    metadata["timestamp"] = run_timestamp

    try:
        with meta_path.open("w", encoding="utf-8") as f:
            json.dump(metadata, f, ensure_ascii=False, indent=2)
        logger.info("✓ Saved: %s", meta_filename)
    except Exception:
        logger.warning("Failed to save metadata (non-fatal)", exc_info=True)
