"""Pipeline CLI Entry Point

Provides the command-line interface for running the EPD product placement
pipeline. Handles argument parsing, logging configuration, and orchestration
of the run from raw catalog pages to placed map locations.

Usage:
    python -m src.run_pipeline --general data/products.json \\
        --declarations data/declarations.json --output-dir output
"""

# run_pipeline.py
import argparse
import logging
import time
from pathlib import Path

from src.epd_explorer.config import DECLUSTER_MAX_RADIUS, MAX_LOCATIONS
from src.epd_explorer.models import ALL
from src.epd_explorer.pipeline import run_pipeline


def configure_logging() -> None:
    """Configure logging with both console and file output.

    Sets up:
      - Root logger at DEBUG level
      - Console handler at INFO level for user-facing messages
      - File handler at DEBUG level for detailed troubleshooting
    """
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)
    log_file = log_dir / "pipeline.log"

    # Root logger
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )

    # Console handler: high-level INFO+
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)

    # File handler: detailed DEBUG+
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    # Clear existing handlers to avoid duplicates if run multiple times
    logger.handlers.clear()
    logger.addHandler(console_handler)
    logger.addHandler(file_handler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="EPD product map placement pipeline"
    )
    parser.add_argument(
        "--general",
        type=Path,
        default=Path("data/products.json"),
        help="Path to the general product catalog page (JSON).",
    )
    parser.add_argument(
        "--declarations",
        type=Path,
        default=Path("data/declarations.json"),
        help="Path to the environmental declaration catalog page (JSON).",
    )
    parser.add_argument(
        "--geo-index",
        type=Path,
        default=None,
        help="Optional country-coordinate index used to resolve geo hints.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("output"),
        help="Directory where output files will be written.",
    )
    parser.add_argument("--country", default=None, help="Only keep locations in this country.")
    parser.add_argument("--year-min", default=ALL, help="Lower reference year bound (default: all).")
    parser.add_argument("--year-max", default=ALL, help="Upper reference year bound (default: all).")
    parser.add_argument("--category", default=None, help="Case-insensitive category substring.")
    parser.add_argument(
        "--declaration-only",
        action="store_true",
        help="Only keep locations from the declaration catalog.",
    )
    parser.add_argument(
        "--query",
        default=None,
        help="Free-text product search; supersedes country/year/category filters.",
    )
    parser.add_argument(
        "--new-arrivals",
        action="store_true",
        help="Sort filtered locations newest first.",
    )
    parser.add_argument(
        "--max-locations",
        type=int,
        default=MAX_LOCATIONS,
        help=f"Maximum number of records to normalize (default: {MAX_LOCATIONS}).",
    )
    parser.add_argument(
        "--max-radius",
        type=float,
        default=DECLUSTER_MAX_RADIUS,
        help=f"De-cluster radius in degrees (default: {DECLUSTER_MAX_RADIUS}).",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for marker placement.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Process data but don't write output files",
    )
    parser.add_argument(
        "--no-history",
        action="store_true",
        help="Overwrite output files instead of creating timestamped versions",
    )
    return parser


def main(argv=None) -> int:
    """
    CLI entrypoint for the EPD product placement pipeline.

    Parses command-line arguments, runs the pipeline end-to-end,
    and returns a Unix-style exit code (0 on success, non-zero on failure).
    """
    configure_logging()
    logger = logging.getLogger(__name__)

    args = build_parser().parse_args(argv)

    logger.info("=== Starting EPD placement pipeline ===")
    logger.info("General catalog: %s", args.general)
    logger.info("Declaration catalog: %s", args.declarations)
    logger.info("Output directory: %s", args.output_dir)
    logger.info("Criteria: country=%s years=%s-%s category=%s declaration_only=%s",
                args.country or "all", args.year_min, args.year_max,
                args.category or "all", args.declaration_only)
    if args.query:
        logger.info("Query: %s", args.query)
    if args.dry_run:
        logger.info("DRY RUN MODE: Will not write output files")

    try:
        start_time = time.time()

        total_raw, placed_count, output_paths = run_pipeline(
            general_path=args.general,
            declaration_path=args.declarations,
            output_dir=args.output_dir,
            geo_index_path=args.geo_index,
            country=args.country,
            year_range=(args.year_min, args.year_max),
            category=args.category,
            declaration_only=args.declaration_only,
            query=args.query,
            new_arrivals=args.new_arrivals,
            max_locations=args.max_locations,
            max_radius=args.max_radius,
            seed=args.seed,
            dry_run=args.dry_run,
            keep_history=not args.no_history,
        )

        elapsed_time = time.time() - start_time

        # Comprehensive summary
        logger.info("=" * 70)
        logger.info("Pipeline completed successfully in %.2fs", elapsed_time)
        logger.info("")
        logger.info("Summary:")
        logger.info("  Placed:     %d locations from %d raw records", placed_count, total_raw)
        logger.info("")
        logger.info("Output files:")
        for name, path in output_paths.items():
            logger.info("  %-12s %s", f"{name}:", path)
        logger.info("=" * 70)

    except Exception as e:
        logger.exception(f"Pipeline failed with an unhandled exception: {e}")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
