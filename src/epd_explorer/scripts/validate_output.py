"""Output Validation Script

Validates that a placed-locations JSON file is ready for the map view:
  - Every entry is an object with a non-empty product_name
  - latitude/longitude are finite numbers
  - country is a string
  - Optional display fields have the expected types

Usage:
    python -m src.epd_explorer.scripts.validate_output \\
        --path output/placed.json

Exits with code 0 on success, 1 on validation failure, 2 on argument error.
"""

#!/usr/bin/env python
import argparse
import json
import math
from pathlib import Path
from typing import Any, Dict, List, Tuple

OPTIONAL_STRING_FIELDS = ("document_url", "company_name", "description", "created_at")


def load_locations(path: Path) -> List[Dict[str, Any]]:
    """Load placed locations from a JSON file.

    Supports:
      - a JSON array of objects
      - newline-delimited JSON (JSONL)
    """
    with path.open("r", encoding="utf-8") as f:
        content = f.read().strip()

    # Try: full file is a single JSON array
    try:
        data = json.loads(content)
        if isinstance(data, list):
            return data
        else:
            raise ValueError("Top-level JSON is not a list of locations.")
    except json.JSONDecodeError:
        pass  # fall through to JSONL

    # Try: JSON Lines (one JSON object per line)
    locations: List[Dict[str, Any]] = []
    for line_no, line in enumerate(content.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            obj = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(
                f"Failed to parse JSON on line {line_no}: {e}"
            ) from e
        if not isinstance(obj, dict):
            raise ValueError(
                f"Line {line_no} JSON is not an object (got {type(obj)})"
            )
        locations.append(obj)

    if not locations:
        raise ValueError("No locations found in file.")

    return locations


def is_finite_number(x: Any) -> bool:
    """True for int/float values that are finite (booleans excluded)."""
    return isinstance(x, (int, float)) and not isinstance(x, bool) and math.isfinite(x)


def validate_location(location: Any, idx: int) -> Tuple[List[str], List[str]]:
    """Validate a single placed location.

    Returns:
        (errors, warnings)
    """
    errors: List[str] = []
    warnings: List[str] = []

    if not isinstance(location, dict):
        errors.append(f"[idx={idx}] location should be an object, got {type(location).__name__}")
        return errors, warnings

    # --- product_name ---
    name = location.get("product_name")
    if name is None:
        errors.append(f"[idx={idx}] missing 'product_name'")
    elif not isinstance(name, str) or not name.strip():
        errors.append(f"[idx={idx}] 'product_name' should be a non-empty string")

    # --- coordinates ---
    for key in ("latitude", "longitude"):
        value = location.get(key)
        if value is None:
            errors.append(f"[idx={idx}] missing '{key}'")
        elif not is_finite_number(value):
            errors.append(f"[idx={idx}] '{key}' is not a finite number (got {value!r})")

    # --- country ---
    country = location.get("country")
    if not isinstance(country, str):
        errors.append(f"[idx={idx}] 'country' should be a string, got {type(country).__name__}")

    # --- categories ---
    categories = location.get("categories")
    if categories is None:
        warnings.append(f"[idx={idx}] missing 'categories'")
    elif not isinstance(categories, list):
        warnings.append(f"[idx={idx}] 'categories' is not a list (got {type(categories).__name__})")

    for key in OPTIONAL_STRING_FIELDS:
        value = location.get(key)
        if value is not None and not isinstance(value, str):
            warnings.append(f"[idx={idx}] {key} is not a string (got {type(value).__name__})")

    return errors, warnings


def main(argv: list[str] | None = None) -> None:
    """Validate a placed-locations output file.

    Args:
        argv: Command-line arguments. If None, uses sys.argv[1:]

    Raises:
        SystemExit: With code 0 on success, 1 on validation failure
    """
    parser = argparse.ArgumentParser(
        description="Validate placed locations JSON output."
    )
    parser.add_argument(
        "--path",
        type=str,
        required=True,
        help="Path to placed.json",
    )
    args = parser.parse_args(argv)

    path = Path(args.path)

    try:
        locations = load_locations(path)
    except Exception as e:
        print(f"FAILED TO LOAD FILE: {e}")
        raise SystemExit(1)

    all_errors: List[str] = []
    all_warnings: List[str] = []

    for idx, location in enumerate(locations):
        errors, warnings = validate_location(location, idx)
        all_errors.extend(errors)
        all_warnings.extend(warnings)

    if all_errors:
        print("VALIDATION FAILED:\n")
        for err in all_errors:
            print(err)
        print(f"\nTotal errors: {len(all_errors)}")
        if all_warnings:
            print(f"Total warnings: {len(all_warnings)}")
        raise SystemExit(1)

    print("VALIDATION PASSED")
    print(f"Total locations: {len(locations)}")
    if all_warnings:
        print("\nWarnings (non-fatal):")
        for w in all_warnings:
            print(w)
        print(f"\nTotal warnings: {len(all_warnings)}")

    raise SystemExit(0)

if __name__ == "__main__":
    main()
