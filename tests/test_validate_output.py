# tests/test_validate_output.py

"""
Tests for the placed-locations output validator.
"""


import json
import math
import sys
from pathlib import Path

import pytest

from src.epd_explorer.scripts.validate_output import (
    is_finite_number,
    load_locations,
    validate_location,
    main as validate_main,
)


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------


def make_valid_location(idx: int = 0):
    """Create a minimal valid placed location for reuse in tests."""
    return {
        "product_name": f"Product {idx}",
        "latitude": 51.0 + idx,
        "longitude": 10.0,
        "country": "Germany",
        "reference_year": "all",
        "is_declaration": False,
        "source_catalog": "general",
        "categories": ["Ventilation"],
        "document_url": f"https://example.com/{idx}.pdf",
    }


# -------------------------------------------------------------------
# Unit tests for validate_location
# -------------------------------------------------------------------


def test_validate_location_valid():
    errors, warnings = validate_location(make_valid_location(), idx=0)

    assert errors == []
    assert warnings == []


def test_validate_location_missing_product_name():
    location = make_valid_location()
    location.pop("product_name")

    errors, _ = validate_location(location, idx=0)

    assert any("missing 'product_name'" in e for e in errors)


def test_validate_location_blank_product_name():
    location = make_valid_location()
    location["product_name"] = "   "

    errors, _ = validate_location(location, idx=0)

    assert any("'product_name' should be a non-empty string" in e for e in errors)


def test_validate_location_non_finite_coordinate():
    location = make_valid_location()
    location["latitude"] = math.inf

    errors, _ = validate_location(location, idx=3)

    assert any("[idx=3] 'latitude' is not a finite number" in e for e in errors)


def test_validate_location_string_coordinate_is_error():
    location = make_valid_location()
    location["longitude"] = "10.0"

    errors, _ = validate_location(location, idx=0)

    assert any("'longitude' is not a finite number" in e for e in errors)


def test_validate_location_zero_coordinates_are_valid():
    location = make_valid_location()
    location["latitude"] = 0
    location["longitude"] = 0.0

    errors, _ = validate_location(location, idx=0)

    assert errors == []


def test_validate_location_missing_country():
    location = make_valid_location()
    del location["country"]

    errors, _ = validate_location(location, idx=0)

    assert any("'country' should be a string" in e for e in errors)


def test_validate_location_not_an_object():
    errors, warnings = validate_location(["not", "a", "dict"], idx=0)

    assert any("location should be an object" in e for e in errors)
    assert warnings == []


def test_validate_location_category_and_optional_field_warnings():
    location = make_valid_location()
    location["categories"] = "Ventilation"
    location["document_url"] = 42

    errors, warnings = validate_location(location, idx=0)

    assert errors == []
    assert any("'categories' is not a list" in w for w in warnings)
    assert any("document_url is not a string" in w for w in warnings)


def test_is_finite_number_excludes_booleans():
    assert is_finite_number(1.5)
    assert not is_finite_number(True)
    assert not is_finite_number(math.nan)


# -------------------------------------------------------------------
# Unit tests for load_locations
# -------------------------------------------------------------------


def test_load_locations_array_json(tmp_path: Path):
    file_path = tmp_path / "placed.json"
    file_path.write_text(json.dumps([make_valid_location(idx=0)]), encoding="utf-8")

    loaded = load_locations(file_path)
    assert len(loaded) == 1
    assert loaded[0]["product_name"] == "Product 0"


def test_load_locations_jsonl(tmp_path: Path):
    lines = "\n".join(json.dumps(make_valid_location(idx=i)) for i in range(2))
    file_path = tmp_path / "placed.jsonl"
    file_path.write_text(lines, encoding="utf-8")

    loaded = load_locations(file_path)
    assert [loc["product_name"] for loc in loaded] == ["Product 0", "Product 1"]


def test_load_locations_top_level_object_raises(tmp_path: Path):
    file_path = tmp_path / "object.json"
    file_path.write_text(json.dumps({"results": []}), encoding="utf-8")

    with pytest.raises(ValueError):
        load_locations(file_path)


def test_load_locations_invalid_json_raises(tmp_path: Path):
    file_path = tmp_path / "bad.json"
    file_path.write_text("not valid json at all", encoding="utf-8")

    with pytest.raises(ValueError):
        load_locations(file_path)


def test_load_locations_empty_file_raises(tmp_path: Path):
    file_path = tmp_path / "empty.json"
    file_path.write_text("", encoding="utf-8")

    with pytest.raises(ValueError):
        load_locations(file_path)


# -------------------------------------------------------------------
# Lightweight "integration" tests for the CLI entrypoint (main)
# -------------------------------------------------------------------


def test_validate_main_passes_on_valid_file(tmp_path: Path, capsys, monkeypatch):
    file_path = tmp_path / "placed.json"
    file_path.write_text(json.dumps([make_valid_location()]), encoding="utf-8")

    monkeypatch.setattr(sys, "argv", ["validate_output.py", "--path", str(file_path)])

    with pytest.raises(SystemExit) as excinfo:
        validate_main()

    assert excinfo.value.code == 0

    captured = capsys.readouterr()
    assert "VALIDATION PASSED" in captured.out
    assert "Total locations: 1" in captured.out


def test_validate_main_fails_on_invalid_file(tmp_path: Path, capsys, monkeypatch):
    location = make_valid_location()
    location.pop("latitude")
    file_path = tmp_path / "invalid.json"
    file_path.write_text(json.dumps([location]), encoding="utf-8")

    monkeypatch.setattr(sys, "argv", ["validate_output.py", "--path", str(file_path)])

    with pytest.raises(SystemExit) as excinfo:
        validate_main()

    assert excinfo.value.code == 1

    captured = capsys.readouterr()
    assert "VALIDATION FAILED" in captured.out
    assert "missing 'latitude'" in captured.out


def test_validate_main_missing_file_fails(tmp_path: Path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        validate_main(["--path", str(tmp_path / "nope.json")])

    assert excinfo.value.code == 1
    assert "FAILED TO LOAD FILE" in capsys.readouterr().out
