import json
import math
from pathlib import Path

import pytest

from src.epd_explorer.loaders import load_catalog_page, load_geo_index
from src.epd_explorer.models import ALL, Location, RawGeneralRecord
from src.epd_explorer.normalizer import (
    declaration_to_location,
    general_to_location,
    normalize,
    parse_coordinate,
    parse_reference_year,
)

FIXTURES = Path(__file__).parent / "fixtures"


# --- helpers -----------------------------------------------------------------


def load_general():
    return load_catalog_page(FIXTURES / "general_small.json")


def load_declarations():
    return load_catalog_page(FIXTURES / "declarations_small.json")


def general(name="widget", lat=10.0, lng=20.0, **extra):
    return {"product_name": name, "lat": lat, "lng": lng, **extra}


def declaration(name="decl", lat=10.0, lng=20.0, **extra):
    return {"name": name, "lat": lat, "lng": lng, **extra}


# --- parse_coordinate / parse_reference_year ---------------------------------


@pytest.mark.parametrize(
    "value, expected",
    [
        (12.5, 12.5),
        ("51.1657", 51.1657),
        (" -3 ", -3.0),
        (0, 0.0),
    ],
)
def test_parse_coordinate_accepts_finite_numbers(value, expected):
    assert parse_coordinate(value) == expected


@pytest.mark.parametrize("value", [None, "", "  ", "abc", float("nan"), float("inf"), True, [1.0]])
def test_parse_coordinate_rejects_invalid_values(value):
    assert parse_coordinate(value) is None


def test_parse_reference_year_variants():
    assert parse_reference_year(2020) == 2020
    assert parse_reference_year("2019") == 2019
    assert parse_reference_year("2018-05-01") == 2018
    assert parse_reference_year(None) == ALL
    assert parse_reference_year("all") == ALL
    assert parse_reference_year("unknown") == ALL


# --- single record conversion ------------------------------------------------


def test_general_record_maps_fields():
    raw = RawGeneralRecord.model_validate(
        general(
            name="zehnder-comfoair-q-350",
            category_name="Ventilation",
            company_name="Zehnder",
            created_at="2024-03-01T10:00:00Z",
            pdf_url="https://example.com/doc.pdf",
            id=7,
        )
    )
    loc = general_to_location(raw)

    assert loc.product_name == "zehnder-comfoair-q-350"
    assert loc.categories == ["Ventilation"]
    assert loc.reference_year == ALL
    assert loc.is_declaration is False
    assert loc.source_catalog == "general"
    assert loc.company_name == "Zehnder"
    assert loc.created_at == "2024-03-01T10:00:00Z"
    assert loc.document_url == "https://example.com/doc.pdf"
    assert loc.external_id == "7"
    assert loc.country == "Unknown"


def test_general_record_prefers_product_name_over_name():
    loc = general_to_location(RawGeneralRecord.model_validate({"product_name": "a", "name": "b", "lat": 1, "lng": 1}))
    assert loc.product_name == "a"

    loc = general_to_location(RawGeneralRecord.model_validate({"name": "b", "lat": 1, "lng": 1}))
    assert loc.product_name == "b"


def test_general_record_typed_as_declaration_keeps_general_provenance():
    [loc] = normalize([general(type="EPD")], [])
    assert loc.is_declaration is True
    assert loc.source_catalog == "general"


def test_declaration_record_maps_fields():
    [loc] = normalize(
        [],
        [declaration(
            name="Transportbeton C25/30",
            classific="Beton / Betonbauteile",
            ref_year="2020",
            pdf_url="https://example.com/epd.pdf",
            uuid="u-1",
        )],
    )

    assert loc.product_name == "Transportbeton C25/30"
    assert loc.categories == ["Beton / Betonbauteile"]
    assert loc.reference_year == 2020
    assert loc.document_url == "https://example.com/epd.pdf"
    assert loc.is_declaration is True
    assert loc.source_catalog == "declaration"
    assert loc.external_id == "u-1"


def test_declaration_without_ref_year_uses_all_sentinel():
    [loc] = normalize([], [declaration()])
    assert loc.reference_year == ALL


def test_missing_name_falls_back_to_placeholder():
    [loc] = normalize([{"lat": 1, "lng": 2}], [])
    assert loc.product_name == "Unnamed Product"


# --- normalize() over whole pages --------------------------------------------


def test_normalize_drops_records_without_valid_coordinates():
    locations = normalize(load_general(), load_declarations())

    names = [loc.product_name for loc in locations]
    assert "ghost-product" not in names
    assert "steel-beam-s355" not in names
    assert "Mineralwolle Daemmplatte" not in names
    assert len(locations) == 5


def test_normalize_output_has_only_finite_coordinates():
    raw_general = [
        general(lat=None),
        general(lat="nan"),
        general(lng="inf"),
        general(lat="", lng=""),
        general(lat="12.5", lng="-3"),
        general(lat=0, lng=0),
    ]
    locations = normalize(raw_general, [declaration(lat="x"), declaration()])

    assert len(locations) == 3
    for loc in locations:
        assert math.isfinite(loc.latitude)
        assert math.isfinite(loc.longitude)


def test_normalize_keeps_general_then_declaration_order():
    locations = normalize(
        [general("g1"), general("g2")],
        [declaration("d1"), declaration("d2")],
    )
    assert [loc.product_name for loc in locations] == ["g1", "g2", "d1", "d2"]


def test_normalize_caps_input_in_arrival_order():
    raw_general = [general(f"g{i}") for i in range(4)]
    raw_decl = [declaration(f"d{i}") for i in range(4)]

    locations = normalize(raw_general, raw_decl, max_locations=5)

    assert [loc.product_name for loc in locations] == ["g0", "g1", "g2", "g3", "d0"]


def test_normalize_cap_applies_before_dropping():
    # The first record is malformed and still counts against the cap.
    raw_general = [general("bad", lat=None), general("ok1"), general("ok2")]
    locations = normalize(raw_general, [], max_locations=2)
    assert [loc.product_name for loc in locations] == ["ok1"]


def test_normalize_empty_input_returns_empty_list():
    assert normalize([], []) == []


def test_normalize_none_input_fails_loudly():
    with pytest.raises(TypeError):
        normalize(None, [])
    with pytest.raises(TypeError):
        normalize([], None)


def test_normalize_rejects_non_positive_cap():
    with pytest.raises(ValueError):
        normalize([], [], max_locations=0)


def test_normalize_skips_non_record_and_invalid_items():
    locations = normalize(
        [None, "junk", {"product_name": ["not", "a", "string"], "lat": 1, "lng": 1}, general("ok")],
        [],
    )
    assert [loc.product_name for loc in locations] == ["ok"]


def test_normalize_does_not_mutate_input():
    raw = [general("g", category_name="Steel")]
    snapshot = json.dumps(raw, sort_keys=True)
    normalize(raw, [])
    assert json.dumps(raw, sort_keys=True) == snapshot


# --- geo hint resolution -----------------------------------------------------


def test_geo_index_resolves_records_without_coordinates():
    geo_index = load_geo_index(FIXTURES / "geo_index.json")
    locations = normalize(load_general(), load_declarations(), geo_index=geo_index)

    by_name = {loc.product_name: loc for loc in locations}
    steel = by_name["steel-beam-s355"]
    assert steel.country == "Austria"
    assert steel.geo_mapped is True
    assert (steel.latitude, steel.longitude) == (47.5162, 14.5501)

    wool = by_name["Mineralwolle Daemmplatte"]
    assert wool.country == "France"
    assert wool.geo_mapped is True

    # Unknown hint is still dropped
    assert "Unknown Origin Declaration" not in by_name
    assert len(locations) == 7


def test_explicit_coordinates_win_over_geo_index():
    geo_index = load_geo_index(FIXTURES / "geo_index.json")
    [loc] = normalize([general(lat=1.5, lng=2.5, geo="DE")], [], geo_index=geo_index)

    assert (loc.latitude, loc.longitude) == (1.5, 2.5)
    assert loc.geo_mapped is False
    # Country still resolved from the hint
    assert loc.country == "Germany"


def test_location_is_immutable():
    [loc] = normalize([general()], [])
    with pytest.raises(Exception):
        loc.latitude = 0.0
    assert isinstance(loc, Location)


def test_non_string_scalar_category_is_wrapped():
    [loc] = normalize([general(category_name=42)], [])
    assert loc.categories == ["42"]


def test_geo_index_with_non_finite_coordinates_drops_record(tmp_path):
    path = tmp_path / "geo.json"
    path.write_text('{"DE": {"country": "Germany", "lat": NaN, "lng": Infinity}}', encoding="utf-8")

    locations = normalize([{"name": "x", "geo": "DE"}], [], geo_index=load_geo_index(path))

    assert locations == []


def test_location_rejects_non_finite_coordinates():
    with pytest.raises(ValueError):
        Location(product_name="x", latitude=float("nan"), longitude=1.0)
