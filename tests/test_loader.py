import json

import pytest

from analysis.errors import HttpLoadError, LoadError, ParseLoadError, ShapeLoadError
from analysis.loader import (
    build_dataset, build_name_lookup, category_label, derive_categories,
    feature_point, load,
)
from analysis.states import normalize_state_code
from conftest import GEO, GEO_URL, STATS, STATS_URL


# ── load ──────────────────────────────────────────────────────────────────────

def test_load_over_http(make_transport):
    dataset = load(STATS_URL, GEO_URL, transport=make_transport())

    assert dataset.categories == ("Violent_rate", "Property_rate")
    assert dataset.years == (2018, 2019)
    assert len(dataset.records) == len(STATS)
    assert dict(dataset.name_lookup) == {"CA": "California", "TX": "Texas", "NY": "New York"}
    assert dataset.geo["STATE"].is_unique


def test_load_from_local_files(tmp_path):
    stats_path = tmp_path / "stats.json"
    geo_path = tmp_path / "geo.json"
    stats_path.write_text(json.dumps(STATS), encoding="utf-8")
    geo_path.write_text(json.dumps(GEO), encoding="utf-8")

    dataset = load(str(stats_path), geo_path)

    assert dataset.years == (2018, 2019)
    assert set(dataset.geo["STATE"]) == {"CA", "TX", "NY"}


def test_missing_local_file_reports_404(tmp_path):
    stats_path = tmp_path / "stats.json"
    stats_path.write_text(json.dumps(STATS), encoding="utf-8")

    with pytest.raises(HttpLoadError) as exc:
        load(str(stats_path), str(tmp_path / "nope.json"))
    assert (exc.value.stats_status, exc.value.geo_status) == (200, 404)


def test_http_error_carries_both_statuses(make_transport):
    with pytest.raises(HttpLoadError) as exc:
        load(STATS_URL, GEO_URL, transport=make_transport(geo_status=404))

    assert exc.value.stats_status == 200
    assert exc.value.geo_status == 404
    assert "200" in str(exc.value) and "404" in str(exc.value)


def test_server_error_on_stats(make_transport):
    with pytest.raises(HttpLoadError) as exc:
        load(STATS_URL, GEO_URL, transport=make_transport(stats_status=500))
    assert exc.value.stats_status == 500


def test_unparseable_body(make_transport):
    with pytest.raises(ParseLoadError):
        load(STATS_URL, GEO_URL, transport=make_transport(stats="<html>oops</html>"))


def test_geo_without_features_is_a_parse_error(make_transport):
    with pytest.raises(ParseLoadError):
        load(STATS_URL, GEO_URL, transport=make_transport(geo={"type": "Nope"}))


@pytest.mark.parametrize("payload", [{"state_abbr": "CA"}, [], '"text"', [1, 2]])
def test_stats_must_be_a_list_of_records(make_transport, payload):
    with pytest.raises(ShapeLoadError):
        load(STATS_URL, GEO_URL, transport=make_transport(stats=payload))


def test_load_errors_share_a_base_class(make_transport):
    with pytest.raises(LoadError):
        load(STATS_URL, GEO_URL, transport=make_transport(stats_status=403, geo_status=403))


def test_records_require_state_and_year():
    with pytest.raises(ShapeLoadError):
        build_dataset([{"state_abbr": "CA", "Violent_rate": 1}], GEO)


# ── Categories & years ────────────────────────────────────────────────────────

def test_categories_come_from_first_record():
    first = {"state_abbr": "CA", "data_year": 2019, "Unemployment_Rate": 4.2,
             "Arson_rate": 1, "Population": 10, "Robbery_rate": 2}
    assert derive_categories(first) == ["Arson_rate", "Robbery_rate"]


def test_records_missing_a_category_are_flagged(caplog):
    build_dataset(STATS, GEO)
    assert "1 of 6 records have no 'Property_rate' field" in caplog.text


def test_extra_rate_fields_are_flagged(caplog):
    stats = STATS + [{"state_abbr": "NY", "data_year": 2018, "Violent_rate": 1, "Arson_rate": 3}]
    dataset = build_dataset(stats, GEO)
    assert "Arson_rate" not in dataset.categories
    assert "Arson_rate" in caplog.text


def test_explicit_schema():
    dataset = build_dataset(STATS, GEO, categories=["Violent_rate"])
    assert dataset.categories == ("Violent_rate",)


@pytest.mark.parametrize("schema", [["Unemployment_Rate"], ["Arson_rate"], ["Population"]])
def test_bad_schema(schema):
    with pytest.raises(ShapeLoadError):
        build_dataset(STATS, GEO, categories=schema)


def test_years_are_distinct():
    dataset = build_dataset(STATS, GEO)
    assert sorted(dataset.years) == sorted(set(dataset.years))


def test_values_are_coerced_to_numbers():
    stats = [{"state_abbr": "ca", "data_year": "2019", "Population": "100",
              "Unemployment_Rate": "4.2", "Violent_rate": "450", "Property_rate": "n/a"}]
    dataset = build_dataset(stats, GEO)
    row = dataset.records.iloc[0]

    assert dataset.years == (2019,)
    assert row["state_abbr"] == "CA"
    assert row["Violent_rate"] == 450
    assert row["Property_rate"] != row["Property_rate"]  # NaN


def test_category_label():
    assert category_label("Violent_rate") == "Violent"
    assert category_label("Motor_vehicle_theft_rate") == "Motor_vehicle_theft"


# ── Geography ─────────────────────────────────────────────────────────────────

def test_name_lookup_keeps_last_duplicate(caplog):
    features = [
        {"properties": {"STATE": "CA", "NAME": "Calif."}},
        {"properties": {"STATE": "TX", "NAME": "Texas"}},
        {"properties": {"STATE": "CA", "NAME": "California"}},
    ]
    assert build_name_lookup(features) == {"CA": "California", "TX": "Texas"}
    assert "Duplicate" in caplog.text


def test_geo_keeps_last_duplicate():
    geo = {"features": [
        {"properties": {"STATE": "CA", "NAME": "Old"},
         "geometry": {"type": "Point", "coordinates": [0, 0]}},
        {"properties": {"STATE": "06", "NAME": "California"},
         "geometry": {"type": "Point", "coordinates": [-119.4, 36.7]}},
    ]}
    dataset = build_dataset(STATS, geo)

    assert len(dataset.geo) == 1
    row = dataset.geo.iloc[0]
    assert (row["NAME"], row["longitude"], row["latitude"]) == ("California", -119.4, 36.7)
    assert dataset.name_lookup["CA"] == "California"


@pytest.mark.parametrize("code, expected", [
    ("06", "CA"), ("6", "CA"), (6, "CA"), (6.0, "CA"),
    (" ny ", "NY"), ("TX", "TX"), ("99", "99"), ("GU", "GU"),
    (None, None), ("", None), (float("nan"), None),
])
def test_normalize_state_code(code, expected):
    assert normalize_state_code(code) == expected


def test_point_feature():
    assert feature_point({"type": "Point", "coordinates": [-119.4, 36.7]}) == (-119.4, 36.7)


def test_polygon_feature_gets_interior_point():
    lon, lat = feature_point(GEO["features"][2]["geometry"])
    assert -77.0 < lon < -75.0
    assert 42.0 < lat < 44.0


@pytest.mark.parametrize("geometry", [
    None, {}, {"type": "Point", "coordinates": []}, {"type": "Blob", "coordinates": [1, 2]},
])
def test_unusable_geometry(geometry):
    assert feature_point(geometry) == (None, None)


def test_successful_load_logs_a_summary(make_transport, caplog):
    caplog.set_level("INFO", logger="bubblemap.loader")
    dataset = load(STATS_URL, GEO_URL, transport=make_transport())

    assert len(dataset.records) == len(STATS)
    assert "Loaded 6 records (2 categories, 2 years) and 3 state features" in caplog.text


def test_bundled_sample_data_loads():
    import config

    dataset = load(config.STATS_URL, config.GEO_URL)
    assert dataset.years
    assert set(dataset.records["state_abbr"]) <= set(dataset.geo["STATE"])
