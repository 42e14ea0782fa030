"""
Dataset loader & joiner.

Fetches the per-state statistics table and the state geometry collection
concurrently, validates both payloads and builds the immutable snapshot the
map is rendered from for the rest of the session.

Main entry point:
- load(stats_url, geo_url) -> Dataset
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Sequence
from urllib.parse import urlparse

import httpx
import numpy as np
import pandas as pd
from shapely.errors import GeometryTypeError
from shapely.geometry import shape

import config
from analysis.errors import HttpLoadError, ParseLoadError, ShapeLoadError
from analysis.states import normalize_state_code

logger = logging.getLogger("bubblemap.loader")

GEO_COLUMNS = ["STATE", "NAME", "longitude", "latitude"]


@dataclass(frozen=True, eq=False)
class Dataset:
    """Everything loaded at startup. Never mutated after `load` returns."""
    records: pd.DataFrame
    geo: pd.DataFrame
    name_lookup: Mapping[str, str]
    categories: tuple
    years: tuple


def category_label(key: str) -> str:
    """'Violent_rate' -> 'Violent'"""
    if key.endswith(config.RATE_SUFFIX):
        return key[: -len(config.RATE_SUFFIX)]
    return key


# ── Fetch ─────────────────────────────────────────────────────────────────────

def _is_url(source: str) -> bool:
    return urlparse(str(source)).scheme in ("http", "https")


async def _fetch(client: httpx.AsyncClient, source: str):
    """Return (status_code, body) for a URL or a local path."""
    if _is_url(source):
        try:
            response = await client.get(source)
        except httpx.HTTPError as e:
            logger.error(f"Request to {source} failed: {e}")
            return None, None
        return response.status_code, response.text

    path = Path(source)
    if not path.is_file():
        logger.error(f"Data file not found: {path}")
        return 404, None
    body = await asyncio.to_thread(path.read_text, encoding="utf-8")
    return 200, body


def _ok(status) -> bool:
    return status is not None and 200 <= status < 300


def _parse_json(body: str, source: str):
    try:
        return json.loads(body)
    except (TypeError, ValueError) as e:
        raise ParseLoadError(f"Could not parse {source}: {e}") from e


# ── Statistics records ────────────────────────────────────────────────────────

def derive_categories(first_record: Mapping) -> list:
    """Fields of the first record that end in `_rate`, minus the unemployment rate."""
    return [
        key for key in first_record
        if key.endswith(config.RATE_SUFFIX) and key != config.UNEMPLOYMENT_FIELD
    ]


def _validate_schema(schema: Sequence[str], columns) -> list:
    categories = list(dict.fromkeys(schema))
    for key in categories:
        if not key.endswith(config.RATE_SUFFIX) or key == config.UNEMPLOYMENT_FIELD:
            raise ShapeLoadError(f"{key!r} is not a crime rate field")
        if key not in columns:
            raise ShapeLoadError(f"Category {key!r} is not present in the crime data")
    return categories


def _check_uniform_fields(payload: list, categories: list):
    """Log records whose rate fields differ from the category list."""
    known = set(categories)
    for key in categories:
        lacking = sum(1 for record in payload if key not in record)
        if lacking:
            logger.warning(f"{lacking} of {len(payload)} records have no {key!r} field")
    extra = {
        key for record in payload for key in record
        if key.endswith(config.RATE_SUFFIX)
        and key != config.UNEMPLOYMENT_FIELD
        and key not in known
    }
    if extra:
        logger.warning(f"Ignoring rate fields missing from the category list: {sorted(extra)}")


def _coerce_year(series: pd.Series) -> pd.Series:
    years = pd.to_numeric(series, errors="coerce")
    years = years.where(years == np.floor(years))
    return years.astype("Int64")


def build_records(payload, categories: Optional[Sequence[str]] = None):
    """
    Validate the statistics payload and return (records_df, categories).

    Rate, population and unemployment columns are coerced to numbers; values
    that are not numbers become missing. State codes are normalized so they
    line up with the geometry codes.
    """
    if not isinstance(payload, list):
        raise ShapeLoadError("Invalid JSON format for crime data")
    if not payload:
        raise ShapeLoadError("Crime data is empty")
    if not all(isinstance(record, dict) for record in payload):
        raise ShapeLoadError("Every crime record must be an object")

    records = pd.DataFrame.from_records(payload)
    missing = [c for c in (config.STATE_FIELD, config.YEAR_FIELD) if c not in records.columns]
    if missing:
        raise ShapeLoadError(f"Crime data is missing required fields: {missing}")

    if categories is None:
        categories = derive_categories(payload[0])
    else:
        categories = _validate_schema(categories, records.columns)
    _check_uniform_fields(payload, categories)

    for col in [*categories, config.POPULATION_FIELD, config.UNEMPLOYMENT_FIELD]:
        if col in records.columns:
            records[col] = pd.to_numeric(records[col], errors="coerce")
        else:
            records[col] = np.nan
    records[config.YEAR_FIELD] = _coerce_year(records[config.YEAR_FIELD])
    records[config.STATE_FIELD] = records[config.STATE_FIELD].map(normalize_state_code)
    return records, categories


def derive_years(records: pd.DataFrame) -> tuple:
    return tuple(sorted(int(y) for y in records[config.YEAR_FIELD].dropna().unique()))


# ── Geometry ──────────────────────────────────────────────────────────────────

def feature_point(geometry):
    """
    (longitude, latitude) to anchor a marker for a GeoJSON geometry.

    Points are used as-is; polygons get shapely's representative point, which
    is always inside the shape. Unusable geometry returns (None, None).
    """
    if not geometry:
        return None, None
    try:
        if geometry.get("type") == "Point":
            lon, lat = geometry["coordinates"][:2]
            return float(lon), float(lat)
        geom = shape(geometry)
    except (GeometryTypeError, KeyError, IndexError, TypeError, ValueError) as e:
        logger.warning(f"Unusable geometry {geometry.get('type')!r}: {e}")
        return None, None
    if geom.is_empty:
        return None, None
    point = geom.representative_point()
    return point.x, point.y


def _features(payload) -> list:
    features = payload.get("features") if isinstance(payload, dict) else None
    if not isinstance(features, list) or not all(isinstance(f, dict) for f in features):
        raise ParseLoadError("Geographic data is not a feature collection")
    return features


def build_name_lookup(features) -> dict:
    """STATE code -> NAME. A code seen twice keeps the later name."""
    lookup = {}
    for feature in features:
        props = feature.get("properties") or {}
        code = normalize_state_code(props.get("STATE"))
        if code is None:
            continue
        if code in lookup:
            logger.warning(f"Duplicate geographic feature for {code}; keeping the later one")
        lookup[code] = props.get("NAME")
    return lookup


def build_geo(features) -> pd.DataFrame:
    """One row per state: STATE, NAME, longitude, latitude."""
    rows = []
    for feature in features:
        props = feature.get("properties") or {}
        code = normalize_state_code(props.get("STATE"))
        if code is None:
            logger.warning(f"Skipping feature without a STATE code: {props}")
            continue
        lon, lat = feature_point(feature.get("geometry"))
        rows.append({"STATE": code, "NAME": props.get("NAME"),
                     "longitude": lon, "latitude": lat})
    geo = pd.DataFrame(rows, columns=GEO_COLUMNS)
    geo[["longitude", "latitude"]] = geo[["longitude", "latitude"]].astype(float)
    return geo.drop_duplicates(subset="STATE", keep="last").reset_index(drop=True)


# ── Entry points ──────────────────────────────────────────────────────────────

def build_dataset(stats_payload, geo_payload, categories=None) -> Dataset:
    """Validate both parsed payloads and join them into a Dataset."""
    records, categories = build_records(stats_payload, categories)
    features = _features(geo_payload)
    return Dataset(
        records=records,
        geo=build_geo(features),
        name_lookup=MappingProxyType(build_name_lookup(features)),
        categories=tuple(categories),
        years=derive_years(records),
    )


async def load_async(stats_url, geo_url, *, categories=None, transport=None,
                     timeout=config.HTTP_TIMEOUT) -> Dataset:
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        (stats_status, stats_body), (geo_status, geo_body) = await asyncio.gather(
            _fetch(client, str(stats_url)),
            _fetch(client, str(geo_url)),
        )

    if not (_ok(stats_status) and _ok(geo_status)):
        raise HttpLoadError(stats_status, geo_status)

    dataset = build_dataset(
        _parse_json(stats_body, stats_url),
        _parse_json(geo_body, geo_url),
        categories,
    )
    logger.info(
        f"Loaded {len(dataset.records)} records ({len(dataset.categories)} categories, "
        f"{len(dataset.years)} years) and {len(dataset.geo)} state features"
    )
    return dataset


def load(stats_url, geo_url, *, categories=None, transport=None,
         timeout=config.HTTP_TIMEOUT) -> Dataset:
    """Fetch both datasets concurrently and return the session snapshot."""
    return asyncio.run(load_async(
        stats_url, geo_url,
        categories=categories, transport=transport, timeout=timeout,
    ))
