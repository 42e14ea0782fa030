"""
Selection renderer.

Filters the loaded records down to one (category, year) snapshot, joins each
record to its state's map anchor and encodes it as a circle marker:
  - radius follows sqrt(population)
  - opacity follows the rate relative to the highest rate in the selection

Main entry point for the dashboard:
- render(dataset, category, year, surface) -> list[Marker]
"""

import html
import logging
import math
from dataclasses import dataclass

import numpy as np
import pandas as pd

import config
from analysis.errors import (
    GeometryMissing, InvalidSelection, NoMatchingData, RenderFailure,
    SelectionError, SelectionIncomplete,
)
from analysis.loader import category_label
from analysis.states import ABBREV_TO_NAME

logger = logging.getLogger("bubblemap.renderer")


@dataclass(frozen=True)
class JoinedPoint:
    latitude: float
    longitude: float
    state_abbr: str
    name: str
    value: float
    population: float
    unemployment_rate: float


@dataclass(frozen=True)
class MarkerStyle:
    radius: float
    color: str
    fill_color: str
    fill_opacity: float


@dataclass(frozen=True)
class Marker:
    point: JoinedPoint
    score: float
    style: MarkerStyle
    popup_html: str


# ── Selection ─────────────────────────────────────────────────────────────────

def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return bool(pd.isna(value))


def coerce_year(value) -> int:
    """Turn a selector value ('2019', 2019, 2019.0) into an int year."""
    if isinstance(value, bool):
        raise InvalidSelection(f"Year must be a number, got {value!r}")
    if isinstance(value, (int, np.integer)):
        return int(value)
    try:
        number = float(str(value).strip())
    except ValueError as e:
        raise InvalidSelection(f"Year must be a number, got {value!r}") from e
    if not number.is_integer():
        raise InvalidSelection(f"Year must be a whole number, got {value!r}")
    return int(number)


def select_records(records: pd.DataFrame, category: str, year: int) -> pd.DataFrame:
    """Rows for `year` that have a value for `category`."""
    if category not in records.columns:
        return records.iloc[0:0]
    mask = records[category].notna() & (records[config.YEAR_FIELD] == year)
    return records.loc[mask.fillna(False).astype(bool)]


# ── Join ──────────────────────────────────────────────────────────────────────

def _require_anchor(row, code):
    if pd.isna(row["_anchor_lat"]) or pd.isna(row["_anchor_lon"]):
        raise GeometryMissing(code)


def join_points(filtered: pd.DataFrame, geo: pd.DataFrame, name_lookup, category: str) -> list:
    """
    Attach map coordinates and a display name to each filtered record.
    Records whose state has no usable geometry are skipped one at a time.
    """
    anchors = geo.rename(columns={
        "STATE": "_join_key", "longitude": "_anchor_lon", "latitude": "_anchor_lat",
    })[["_join_key", "_anchor_lon", "_anchor_lat"]]
    joined = filtered.merge(anchors, how="left",
                            left_on=config.STATE_FIELD, right_on="_join_key")

    points = []
    for row in joined.to_dict("records"):
        code = row[config.STATE_FIELD]
        try:
            _require_anchor(row, code)
        except GeometryMissing as e:
            logger.warning(f"Skipping entry with undefined coordinates: {e}")
            continue
        name = name_lookup.get(code) or ABBREV_TO_NAME.get(code, code)
        points.append(JoinedPoint(
            latitude=float(row["_anchor_lat"]),
            longitude=float(row["_anchor_lon"]),
            state_abbr=code,
            name=name,
            value=float(row[category]),
            population=float(row[config.POPULATION_FIELD]),
            unemployment_rate=float(row[config.UNEMPLOYMENT_FIELD]),
        ))
    return points


# ── Encoding ──────────────────────────────────────────────────────────────────

def compute_score(value: float, max_value: float) -> float:
    """value / max_value clamped to [0, 1]; 0 when the max is not positive."""
    if not (math.isfinite(max_value) and max_value > 0) or not math.isfinite(value):
        return 0.0
    return float(np.clip(value / max_value, 0.0, 1.0))


def marker_radius(population: float, scale_factor: float = config.RADIUS_SCALE) -> float:
    return math.sqrt(population) * scale_factor


def marker_color(score: float) -> str:
    r, g, b = config.MARKER_RGB
    return f"rgba({r}, {g}, {b}, {score})"


def format_population(population: float) -> str:
    if float(population).is_integer():
        return f"{int(population):,}"
    return f"{population:,}"


def format_percent(rate: float) -> str:
    """Unemployment is stored as 5.3 meaning 5.3%."""
    if not math.isfinite(rate):
        return "n/a"
    return f"{rate / 100:,.2%}"


def popup_html(point: JoinedPoint, category: str) -> str:
    return (
        f"<strong>{html.escape(str(point.name))} ({html.escape(str(point.state_abbr))})</strong><br>"
        f"Population: {format_population(point.population)}<br>"
        f"{html.escape(category_label(category))} Rate: {point.value:,.2f}<br>"
        f"Unemployment Rate: {format_percent(point.unemployment_rate)}"
    )


def build_markers(dataset, category: str, year: int,
                  scale_factor: float = config.RADIUS_SCALE) -> list:
    """Filter, join and encode one selection. Raises NoMatchingData when empty."""
    filtered = select_records(dataset.records, category, year)
    if filtered.empty:
        raise NoMatchingData(f"No data found for {category} in {year}.")

    max_value = float(filtered[category].max())
    markers = []
    for point in join_points(filtered, dataset.geo, dataset.name_lookup, category):
        if not math.isfinite(point.population) or point.population < 0:
            logger.warning(f"Skipping {point.state_abbr}: population is undefined")
            continue
        score = compute_score(point.value, max_value)
        color = marker_color(score)
        style = MarkerStyle(
            radius=marker_radius(point.population, scale_factor),
            color=color,
            fill_color=color,
            fill_opacity=config.FILL_OPACITY,
        )
        markers.append(Marker(point, score, style, popup_html(point, category)))
    return markers


# ── Render ────────────────────────────────────────────────────────────────────

def _compute(dataset, category, year, scale_factor):
    try:
        return build_markers(dataset, category, year, scale_factor)
    except SelectionError:
        raise
    except Exception as e:
        raise RenderFailure(f"Could not compute markers for {category} / {year}") from e


def _draw(surface, markers):
    try:
        surface.clear_markers()
        for marker in markers:
            surface.draw_marker(marker.point, marker.style, marker.popup_html)
    except Exception as e:
        raise RenderFailure(f"Could not draw {len(markers)} markers") from e


def _reset(surface):
    try:
        surface.clear_markers()
    except Exception:
        logger.exception("Could not clear markers after a failed render")


def render(dataset, category, year, surface,
           scale_factor: float = config.RADIUS_SCALE) -> list:
    """
    Redraw the map for one (category, year) selection.

    Incomplete, invalid or empty selections are logged and leave the surface
    untouched. Any other failure is logged and leaves the surface without
    markers, never with a mix of old and new ones.
    """
    try:
        if _is_blank(category) or _is_blank(year):
            raise SelectionIncomplete("Please select both crime type and year.")
        year = coerce_year(year)
        markers = _compute(dataset, category, year, scale_factor)
        _draw(surface, markers)
    except InvalidSelection as e:
        logger.error(f"Invalid selection: {e}")
        return []
    except (SelectionIncomplete, NoMatchingData) as e:
        logger.warning(f"{e}")
        return []
    except RenderFailure as e:
        logger.exception(f"Render failed: {e}")
        _reset(surface)
        return []

    logger.info(f"Rendered {len(markers)} markers for {category} / {year}")
    return markers


# ── What the map shows ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ShownSelection:
    category: str
    year: object
    markers: list
    stale: bool = False


def shown_selection(memory, category, year, markers, on_map: int) -> ShownSelection:
    """
    The selection the markers on the map belong to after a render.

    `memory` is any mutable mapping kept across renders (st.session_state in
    the app). A render that drew markers becomes the shown selection. A render
    that returned nothing while markers are still on the map means they belong
    to the last selection that drew them, marked stale.
    """
    if markers:
        memory["shown_selection"] = ShownSelection(category, year, list(markers))
        return memory["shown_selection"]

    previous = memory.get("shown_selection")
    if on_map and previous is not None:
        return ShownSelection(previous.category, previous.year, previous.markers, stale=True)

    memory.pop("shown_selection", None)
    return ShownSelection(category, year, [])
