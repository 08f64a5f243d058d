"""Adapters turning stop-source data into `Stop` records."""

from __future__ import annotations

import math
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

import geopandas as gpd

from .models import Stop

if TYPE_CHECKING:
    import pandas as pd

DEFAULT_STOP_NAME = "Bus stop"
ID_COLUMNS = ("id", "osm_id", "stop_id", "@id")
NAME_COLUMNS = ("name", "ref")


def load_stops(path: str | Path) -> list[Stop]:
    """Read Point features from a GeoJSON/GeoPackage file.

    The id comes from the first present of `id`, `osm_id`, `stop_id`, `@id`
    (falling back to the row index) and the name from `name` or `ref`.
    Rows without a usable Point geometry are skipped.
    """
    path = Path(path)
    if not path.exists():
        msg = f"Stops file not found: {path}"
        raise FileNotFoundError(msg)

    frame = gpd.read_file(path)
    if frame.crs is not None and frame.crs.to_epsg() != 4326:
        frame = frame.to_crs("EPSG:4326")

    stops: list[Stop] = []
    for index, row in frame.iterrows():
        geometry = row[frame.geometry.name]
        if geometry is None or geometry.is_empty or geometry.geom_type != "Point":
            continue
        stops.append(
            Stop(
                id=_first_value(row, ID_COLUMNS) or str(index),
                lat=float(geometry.y),
                lon=float(geometry.x),
                name=_first_value(row, NAME_COLUMNS) or DEFAULT_STOP_NAME,
            ),
        )
    return stops


def stops_from_overpass(elements: Iterable[dict[str, Any]]) -> list[Stop]:
    """Convert Overpass `out body` elements into stops (nodes with coordinates)."""
    stops: list[Stop] = []
    for element in elements:
        if element.get("type") != "node":
            continue
        lat = element.get("lat")
        lon = element.get("lon")
        if lat is None or lon is None:
            continue
        tags = element.get("tags") or {}
        stops.append(
            Stop(
                id=str(element["id"]),
                lat=float(lat),
                lon=float(lon),
                name=tags.get("name") or tags.get("ref") or DEFAULT_STOP_NAME,
            ),
        )
    return stops


def _first_value(row: pd.Series, columns: Iterable[str]) -> str | None:
    """Return the first non-empty value among `columns` as a string."""
    for column in columns:
        if column not in row.index:
            continue
        value = row[column]
        if value is None or (isinstance(value, float) and math.isnan(value)):
            continue
        if hasattr(value, "item"):
            value = value.item()
        # Integral floats come from numeric id columns read with NaNs.
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        text = str(value).strip()
        if text:
            return text
    return None
