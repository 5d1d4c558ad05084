"""
Default content processors.

Loaders never look inside what a processor returns; they only pick which
processor to call. Callers that build their own datasets pass a
Processors instance with their functions instead of these.
"""
from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

GEOJSON_FIELD = "_geojson"


def _infer_field_type(values: List[str]) -> str:
    """Pick the narrowest of integer, real, boolean, string for a column."""
    present = [v for v in values if v != ""]
    if not present:
        return "string"
    if all(v.lower() in ("true", "false") for v in present):
        return "boolean"
    try:
        for v in present:
            int(v)
        return "integer"
    except ValueError:
        pass
    try:
        for v in present:
            float(v)
        return "real"
    except ValueError:
        return "string"


def _cast(value: str, field_type: str) -> Any:
    if value == "":
        return None
    if field_type == "integer":
        return int(value)
    if field_type == "real":
        return float(value)
    if field_type == "boolean":
        return value.lower() == "true"
    return value


def process_csv_data(raw_data: str) -> Dict[str, Any]:
    """Turn CSV text into {fields, rows}. The first row is the header."""
    reader = csv.reader(io.StringIO(raw_data))
    table = [row for row in reader if row]
    if not table:
        return {"fields": [], "rows": []}

    header, body = table[0], table[1:]
    columns = [[row[i] if i < len(row) else "" for row in body] for i in range(len(header))]
    types = [_infer_field_type(col) for col in columns]
    fields = [
        {"name": name, "type": field_type, "format": ""}
        for name, field_type in zip(header, types)
    ]
    rows = [
        [_cast(row[i] if i < len(row) else "", types[i]) for i in range(len(header))]
        for row in body
    ]
    return {"fields": fields, "rows": rows}


def process_row_object(raw_data: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Turn a list of plain objects into {fields, rows}, keyed by the first object.

    Elements that are not objects are left out.
    """
    objects = [row for row in raw_data if isinstance(row, dict)]
    if not objects:
        return {"fields": [], "rows": []}
    keys = list(objects[0].keys())
    fields = [{"name": key, "format": ""} for key in keys]
    rows = [[row.get(key) for key in keys] for row in objects]
    return {"fields": fields, "rows": rows}


def _properties(feature: Dict[str, Any]) -> Dict[str, Any]:
    properties = feature.get("properties")
    return properties if isinstance(properties, dict) else {}


def process_geojson(raw_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Turn a Feature or FeatureCollection into {fields, rows}, one row per feature.

    Collection members that are not objects (e.g. null) are left out.
    """
    if raw_data.get("type") == "Feature":
        features = [raw_data]
    else:
        members = raw_data.get("features")
        if not isinstance(members, list):
            members = []
        features = [f for f in members if isinstance(f, dict)]

    keys: List[str] = []
    for feature in features:
        for key in _properties(feature):
            if key not in keys:
                keys.append(key)

    fields = [{"name": GEOJSON_FIELD, "format": "", "type": "geojson"}]
    fields += [{"name": key, "format": ""} for key in keys]
    rows = []
    for feature in features:
        properties = _properties(feature)
        rows.append([feature] + [properties.get(key) for key in keys])
    return {"fields": fields, "rows": rows}


def process_keplergl_json(raw_data: Dict[str, Any]) -> Dict[str, Any]:
    """Split a saved map into its datasets, config and info."""
    config = raw_data.get("config")
    # Saved maps wrap the config with its schema version
    if isinstance(config, dict) and "version" in config and "config" in config:
        config = config["config"]
    return {
        "datasets": raw_data.get("datasets"),
        "config": config,
        "info": raw_data.get("info"),
    }


@dataclass(frozen=True)
class Processors:
    """The processor used for each kind of content."""

    csv: Callable[[str], Any] = process_csv_data
    geojson: Callable[[Dict[str, Any]], Any] = process_geojson
    keplergl: Callable[[Dict[str, Any]], Any] = process_keplergl_json
    row: Callable[[List[Dict[str, Any]]], Any] = process_row_object
