"""
JSON loading: read, classify, process.

Small files are read as text and parsed in one go. Files at or above
settings.JSON_STREAMING_THRESHOLD are parsed in batches (see
filehandler.streaming) so the whole file never has to exist as one string.

The parsed document is classified by SHAPE_RULES, tested in order. A saved
map is also a plain object and must be recognized before anything else.
"""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, Optional, Tuple

import ijson
import structlog

from shared.config import settings
from shared.schemas import DatasetFormat, DocumentShape, IngestResult

from .blobs import FileBlob
from .processors import Processors
from .streaming import parse_file_in_batches

logger = structlog.get_logger()

KEPLER_GL_APP = "kepler.gl"


def is_plain_object(value: Any) -> bool:
    return isinstance(value, dict)


def is_kepler_gl_map(json_data: Any) -> bool:
    return (
        is_plain_object(json_data)
        and json_data.get("datasets") is not None
        and json_data.get("config") is not None
        and is_plain_object(json_data.get("info"))
        and json_data["info"].get("app") == KEPLER_GL_APP
    )


def is_row_object(json_data: Any) -> bool:
    return (
        isinstance(json_data, list)
        and len(json_data) > 0
        and is_plain_object(json_data[0])
    )


def is_feature(json_data: Any) -> bool:
    return (
        is_plain_object(json_data)
        and json_data.get("type") == "Feature"
        and json_data.get("geometry") is not None
    )


def is_feature_collection(json_data: Any) -> bool:
    return (
        is_plain_object(json_data)
        and json_data.get("type") == "FeatureCollection"
        and json_data.get("features") is not None
    )


def is_geojson(json_data: Any) -> bool:
    """A single Feature or a FeatureCollection."""
    return is_feature(json_data) or is_feature_collection(json_data)


# First match wins
SHAPE_RULES: Tuple[Tuple[DocumentShape, Callable[[Any], bool]], ...] = (
    (DocumentShape.KEPLER_MAP, is_kepler_gl_map),
    (DocumentShape.ROW_ARRAY, is_row_object),
    (DocumentShape.GEOJSON_FEATURE, is_feature),
    (DocumentShape.GEOJSON_FEATURE_COLLECTION, is_feature_collection),
)

# Shape -> (dataset format, Processors attribute)
SHAPE_HANDLERS: Dict[DocumentShape, Tuple[DatasetFormat, str]] = {
    DocumentShape.KEPLER_MAP: (DatasetFormat.KEPLERGL, "keplergl"),
    DocumentShape.ROW_ARRAY: (DatasetFormat.ROW, "row"),
    DocumentShape.GEOJSON_FEATURE: (DatasetFormat.GEOJSON, "geojson"),
    DocumentShape.GEOJSON_FEATURE_COLLECTION: (DatasetFormat.GEOJSON, "geojson"),
}


def classify_json(json_data: Any) -> DocumentShape:
    """Return the shape of a parsed JSON document."""
    for shape, matches in SHAPE_RULES:
        if matches(json_data):
            return shape
    return DocumentShape.UNSUPPORTED


async def _parse_file(file: FileBlob) -> Any:
    return json.loads(await file.read_text())


async def read_json_file(file: FileBlob) -> Any:
    """
    Parse a JSON file, choosing the strategy by size.

    Raises FileReadError if the bytes cannot be read and json.JSONDecodeError
    or ijson.JSONError if they are not valid JSON.
    """
    # Don't read files of 250MB or more as a single string
    if file.size >= settings.JSON_STREAMING_THRESHOLD:
        return await parse_file_in_batches(file)
    return await _parse_file(file)


async def load_json(file: FileBlob, processors: Processors) -> Optional[IngestResult]:
    """Load a JSON file. Returns None when it is malformed or of no known shape."""
    try:
        content = await read_json_file(file)
    except (json.JSONDecodeError, ijson.JSONError) as e:
        logger.warning("Malformed JSON file skipped", filename=file.name, error=str(e))
        return None

    shape = classify_json(content)
    if shape is DocumentShape.UNSUPPORTED:
        logger.warning("Unsupported JSON format", filename=file.name)
        return None

    dataset_format, processor_name = SHAPE_HANDLERS[shape]
    processor = getattr(processors, processor_name)
    return IngestResult(data=processor(content), format=dataset_format)
