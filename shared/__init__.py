"""
Shared components for the file handler.
"""
from .config import settings
from .schemas import (
    FormatTag,
    DatasetFormat,
    DocumentShape,
    Batch,
    BatchKind,
    RootType,
    IngestResult,
    DatasetInfo,
    CacheEntry,
    MapConfigOperation,
    DatasetsBatchOperation,
)
from .telemetry import setup_telemetry, get_tracer, get_meter

__all__ = [
    "settings",
    "FormatTag",
    "DatasetFormat",
    "DocumentShape",
    "Batch",
    "BatchKind",
    "RootType",
    "IngestResult",
    "DatasetInfo",
    "CacheEntry",
    "MapConfigOperation",
    "DatasetsBatchOperation",
    "setup_telemetry",
    "get_tracer",
    "get_meter",
]
