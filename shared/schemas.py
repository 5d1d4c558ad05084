"""
Shared schemas for the file handler.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List, Optional, Union
from enum import Enum


class FormatTag(str, Enum):
    """Coarse file format, derived from the file name. Selects a loader."""
    CSV = "csv"
    JSON = "json"
    OTHER = "other"


class DatasetFormat(str, Enum):
    """Shape of the content a file turned out to hold."""
    CSV = "csv"
    GEOJSON = "geojson"
    ROW = "row"
    KEPLERGL = "keplergl"


class DocumentShape(str, Enum):
    """JSON document shapes, in the order they are tested."""
    KEPLER_MAP = "kepler_map"
    ROW_ARRAY = "row_array"
    GEOJSON_FEATURE = "geojson_feature"
    GEOJSON_FEATURE_COLLECTION = "geojson_feature_collection"
    UNSUPPORTED = "unsupported"


class BatchKind(str, Enum):
    """Kind of progress reported by the incremental JSON parser."""
    DATA = "data"
    ROOT_COMPLETE = "root_complete"


class RootType(str, Enum):
    """Type of the top-level JSON value, known from the first parse event."""
    OBJECT = "object"
    ARRAY = "array"
    SCALAR = "scalar"


class Batch(BaseModel):
    """One unit of incremental parse progress."""
    kind: BatchKind
    data: List[Any] = Field(default_factory=list, description="Bulk elements (data batches)")
    container: Any = Field(default=None, description="Top-level skeleton (terminal batch)")
    root: RootType = Field(default=RootType.OBJECT, description="Top-level JSON type")
    bulk_key: Optional[str] = Field(default=None, description="Top-level key whose array arrived in data batches")


class IngestResult(BaseModel):
    """Output of a loader for one file."""
    data: Any
    format: DatasetFormat


class DatasetInfo(BaseModel):
    """Metadata attached to a cache entry."""
    model_config = ConfigDict(frozen=True, extra="allow")

    label: str
    format: DatasetFormat
    id: Optional[str] = None


class CacheEntry(BaseModel):
    """A successfully ingested file. Never mutated once created."""
    model_config = ConfigDict(frozen=True)

    data: Any
    info: DatasetInfo


class MapConfigOptions(BaseModel):
    """Options applied when a saved map is loaded."""
    center_map: bool = Field(..., serialization_alias="centerMap")


class MapConfig(BaseModel):
    """A saved map: its datasets, view configuration and metadata."""
    datasets: Any
    config: Any = None
    info: Any = None
    options: MapConfigOptions


class Dataset(BaseModel):
    """A plain dataset entry with a resolved id."""
    data: Any
    info: dict


class MapConfigOperation(BaseModel):
    """Payload operation that loads a saved map."""
    map_config: MapConfig


class DatasetsBatchOperation(BaseModel):
    """Payload operation that adds every plain dataset in one call."""
    datasets: List[Dataset] = Field(default_factory=list)


PayloadOperation = Union[MapConfigOperation, DatasetsBatchOperation]
