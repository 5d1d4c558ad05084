"""
Payload assembly: turn the cache into the ordered list of load operations.

Saved maps go first, one operation each, so their map state is in place
before any dataset is attached. All plain datasets follow in a single
trailing operation.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional, Set

from shared.config import settings
from shared.schemas import (
    CacheEntry,
    Dataset,
    DatasetFormat,
    DatasetsBatchOperation,
    MapConfig,
    MapConfigOperation,
    MapConfigOptions,
    PayloadOperation,
)


def generate_hash_id(length: Optional[int] = None) -> str:
    """Short random hex id."""
    return uuid.uuid4().hex[: length or settings.DATASET_ID_LENGTH]


def _unique_id(used: Set[str]) -> str:
    dataset_id = generate_hash_id()
    while dataset_id in used:
        dataset_id = generate_hash_id()
    return dataset_id


def _field(data: Any, name: str) -> Any:
    if isinstance(data, dict):
        return data.get(name)
    return getattr(data, name, None)


def _map_config(data: Any) -> MapConfig:
    config = _field(data, "config")
    # Recenter on load unless the map was saved with its own view
    center_map = not (config and _field(config, "mapState"))
    return MapConfig(
        datasets=_field(data, "datasets"),
        config=config,
        info=_field(data, "info"),
        options=MapConfigOptions(center_map=center_map),
    )


def assemble_payload(cache: List[CacheEntry]) -> List[PayloadOperation]:
    """Split the cache into map operations followed by one datasets operation."""
    maps: List[MapConfigOperation] = []
    datasets: List[Dataset] = []
    used_ids = {entry.info.id for entry in cache if entry.info.id}

    for entry in cache:
        if entry.info.format == DatasetFormat.KEPLERGL:
            maps.append(MapConfigOperation(map_config=_map_config(entry.data)))
            continue

        info = entry.info.model_dump(mode="json")
        if not entry.info.id:
            info["id"] = _unique_id(used_ids)
            used_ids.add(info["id"])
        datasets.append(Dataset(data=entry.data, info=info))

    operations: List[PayloadOperation] = list(maps)
    if datasets:
        operations.append(DatasetsBatchOperation(datasets=datasets))
    return operations


def payload_to_dict(payload: List[PayloadOperation]) -> List[Dict[str, Any]]:
    """Wire form: [{"mapConfig": ...}, ..., {"datasetsBatch": [...]}]."""
    out = []
    for operation in payload:
        if isinstance(operation, MapConfigOperation):
            out.append({"mapConfig": operation.map_config.model_dump(by_alias=True)})
        else:
            out.append(
                {"datasetsBatch": [d.model_dump() for d in operation.datasets]}
            )
    return out
