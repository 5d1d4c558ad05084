"""
CSV loading: read the whole file as text and hand it to the CSV processor.
"""
from __future__ import annotations

from typing import Optional

import structlog

from shared.schemas import DatasetFormat, IngestResult

from .blobs import FileBlob
from .processors import Processors

logger = structlog.get_logger()


async def load_csv(file: FileBlob, processors: Processors) -> Optional[IngestResult]:
    """Load a CSV file. Returns None for an empty file."""
    raw_data = await file.read_text()
    if not raw_data:
        logger.info("Empty CSV file skipped", filename=file.name)
        return None
    return IngestResult(data=processors.csv(raw_data), format=DatasetFormat.CSV)
