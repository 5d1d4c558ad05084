"""
Dispatcher: route each file to its loader and fold results into the cache.

The cache is a list of CacheEntry in completion order. ingest_file never
mutates the list it is given; it returns either that same list (file
skipped) or a new one with one entry appended.
"""
from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

import structlog

from shared.config import settings
from shared.schemas import CacheEntry, DatasetInfo, FormatTag, IngestResult
from shared.telemetry import IngestionMetrics, get_tracer

from .blobs import FileBlob
from .csv_loader import load_csv
from .errors import FileReadError
from .json_loader import load_json
from .processors import Processors
from .sniffer import sniff_format

logger = structlog.get_logger()

Loader = Callable[[FileBlob, Processors], Awaitable[Optional[IngestResult]]]

FILE_HANDLERS: Dict[FormatTag, Loader] = {
    FormatTag.CSV: load_csv,
    FormatTag.JSON: load_json,
}


def get_file_handler(file: FileBlob) -> Tuple[Optional[Loader], FormatTag]:
    """Return (loader or None, format tag) for a file."""
    file_format = sniff_format(file.name)
    return FILE_HANDLERS.get(file_format), file_format


def append_result(
    cache: List[CacheEntry], file: FileBlob, result: Optional[IngestResult]
) -> List[CacheEntry]:
    """Return cache extended with the file's result, or cache itself if there is none."""
    if result is None or result.data is None:
        return cache
    entry = CacheEntry(
        data=result.data,
        info=DatasetInfo(label=file.name, format=result.format),
    )
    return [*cache, entry]


async def load_file(
    file: FileBlob, processors: Optional[Processors] = None
) -> Optional[IngestResult]:
    """
    Run the loader matching the file's format.

    Returns None when the file is skipped, which includes content its
    processor fails on. Raises FileReadError when its bytes cannot be read.
    """
    processors = processors or Processors()
    metrics = IngestionMetrics()
    tracer = get_tracer()

    handler, file_format = get_file_handler(file)

    with tracer.start_as_current_span("ingest_file") as span:
        span.set_attribute("filename", file.name)
        span.set_attribute("file_format", file_format.value)
        span.set_attribute("size", file.size)

        if handler is None:
            logger.warning(
                "Cannot determine file handler, file must have a valid extension",
                filename=file.name,
            )
            metrics.record_file_skipped(file_format.value, "unsupported_file_type")
            return None

        start = time.time()
        try:
            result = await handler(file, processors)
        except FileReadError as e:
            span.record_exception(e)
            metrics.record_read_failure(file_format.value, type(e.cause).__name__)
            raise
        except Exception as e:
            # Content a processor could not handle; the file is skipped
            span.record_exception(e)
            logger.warning(
                "File content could not be processed",
                filename=file.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            metrics.record_file_skipped(file_format.value, "processing_error")
            return None
        metrics.record_ingest_time((time.time() - start) * 1000, file_format.value)

        if result is None or result.data is None:
            metrics.record_file_skipped(file_format.value, "empty_result")
            return None

        span.set_attribute("dataset_format", result.format.value)
        metrics.record_file_ingested(file_format.value, result.format.value)
        logger.info(
            "File ingested",
            filename=file.name,
            file_format=file_format.value,
            dataset_format=result.format.value,
        )
        return result


async def ingest_file(
    file: FileBlob,
    cache: Optional[List[CacheEntry]] = None,
    processors: Optional[Processors] = None,
) -> List[CacheEntry]:
    """Ingest one file and return the resulting cache."""
    cache = cache if cache is not None else []
    result = await load_file(file, processors)
    return append_result(cache, file, result)


async def ingest_files(
    files: Iterable[FileBlob],
    cache: Optional[List[CacheEntry]] = None,
    processors: Optional[Processors] = None,
) -> List[CacheEntry]:
    """
    Ingest several files concurrently.

    Entries are appended as files finish, so their order is not the order
    of `files`. A file that cannot be read is logged and left out; the
    others carry on.
    """
    cache = cache if cache is not None else []
    semaphore = asyncio.Semaphore(settings.MAX_CONCURRENT_FILES)

    async def _run(file: FileBlob):
        async with semaphore:
            try:
                return file, await load_file(file, processors)
            except FileReadError as e:
                logger.error("Failed to read file", filename=file.name, error=str(e))
                return file, None

    for next_done in asyncio.as_completed([_run(file) for file in files]):
        file, result = await next_done
        cache = append_result(cache, file, result)
    return cache
