"""
Streaming JSON: parse a large file in batches without holding it as text.

Three tasks, connected by bounded queues, run strictly in order:

    file slices --(chunks)--> RootBatchParser --(batches)--> StreamingBatchAssembler

The parser turns the bulk array of the document (a bare top-level array,
or the ``features`` / ``datasets`` array of a top-level object) into data
batches, and reports everything else once, in a terminal root batch. The
assembler glues the pieces back into one document, equal to what
``json.loads`` would have returned for the whole file.
"""
from __future__ import annotations

import asyncio
from contextlib import aclosing
from typing import Any, AsyncIterator, List, NamedTuple, Optional

import ijson
import structlog

from shared.config import settings
from shared.schemas import Batch, BatchKind, RootType
from shared.telemetry import IngestionMetrics

from .blobs import FileBlob

logger = structlog.get_logger()

# Top-level keys whose arrays are streamed element by element
BULK_KEYS = ("features", "datasets")

_START_EVENTS = ("start_map", "start_array")
_END_EVENTS = ("end_map", "end_array")

UTF8_BOM = b"\xef\xbb\xbf"

_END = None


class _Failure(NamedTuple):
    """Carries an exception from a producer task to its consumer."""
    error: BaseException


async def iter_blob_chunks(file: FileBlob, chunk_size: int) -> AsyncIterator[bytes]:
    """Yield the blob's bytes in byte-offset order, chunk_size at a time."""
    offset = 0
    while offset < file.size:
        end = offset + chunk_size
        chunk = await file.slice(offset, end)
        # Content shorter than the reported size
        if not chunk:
            break
        offset = end
        yield chunk


class RootBatchParser:
    """
    Push parser that turns JSON bytes into Batch values.

    Feed chunks in order with feed(), then call close(). Each call returns
    the batches that became available: at most one data batch with the bulk
    elements completed during that call, followed, once the top-level value
    is complete, by the single root batch.

    Whether the document is an array or an object is decided by the first
    parse event. For an object only the first bulk array is streamed; its
    key is left in the root container as an empty list and named in the
    root batch as bulk_key. A leading UTF-8 byte order mark is dropped.
    """

    def __init__(self):
        self.root: Optional[RootType] = None
        self._container: Any = {}
        self._key: Optional[str] = None
        self._streaming = False
        self._streamed_key: Optional[str] = None
        self._builder: Optional[ijson.ObjectBuilder] = None
        self._builder_depth = 0
        self._elements: List[Any] = []
        self._done = False
        self._root_emitted = False
        self._head: Optional[bytes] = b""
        self._events = ijson.sendable_list()
        self._coro = ijson.parse_coro(self._events, use_float=True)

    @property
    def done(self) -> bool:
        return self._done

    def feed(self, chunk: bytes) -> List[Batch]:
        if self._head is not None:
            chunk = self._strip_bom(chunk)
        # An empty send means end of input to ijson; only close() ends it
        if not chunk:
            return []
        self._coro.send(chunk)
        return self._drain()

    def _strip_bom(self, chunk: bytes) -> bytes:
        """Drop a UTF-8 byte order mark, which may span several chunks."""
        head = self._head + chunk
        if len(head) < len(UTF8_BOM) and UTF8_BOM.startswith(head):
            self._head = head
            return b""
        self._head = None
        return head.removeprefix(UTF8_BOM)

    def close(self) -> List[Batch]:
        """Flush the parser. Raises ijson.JSONError on truncated input."""
        if self._head:
            self._coro.send(self._head)
            self._head = None
        self._coro.close()
        batches = self._drain()
        if not self._done:
            raise ijson.IncompleteJSONError("Incomplete JSON content")
        return batches

    def _drain(self) -> List[Batch]:
        for _prefix, event, value in self._events:
            self._on_event(event, value)
        del self._events[:]

        batches = []
        if self._elements:
            batches.append(Batch(kind=BatchKind.DATA, data=self._elements))
            self._elements = []
        if self._done and not self._root_emitted:
            self._root_emitted = True
            container = [] if self.root is RootType.ARRAY else self._container
            batches.append(
                Batch(
                    kind=BatchKind.ROOT_COMPLETE,
                    container=container,
                    root=self.root,
                    bulk_key=self._streamed_key,
                )
            )
        return batches

    def _on_event(self, event: str, value: Any) -> None:
        if self._builder is not None:
            self._builder.event(event, value)
            if event in _START_EVENTS:
                self._builder_depth += 1
            elif event in _END_EVENTS:
                self._builder_depth -= 1
            if self._builder_depth == 0:
                built = self._builder.value
                self._builder = None
                self._store(built)
            return

        if self.root is None:
            if event == "start_array":
                self.root = RootType.ARRAY
                self._streaming = True
            elif event == "start_map":
                self.root = RootType.OBJECT
            else:
                self.root = RootType.SCALAR
                self._container = value
                self._done = True
            return

        if self._streaming:
            if event == "end_array":
                self._streaming = False
                if self.root is RootType.ARRAY:
                    self._done = True
                else:
                    self._container[self._streamed_key] = []
            else:
                self._begin_value(event, value)
            return

        # Directly inside the top-level object
        if event == "map_key":
            self._key = value
        elif event == "end_map":
            self._done = True
        elif (
            event == "start_array"
            and self._key in BULK_KEYS
            and self._streamed_key is None
        ):
            self._streaming = True
            self._streamed_key = self._key
        else:
            self._begin_value(event, value)

    def _begin_value(self, event: str, value: Any) -> None:
        if event in _START_EVENTS:
            self._builder = ijson.ObjectBuilder()
            self._builder.event(event, value)
            self._builder_depth = 1
        else:
            self._store(value)

    def _store(self, value: Any) -> None:
        if self._streaming:
            self._elements.append(value)
        else:
            self._container[self._key] = value


class StreamingBatchAssembler:
    """Rebuilds one document from an ordered sequence of batches."""

    def __init__(self):
        self._acc: List[Any] = []
        self._result: Any = None
        self.done = False

    def add(self, batch: Batch) -> bool:
        """Consume one batch. Returns True once the root batch has been seen."""
        if self.done:
            raise RuntimeError("Batch received after the root batch")
        if batch.kind is BatchKind.DATA:
            self._acc.extend(batch.data)
            return False
        self._result = self._finish(batch)
        self.done = True
        return True

    def _finish(self, batch: Batch) -> Any:
        container = batch.container
        if batch.root is RootType.ARRAY:
            return self._acc
        if batch.root is RootType.SCALAR:
            return container

        if batch.bulk_key is not None:
            result = {k: v for k, v in container.items() if k != batch.bulk_key}
            result[batch.bulk_key] = self._acc
            return result

        # RootBatchParser names the key whenever it streamed one, and then no
        # list-valued bulk key is left unstreamed. Batches built elsewhere
        # without a key: list-valued bulk keys are empty placeholders, the
        # data goes to the first (features before datasets), and the rest
        # are dropped.
        placeholders = [k for k in BULK_KEYS if isinstance(container.get(k), list)]
        result = {k: v for k, v in container.items() if k not in placeholders}
        if placeholders:
            result[placeholders[0]] = self._acc
        return result

    @property
    def result(self) -> Any:
        if not self.done:
            raise RuntimeError("Root batch not received yet")
        return self._result

    async def collect(self, batches: AsyncIterator[Batch]) -> Any:
        """Consume batches until the root batch, then stop reading."""
        async with aclosing(batches) as stream:
            async for batch in stream:
                if self.add(batch):
                    break
        if not self.done:
            raise ijson.IncompleteJSONError("Stream ended before the root batch")
        return self.result


async def _produce_chunks(file: FileBlob, chunk_size: int, chunks: asyncio.Queue):
    metrics = IngestionMetrics()
    try:
        async for chunk in iter_blob_chunks(file, chunk_size):
            metrics.record_chunk_read()
            await chunks.put(chunk)
    except Exception as e:
        await chunks.put(_Failure(e))
        return
    await chunks.put(_END)


async def _parse_chunks(chunks: asyncio.Queue, batches: asyncio.Queue):
    parser = RootBatchParser()
    try:
        while True:
            item = await chunks.get()
            if isinstance(item, _Failure):
                await batches.put(item)
                return
            if item is _END:
                break
            for batch in parser.feed(item):
                await batches.put(batch)
        for batch in parser.close():
            await batches.put(batch)
    except Exception as e:
        await batches.put(_Failure(e))


async def iter_file_batches(
    file: FileBlob, chunk_size: Optional[int] = None
) -> AsyncIterator[Batch]:
    """
    Yield the batches of a JSON file, ending with the root batch.

    Errors from reading (FileReadError) or parsing (ijson.JSONError) are
    re-raised here, in the consumer.
    """
    chunk_size = chunk_size or settings.STREAM_CHUNK_SIZE
    chunks: asyncio.Queue = asyncio.Queue(maxsize=settings.STREAM_QUEUE_SIZE)
    batches: asyncio.Queue = asyncio.Queue(maxsize=settings.STREAM_QUEUE_SIZE)
    producer = asyncio.create_task(_produce_chunks(file, chunk_size, chunks))
    parser = asyncio.create_task(_parse_chunks(chunks, batches))
    try:
        while True:
            item = await batches.get()
            if isinstance(item, _Failure):
                raise item.error
            yield item
            if item.kind is BatchKind.ROOT_COMPLETE:
                return
    finally:
        for task in (producer, parser):
            task.cancel()
        await asyncio.gather(producer, parser, return_exceptions=True)


async def parse_file_in_batches(file: FileBlob, chunk_size: Optional[int] = None) -> Any:
    """Parse a JSON file chunk by chunk and return the rebuilt document."""
    logger.info(
        "Streaming JSON file",
        filename=file.name,
        size=file.size,
        chunk_size=chunk_size or settings.STREAM_CHUNK_SIZE,
    )
    return await StreamingBatchAssembler().collect(iter_file_batches(file, chunk_size))
