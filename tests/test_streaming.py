"""
Unit tests for streaming JSON: chunking, batch parsing, reassembly.
"""

from __future__ import annotations

import json

import ijson
import pytest

from filehandler.blobs import BytesBlob
from filehandler.errors import FileReadError
from filehandler.streaming import (
    RootBatchParser,
    StreamingBatchAssembler,
    iter_blob_chunks,
    iter_file_batches,
    parse_file_in_batches,
)
from shared.schemas import Batch, BatchKind, RootType

from helpers import BrokenBlob, TrackingBlob


def _data(*elements):
    return Batch(kind=BatchKind.DATA, data=list(elements))


def _root(container, root=RootType.OBJECT):
    return Batch(kind=BatchKind.ROOT_COMPLETE, container=container, root=root)


async def _agen(items):
    for item in items:
        yield item


# ---------------------------------------------------------------------------
# iter_blob_chunks
# ---------------------------------------------------------------------------


class TestIterBlobChunks:
    @pytest.mark.asyncio
    async def test_chunks_in_offset_order(self):
        blob = TrackingBlob("x.json", b"0123456789")
        chunks = [c async for c in iter_blob_chunks(blob, 4)]
        assert chunks == [b"0123", b"4567", b"89"]
        assert blob.calls == [("slice", 0, 4), ("slice", 4, 8), ("slice", 8, 12)]

    @pytest.mark.asyncio
    async def test_empty_blob(self):
        assert [c async for c in iter_blob_chunks(BytesBlob("x.json", b""), 4)] == []

    @pytest.mark.asyncio
    async def test_stops_when_content_shorter_than_size(self):
        blob = TrackingBlob("x.json", b"012345", size=100)
        assert [c async for c in iter_blob_chunks(blob, 4)] == [b"0123", b"45"]
        assert len(blob.calls) == 3


# ---------------------------------------------------------------------------
# StreamingBatchAssembler
# ---------------------------------------------------------------------------


class TestStreamingBatchAssembler:
    def test_feature_collection(self):
        assembler = StreamingBatchAssembler()
        assert not assembler.add(_data(1, 2))
        assert not assembler.add(_data(3))
        assert not assembler.add(_data(4))
        assert assembler.add(
            _root({"type": "FeatureCollection", "crs": {"name": "x"}, "features": []})
        )
        assert assembler.result == {
            "type": "FeatureCollection",
            "crs": {"name": "x"},
            "features": [1, 2, 3, 4],
        }

    def test_datasets(self):
        assembler = StreamingBatchAssembler()
        assembler.add(_data({"a": 1}))
        assembler.add(_data({"b": 2}))
        assembler.add(_root({"datasets": [], "config": {"c": 1}, "info": {"app": "kepler.gl"}}))
        assert assembler.result == {
            "datasets": [{"a": 1}, {"b": 2}],
            "config": {"c": 1},
            "info": {"app": "kepler.gl"},
        }

    def test_features_wins_over_datasets(self):
        assembler = StreamingBatchAssembler()
        assembler.add(_data(1))
        assembler.add(_root({"features": [], "datasets": []}))
        assert assembler.result == {"features": [1]}

    def test_bare_array(self):
        assembler = StreamingBatchAssembler()
        assembler.add(_data({"a": 1}, {"a": 2}))
        assembler.add(_data({"a": 3}))
        assembler.add(_root([], root=RootType.ARRAY))
        assert assembler.result == [{"a": 1}, {"a": 2}, {"a": 3}]

    def test_bare_array_whose_first_row_looks_like_a_container(self):
        """A row that happens to equal the container is still just a row."""
        assembler = StreamingBatchAssembler()
        assembler.add(_data({"features": 1}))
        assembler.add(_root([], root=RootType.ARRAY))
        assert assembler.result == [{"features": 1}]

    def test_object_without_bulk_array(self):
        assembler = StreamingBatchAssembler()
        assembler.add(_root({"type": "Feature", "geometry": {"type": "Point"}}))
        assert assembler.result == {"type": "Feature", "geometry": {"type": "Point"}}

    def test_order_preserved_without_dedupe(self):
        assembler = StreamingBatchAssembler()
        assembler.add(_data(3, 1))
        assembler.add(_data(1))
        assembler.add(_root({"features": []}))
        assert assembler.result["features"] == [3, 1, 1]

    def test_result_before_root(self):
        assembler = StreamingBatchAssembler()
        assembler.add(_data(1))
        with pytest.raises(RuntimeError):
            _ = assembler.result

    def test_batch_after_root_rejected(self):
        assembler = StreamingBatchAssembler()
        assembler.add(_root({"features": []}))
        with pytest.raises(RuntimeError):
            assembler.add(_data(1))

    @pytest.mark.asyncio
    async def test_collect_stops_at_root(self):
        consumed = []

        async def batches():
            for batch in [_data(1), _root({"features": []}), _data(2)]:
                consumed.append(batch)
                yield batch

        result = await StreamingBatchAssembler().collect(batches())
        assert result == {"features": [1]}
        assert len(consumed) == 2

    @pytest.mark.asyncio
    async def test_collect_without_root(self):
        with pytest.raises(ijson.JSONError):
            await StreamingBatchAssembler().collect(_agen([_data(1)]))


# ---------------------------------------------------------------------------
# RootBatchParser
# ---------------------------------------------------------------------------


def _parse_all(content: bytes, chunk_size: int):
    parser = RootBatchParser()
    batches = []
    for i in range(0, len(content), chunk_size):
        batches.extend(parser.feed(content[i:i + chunk_size]))
    batches.extend(parser.close())
    return parser, batches


class TestRootBatchParser:
    def test_feature_collection_batches(self, feature_collection):
        content = json.dumps(feature_collection).encode()
        parser, batches = _parse_all(content, len(content))

        assert parser.root is RootType.OBJECT
        assert [b.kind for b in batches] == [BatchKind.DATA, BatchKind.ROOT_COMPLETE]
        assert batches[0].data == feature_collection["features"]
        assert batches[1].container == {
            "type": "FeatureCollection",
            "crs": feature_collection["crs"],
            "features": [],
        }

    def test_root_batch_last_and_once(self, feature_collection):
        content = json.dumps(feature_collection).encode()
        _, batches = _parse_all(content, 5)
        kinds = [b.kind for b in batches]
        assert kinds.count(BatchKind.ROOT_COMPLETE) == 1
        assert kinds[-1] is BatchKind.ROOT_COMPLETE

    def test_elements_in_byte_order(self):
        content = json.dumps([{"i": i} for i in range(50)]).encode()
        _, batches = _parse_all(content, 11)
        elements = [e for b in batches if b.kind is BatchKind.DATA for e in b.data]
        assert elements == [{"i": i} for i in range(50)]

    def test_bare_array_root(self):
        parser, batches = _parse_all(b"[1, 2, 3]", 2)
        assert parser.root is RootType.ARRAY
        assert batches[-1].root is RootType.ARRAY

    def test_scalar_root(self):
        parser, batches = _parse_all(b'"just text"', 3)
        assert parser.root is RootType.SCALAR
        assert batches[-1].container == "just text"

    def test_only_first_bulk_array_streamed(self):
        content = b'{"datasets": [1, 2], "other": {"features": [3]}}'
        _, batches = _parse_all(content, 4)
        assert batches[-1].container == {"datasets": [], "other": {"features": [3]}}

    def test_empty_chunk_ignored(self):
        parser = RootBatchParser()
        assert parser.feed(b"[1,") == [_data(1)]
        assert parser.feed(b"") == []
        batches = parser.feed(b" 2]") + parser.close()
        assert [b.kind for b in batches] == [BatchKind.DATA, BatchKind.ROOT_COMPLETE]

    def test_truncated_input(self):
        parser = RootBatchParser()
        parser.feed(b'{"features": [{"a": 1}')
        with pytest.raises(ijson.JSONError):
            parser.close()

    def test_invalid_input(self):
        parser = RootBatchParser()
        with pytest.raises(ijson.JSONError):
            parser.feed(b'{"a": tru}')
            parser.close()


# ---------------------------------------------------------------------------
# whole-document vs streaming
# ---------------------------------------------------------------------------


DOCUMENTS = [
    {"type": "FeatureCollection", "features": []},
    {
        "type": "FeatureCollection",
        "name": "Ünïcødé ✓",
        "features": [
            {"type": "Feature", "geometry": None, "properties": {"v": 1.5, "n": -3}},
            {"type": "Feature", "geometry": {"type": "Point", "coordinates": [0.25, -1e3]}},
        ],
        "bbox": [0, 0, 1, 1],
    },
    {"type": "Feature", "geometry": {"type": "LineString", "coordinates": [[1, 2], [3, 4]]}},
    [{"a": 1, "b": [1, {"c": None}]}, {"a": 2, "b": []}, {"a": "東京"}],
    [1, "two", 3.5, None, True, [], {}],
    [],
    {},
    {"datasets": [{"data": {"id": "x"}}], "config": {"version": "v1"}, "info": {"app": "kepler.gl"}},
    {"features": None, "type": "FeatureCollection"},
    {"features": {"not": "an array"}, "datasets": [1, 2]},
    {"datasets": [{"a": 1}], "features": [{"b": 2}], "info": {}},
    "scalar",
    12,
]


class TestStreamingMatchesWholeParse:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("document", DOCUMENTS)
    @pytest.mark.parametrize("chunk_size", [1, 3, 16, 1024])
    async def test_same_document(self, document, chunk_size):
        content = json.dumps(document, ensure_ascii=False).encode()
        blob = BytesBlob("doc.json", content)
        assert await parse_file_in_batches(blob, chunk_size=chunk_size) == json.loads(content)


# ---------------------------------------------------------------------------
# iter_file_batches failures
# ---------------------------------------------------------------------------


class TestIterFileBatches:
    @pytest.mark.asyncio
    async def test_read_failure_raised_in_consumer(self):
        blob = BrokenBlob("x.json", b'{"features": [1, 2, 3, 4, 5, 6]}', fail_after=1)
        with pytest.raises(FileReadError):
            async for _ in iter_file_batches(blob, chunk_size=4):
                pass

    @pytest.mark.asyncio
    async def test_parse_failure_raised_in_consumer(self):
        blob = BytesBlob("x.json", b'{"features": [1, 2,, 3]}')
        with pytest.raises(ijson.JSONError):
            async for _ in iter_file_batches(blob, chunk_size=4):
                pass

    @pytest.mark.asyncio
    async def test_empty_file(self):
        with pytest.raises(ijson.JSONError):
            await parse_file_in_batches(BytesBlob("x.json", b""), chunk_size=4)

    @pytest.mark.asyncio
    async def test_last_batch_is_root(self):
        blob = BytesBlob("x.json", json.dumps({"features": list(range(20))}).encode())
        batches = [b async for b in iter_file_batches(blob, chunk_size=8)]
        assert batches[-1].kind is BatchKind.ROOT_COMPLETE
        assert all(b.kind is BatchKind.DATA for b in batches[:-1])


class TestBulkKey:
    def test_parser_names_streamed_key(self, feature_collection):
        content = json.dumps(feature_collection).encode()
        _, batches = _parse_all(content, 64)
        assert batches[-1].bulk_key == "features"

    def test_named_key_used_over_placeholders(self):
        assembler = StreamingBatchAssembler()
        assembler.add(_data({"a": 1}))
        assembler.add(
            _root({"datasets": [], "features": [{"b": 2}]}, root=RootType.OBJECT).model_copy(
                update={"bulk_key": "datasets"}
            )
        )
        assert assembler.result == {"datasets": [{"a": 1}], "features": [{"b": 2}]}

    def test_null_bulk_value_kept(self):
        assembler = StreamingBatchAssembler()
        assembler.add(_root({"type": "FeatureCollection", "features": None}))
        assert assembler.result == {"type": "FeatureCollection", "features": None}

    def test_object_without_streamed_array_has_no_list_bulk_keys(self):
        content = b'{"features": null, "datasets": {"x": [1]}, "rows": [1]}'
        _, batches = _parse_all(content, 5)
        root = batches[-1]
        assert root.bulk_key is None
        assert not any(isinstance(root.container.get(k), list) for k in ("features", "datasets"))


class TestByteOrderMark:
    @pytest.mark.parametrize("chunk_size", [1, 2, 3, 64])
    def test_bom_dropped(self, chunk_size):
        content = b"\xef\xbb\xbf" + json.dumps({"features": [1, 2]}).encode()
        _, batches = _parse_all(content, chunk_size)
        elements = [e for b in batches if b.kind is BatchKind.DATA for e in b.data]
        assert elements == [1, 2]
        assert batches[-1].bulk_key == "features"
