"""Helpers shared by the file handler tests."""

import asyncio
import json

from filehandler.blobs import BytesBlob
from filehandler.errors import FileReadError


def json_blob(name, document):
    """In-memory blob holding a JSON document."""
    return BytesBlob(name, json.dumps(document, ensure_ascii=False))


class TrackingBlob(BytesBlob):
    """BytesBlob that records which read methods were used."""

    def __init__(self, name, content, size=None):
        super().__init__(name, content)
        if size is not None:
            self.size = size
        self.calls = []

    async def read_text(self):
        self.calls.append("read_text")
        return await super().read_text()

    async def slice(self, start, end):
        self.calls.append(("slice", start, end))
        return await super().slice(start, end)


class SlowBlob(BytesBlob):
    """BytesBlob whose reads finish after a delay."""

    def __init__(self, name, content, delay):
        super().__init__(name, content)
        self.delay = delay

    async def read_text(self):
        await asyncio.sleep(self.delay)
        return await super().read_text()


class BrokenBlob(BytesBlob):
    """BytesBlob whose reads fail, optionally only after some slices."""

    def __init__(self, name, content=b"", size=None, fail_after=0):
        super().__init__(name, content)
        if size is not None:
            self.size = size
        self.fail_after = fail_after
        self.slices = 0

    async def read_text(self):
        raise FileReadError(self.name, OSError("device not ready"))

    async def read_bytes(self):
        raise FileReadError(self.name, OSError("device not ready"))

    async def slice(self, start, end):
        if self.slices >= self.fail_after:
            raise FileReadError(self.name, OSError("device not ready"))
        self.slices += 1
        return await super().slice(start, end)
