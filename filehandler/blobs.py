"""
File blobs: byte sources the loaders read from.

A blob knows its name and size and can return its whole content, as text
or bytes, or a byte range. Every read failure surfaces as FileReadError.
"""
from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Optional, Protocol, Union, runtime_checkable
from urllib.parse import unquote, urlparse

import httpx

from shared.config import settings

from .errors import FileReadError

BOM = "\ufeff"


@runtime_checkable
class FileBlob(Protocol):
    """Read-only byte source borrowed for the duration of one ingestion."""

    name: str
    size: int

    async def read_text(self) -> str: ...

    async def read_bytes(self) -> bytes: ...

    async def slice(self, start: int, end: int) -> bytes: ...


def _decode(name: str, content: bytes) -> str:
    try:
        text = content.decode(settings.TEXT_ENCODING)
    except UnicodeDecodeError as e:
        raise FileReadError(name, e) from e
    # A leading byte order mark is not part of the content
    return text.removeprefix(BOM)


class BytesBlob:
    """In-memory blob, e.g. an uploaded file."""

    def __init__(self, name: str, content: Union[bytes, str]):
        if isinstance(content, str):
            content = content.encode(settings.TEXT_ENCODING)
        self.name = name
        self._content = content
        self.size = len(content)

    async def read_bytes(self) -> bytes:
        return self._content

    async def read_text(self) -> str:
        return _decode(self.name, self._content)

    async def slice(self, start: int, end: int) -> bytes:
        return self._content[start:end]

    def __repr__(self) -> str:
        return f"BytesBlob(name='{self.name}', size={self.size})"


class LocalFileBlob:
    """Blob backed by a file on disk. Reads run in a worker thread."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.name = self.path.name
        try:
            self.size = self.path.stat().st_size
        except OSError as e:
            raise FileReadError(self.name, e) from e

    def _read_range(self, start: int, end: int) -> bytes:
        with open(self.path, "rb") as f:
            f.seek(start)
            return f.read(max(end - start, 0))

    async def read_bytes(self) -> bytes:
        try:
            return await asyncio.to_thread(self.path.read_bytes)
        except OSError as e:
            raise FileReadError(self.name, e) from e

    async def read_text(self) -> str:
        return _decode(self.name, await self.read_bytes())

    async def slice(self, start: int, end: int) -> bytes:
        try:
            return await asyncio.to_thread(self._read_range, start, end)
        except OSError as e:
            raise FileReadError(self.name, e) from e

    def __repr__(self) -> str:
        return f"LocalFileBlob(path='{self.path}', size={self.size})"


class RemoteFileBlob:
    """
    Blob served over HTTP.

    The size comes from a HEAD request, so open it with RemoteFileBlob.open().
    Slices are fetched with Range requests.
    """

    def __init__(
        self,
        url: str,
        size: int,
        client: httpx.AsyncClient,
        name: Optional[str] = None,
    ):
        self.url = url
        self.size = size
        self.client = client
        self.name = name or _name_from_url(url)

    @classmethod
    async def open(
        cls,
        url: str,
        client: httpx.AsyncClient,
        name: Optional[str] = None,
    ) -> "RemoteFileBlob":
        label = name or _name_from_url(url)
        try:
            r = await client.head(url, follow_redirects=True)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise FileReadError(label, e) from e
        length = r.headers.get("content-length")
        if length is None:
            raise FileReadError(label, ValueError("server did not report Content-Length"))
        return cls(url, int(length), client, name=label)

    async def _get(self, headers: Optional[dict] = None) -> bytes:
        try:
            r = await self.client.get(
                self.url,
                headers=headers,
                follow_redirects=True,
                timeout=settings.REMOTE_TIMEOUT,
            )
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise FileReadError(self.name, e) from e
        return r.content

    async def read_bytes(self) -> bytes:
        return await self._get()

    async def read_text(self) -> str:
        return _decode(self.name, await self.read_bytes())

    async def slice(self, start: int, end: int) -> bytes:
        end = min(end, self.size)
        if end <= start:
            return b""
        content = await self._get({"Range": f"bytes={start}-{end - 1}"})
        # Servers that ignore Range answer 200 with the whole body
        if len(content) > end - start:
            content = content[start:end]
        return content

    def __repr__(self) -> str:
        return f"RemoteFileBlob(url='{self.url}', size={self.size})"


def _name_from_url(url: str) -> str:
    path = unquote(urlparse(url).path)
    return os.path.basename(path.rstrip("/")) or url
