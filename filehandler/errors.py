"""
Errors raised by the file handler.

Only read failures propagate out of a loader. Unknown file types, empty
files and JSON that matches no known shape are logged and skipped.
"""
from __future__ import annotations

from typing import Optional


class FileHandlerError(Exception):
    """Base class for file handler errors."""


class FileReadError(FileHandlerError):
    """The bytes of a file could not be read."""

    def __init__(self, name: str, cause: Optional[BaseException] = None):
        self.name = name
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to read file '{name}'{detail}")
