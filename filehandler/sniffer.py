"""
Format sniffing: file name -> FormatTag.
"""
from __future__ import annotations

from shared.schemas import FormatTag

# Adding a format means extending this table and the loader registry in
# filehandler.dispatcher together.
FORMAT_SUFFIXES = {
    ".csv": FormatTag.CSV,
    ".json": FormatTag.JSON,
    ".geojson": FormatTag.JSON,
}


def sniff_format(name: str) -> FormatTag:
    """Return the format tag for a file name, FormatTag.OTHER if unknown."""
    for suffix, tag in FORMAT_SUFFIXES.items():
        if name.endswith(suffix):
            return tag
    return FormatTag.OTHER
