"""
CLI for file ingestion: python -m filehandler <path|url> [...]

Ingests every input, assembles the load payload and writes it as JSON.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List

import httpx

from shared.config import settings
from shared.log_config import configure_logging
from shared.telemetry import setup_telemetry


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def main(argv: List[str] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Ingest CSV / JSON / GeoJSON / saved map files into a load payload.",
    )
    parser.add_argument("sources", nargs="+", help="File paths or http(s) URLs.")
    parser.add_argument(
        "--out",
        "-o",
        type=Path,
        default=None,
        help="Output JSON path (default: stdout).",
    )
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        help="Logging level.",
    )
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    setup_telemetry("filehandler-cli")

    missing = [s for s in args.sources if not _is_url(s) and not Path(s).exists()]
    if missing:
        for source in missing:
            print(f"Error: file not found: {source}", file=sys.stderr)
        return 1

    async def run():
        from filehandler.blobs import LocalFileBlob, RemoteFileBlob
        from filehandler.dispatcher import ingest_files
        from filehandler.errors import FileReadError
        from filehandler.payload import assemble_payload, payload_to_dict

        async with httpx.AsyncClient(timeout=settings.REMOTE_TIMEOUT) as client:
            blobs = []
            for source in args.sources:
                try:
                    if _is_url(source):
                        blobs.append(await RemoteFileBlob.open(source, client))
                    else:
                        blobs.append(LocalFileBlob(source))
                except FileReadError as e:
                    print(f"Error: {e}", file=sys.stderr)
            cache = await ingest_files(blobs)
        return cache, payload_to_dict(assemble_payload(cache))

    cache, payload = asyncio.run(run())
    text = json.dumps(payload, default=str)
    if args.out is None:
        sys.stdout.write(text + "\n")
    else:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(text, encoding="utf-8")
        print(f"Files ingested: {len(cache)}", file=sys.stderr)
        print(f"Output: {args.out}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
