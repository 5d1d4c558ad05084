"""
File ingestion: format sniffing, CSV/JSON loading, payload assembly.
"""
from .blobs import BytesBlob, FileBlob, LocalFileBlob, RemoteFileBlob
from .dispatcher import get_file_handler, ingest_file, ingest_files, load_file
from .errors import FileHandlerError, FileReadError
from .json_loader import classify_json, load_json, read_json_file
from .csv_loader import load_csv
from .payload import assemble_payload, payload_to_dict
from .processors import Processors
from .sniffer import sniff_format
from .streaming import StreamingBatchAssembler, parse_file_in_batches

__all__ = [
    "BytesBlob",
    "FileBlob",
    "LocalFileBlob",
    "RemoteFileBlob",
    "get_file_handler",
    "ingest_file",
    "ingest_files",
    "load_file",
    "FileHandlerError",
    "FileReadError",
    "classify_json",
    "load_json",
    "read_json_file",
    "load_csv",
    "assemble_payload",
    "payload_to_dict",
    "Processors",
    "sniff_format",
    "StreamingBatchAssembler",
    "parse_file_in_batches",
]
