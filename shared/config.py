"""
Shared configuration for the file handler.

Every value can be overridden from the environment or a local .env file.
The streaming threshold and chunk size are the two knobs that decide how
large JSON files are read; see filehandler.json_loader.
"""

import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """File ingestion settings."""

    # Service identification
    SERVICE_NAME: str = os.getenv("SERVICE_NAME", "filehandler")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # JSON files this size or bigger are parsed in batches instead of being
    # materialized as one string (250MB).
    JSON_STREAMING_THRESHOLD: int = int(
        os.getenv("JSON_STREAMING_THRESHOLD", str(250 * 1024 * 1024))
    )
    # 1MB, biggest slice that keeps the event loop responsive
    STREAM_CHUNK_SIZE: int = int(os.getenv("STREAM_CHUNK_SIZE", str(1024 * 1024)))
    # Chunks / batches buffered between producer and consumer tasks
    STREAM_QUEUE_SIZE: int = int(os.getenv("STREAM_QUEUE_SIZE", "2"))

    # Ingestion
    MAX_CONCURRENT_FILES: int = int(os.getenv("MAX_CONCURRENT_FILES", "5"))
    DATASET_ID_LENGTH: int = int(os.getenv("DATASET_ID_LENGTH", "4"))
    TEXT_ENCODING: str = os.getenv("TEXT_ENCODING", "utf-8")

    # Remote blobs (seconds)
    REMOTE_TIMEOUT: float = float(os.getenv("REMOTE_TIMEOUT", "600"))

    # OpenTelemetry configuration
    OTEL_ENABLED: bool = os.getenv("OTEL_ENABLED", "false").lower() == "true"
    OTEL_EXPORTER_OTLP_ENDPOINT: str = os.getenv(
        "OTEL_EXPORTER_OTLP_ENDPOINT", "http://jaeger:4317"
    )
    OTEL_SERVICE_NAME: str = os.getenv("OTEL_SERVICE_NAME", "filehandler")

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
