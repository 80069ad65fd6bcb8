"""Configuration module — frozen dataclass loaded from environment variables."""

import os
from dataclasses import dataclass

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class Config:
    host: str = "0.0.0.0"
    port: int = 3333
    log_dir: str = "./user_logs"
    log_suffix: str = ".log"
    rate_limit_enabled: bool = True
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: int = 60
    rate_limit_eviction: bool = True
    archive_compression_level: int = 9  # maximum: smaller downloads over CPU
    archive_chunk_size: int = 64 * 1024
    cors_origin: str = "*"
    trust_proxy: bool = False
    service_log_level: str = "INFO"


def load_config() -> Config:
    """Build Config from environment variables with sensible defaults."""
    # PORT takes precedence over SERVER_PORT
    raw_port = os.environ.get("PORT") or os.environ.get("SERVER_PORT")
    port = int(raw_port) if raw_port else Config.port

    level = os.environ.get("SERVICE_LOG_LEVEL", Config.service_log_level).upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"Invalid SERVICE_LOG_LEVEL: {level}")

    compression = int(
        os.environ.get("ARCHIVE_COMPRESSION_LEVEL", Config.archive_compression_level)
    )

    return Config(
        host=os.environ.get("SERVER_HOST", Config.host),
        port=port,
        log_dir=os.environ.get("LOG_DIR", Config.log_dir),
        log_suffix=os.environ.get("LOG_SUFFIX", Config.log_suffix),
        rate_limit_enabled=_parse_bool(
            os.environ.get("RATE_LIMIT_ENABLED", "true")
        ),
        rate_limit_max_requests=int(
            os.environ.get("RATE_LIMIT_MAX_REQUESTS", Config.rate_limit_max_requests)
        ),
        rate_limit_window_seconds=int(
            os.environ.get("RATE_LIMIT_WINDOW_SECONDS", Config.rate_limit_window_seconds)
        ),
        rate_limit_eviction=_parse_bool(
            os.environ.get("RATE_LIMIT_EVICTION", "true")
        ),
        archive_compression_level=max(0, min(9, compression)),
        archive_chunk_size=int(
            os.environ.get("ARCHIVE_CHUNK_SIZE", Config.archive_chunk_size)
        ),
        cors_origin=os.environ.get("CORS_ORIGIN", Config.cors_origin),
        trust_proxy=_parse_bool(os.environ.get("TRUST_PROXY", "false")),
        service_log_level=level,
    )
