"""Core operations consumed by the transport layer."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator

from userlogs.archive import ArchiveBuilder
from userlogs.backend import FileLogBackend
from userlogs.config import Config
from userlogs.errors import ValidationError
from userlogs.formatter import format_entry, format_timestamp, normalize_timestamp
from userlogs.rate_limiter import RateLimitDecision, RateLimiter
from userlogs.store import IdentityMetadata, IdentityStore
from userlogs.validator import AppendRequestValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppendResult:
    user_id: str
    received_at: str
    created_at: str


@dataclass(frozen=True)
class ReadResult:
    user_id: str
    lines: list[str]

    @property
    def entries(self) -> int:
        return len(self.lines)


class LogService:
    """append / list_identities / read / archive / check_rate_limit.

    Validation runs before storage is touched; storage errors propagate as
    StorageFailure and are never retried here.
    """

    def __init__(self, store: IdentityStore, rate_limiter: RateLimiter,
                 archive_builder: ArchiveBuilder = None, validator=None,
                 time_func=None):
        self._store = store
        self._rate_limiter = rate_limiter
        self._time_func = time_func or (lambda: datetime.now(timezone.utc))
        self._archive_builder = archive_builder or ArchiveBuilder(
            store, time_func=self._time_func
        )
        self._validator = validator or AppendRequestValidator()

    @classmethod
    def from_config(cls, config: Config) -> "LogService":
        backend = FileLogBackend(config.log_dir, config.log_suffix)
        store = IdentityStore(backend, config.log_suffix)
        rate_limiter = RateLimiter(
            config.rate_limit_enabled,
            config.rate_limit_max_requests,
            config.rate_limit_window_seconds,
            eviction=config.rate_limit_eviction,
        )
        archive_builder = ArchiveBuilder(
            store,
            compression_level=config.archive_compression_level,
            chunk_size=config.archive_chunk_size,
        )
        return cls(store, rate_limiter, archive_builder)

    @property
    def store(self) -> IdentityStore:
        return self._store

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def validator(self) -> AppendRequestValidator:
        return self._validator

    def append_payload(self, payload) -> AppendResult:
        """Validate a raw request body and append it."""
        fields = self._validator.validate(payload)
        return self.append(fields["user_id"], fields["message"], fields["created"])

    def append(self, user_id: str, message: str, created: str = None) -> AppendResult:
        missing = [
            name for name, value in (("user_id", user_id), ("message", message))
            if not isinstance(value, str) or not value.strip()
        ]
        if missing:
            raise ValidationError(
                missing, [f"{name} is required" for name in missing], missing=True
            )
        try:
            message.encode("utf-8")
        except UnicodeEncodeError:
            raise ValidationError(["message"], ["message is not valid UTF-8 text"]) from None

        received_at = format_timestamp(self._time_func())
        if created:
            try:
                created_at = normalize_timestamp(created)
            except ValueError:
                raise ValidationError(
                    ["created"], [f"created {created!r} is not an ISO-8601 timestamp"]
                ) from None
        else:
            created_at = received_at

        self._store.append(user_id, format_entry(message, received_at, created_at))
        return AppendResult(user_id, received_at, created_at)

    def list_identities(self) -> list[IdentityMetadata]:
        return self._store.list_metadata()

    def read(self, user_id: str) -> ReadResult:
        return ReadResult(user_id, self._store.read(user_id))

    def archive(self) -> tuple[str, Iterator[bytes]]:
        """Return the download filename and a lazy iterator over the ZIP bytes."""
        return self._archive_builder.filename(), self._archive_builder.stream()

    def check_rate_limit(self, key: str) -> RateLimitDecision:
        return self._rate_limiter.check(key)
