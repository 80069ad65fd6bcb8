"""Streaming ZIP export of every identity's log plus a summary.json manifest."""

import json
import logging
import zipfile
from datetime import datetime, timezone
from typing import Iterator

from userlogs.errors import NotFound, StorageFailure
from userlogs.formatter import format_timestamp
from userlogs.store import IdentityMetadata, IdentityStore

logger = logging.getLogger(__name__)

MANIFEST_NAME = "summary.json"

# Entries whose snapshot size is close to the 32-bit limit are written as
# zip64 up front; an unseekable stream cannot patch the header afterwards.
_ZIP64_THRESHOLD = int(zipfile.ZIP64_LIMIT * 0.9)


class _StreamSink:
    """Write-only, unseekable buffer that zipfile writes into and we drain."""

    def __init__(self):
        self._chunks = []

    def write(self, data) -> int:
        if data:
            self._chunks.append(bytes(data))
        return len(data)

    def flush(self):
        pass

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


def build_manifest(records: list[IdentityMetadata], generated_at) -> dict:
    """Build the summary.json document for a set of identity records."""
    if isinstance(generated_at, datetime):
        generated_at = format_timestamp(generated_at)
    return {
        "generated": generated_at,
        "total_files": len(records),
        "files": [
            {
                "filename": r.filename,
                "user_id": r.user_id,
                "size": r.size,
                "modified": r.modified,
                "created": r.created,
            }
            for r in records
        ],
    }


def archive_filename(now: datetime) -> str:
    """Download name: ``user_logs-<timestamp with ':' and '.' replaced>.zip``."""
    stamp = format_timestamp(now).replace(":", "-").replace(".", "-")
    return f"user_logs-{stamp}.zip"


class ArchiveBuilder:
    """Bundles the store into a deflate-compressed ZIP, yielded chunk by chunk.

    The set of identities is snapshotted when streaming starts; each entry
    carries the identity's content at the moment it is copied. Memory use is
    bounded by ``chunk_size`` (plus compressor state), not by corpus size.
    Any read failure aborts the whole archive with StorageFailure.
    """

    def __init__(self, store: IdentityStore, compression_level: int = 9,
                 chunk_size: int = 64 * 1024, time_func=None):
        self._store = store
        self._compression_level = compression_level
        self._chunk_size = chunk_size
        self._time_func = time_func or (lambda: datetime.now(timezone.utc))

    @property
    def compression_level(self) -> int:
        return self._compression_level

    def filename(self) -> str:
        return archive_filename(self._time_func())

    def stream(self) -> Iterator[bytes]:
        """Snapshot the identities now and return an iterator over the archive bytes.

        A listing failure raises here, before anything is sent; a read failure
        raises StorageFailure from the iterator mid-stream.
        """
        records = self._store.list_metadata()
        logger.info("Building archive with %d file(s)", len(records))
        return self._generate(records)

    def _generate(self, records: list[IdentityMetadata]) -> Iterator[bytes]:
        sink = _StreamSink()
        total = 0
        with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_DEFLATED,
                             compresslevel=self._compression_level) as zf:
            for record in records:
                for chunk in self._copy_entry(zf, sink, record):
                    total += len(chunk)
                    yield chunk

            manifest = build_manifest(records, self._time_func())
            zf.writestr(MANIFEST_NAME, json.dumps(manifest, indent=2))

        tail = sink.drain()
        total += len(tail)
        if tail:
            yield tail
        logger.info("Archive complete: %d file(s), %d bytes", len(records), total)

    def _copy_entry(self, zf: zipfile.ZipFile, sink: _StreamSink,
                    record: IdentityMetadata) -> Iterator[bytes]:
        force_zip64 = record.size >= _ZIP64_THRESHOLD
        try:
            with self._store.open(record.user_id) as src, \
                    zf.open(record.filename, mode="w", force_zip64=force_zip64) as dest:
                while True:
                    block = src.read(self._chunk_size)
                    if not block:
                        break
                    dest.write(block)
                    data = sink.drain()
                    if data:
                        yield data
        except NotFound as exc:
            logger.error("Log for %s disappeared during archive", record.user_id)
            raise StorageFailure("archive") from exc
        except OSError as exc:
            logger.exception("Failed to read %s during archive", record.filename)
            raise StorageFailure("archive") from exc
        data = sink.drain()
        if data:
            yield data
