"""Identity Store: maps a user_id to its append-only log and enumerates identities."""

import logging
from dataclasses import dataclass
from typing import BinaryIO

from userlogs.backend import LogBackend
from userlogs.errors import NotFound, StorageFailure, ValidationError
from userlogs.formatter import format_timestamp, split_lines

logger = logging.getLogger(__name__)

_FORBIDDEN_KEYS = ("", ".", "..")

# NAME_MAX on common filesystems.
MAX_NAME_BYTES = 255


@dataclass(frozen=True)
class IdentityMetadata:
    user_id: str
    filename: str
    size: int
    created: str
    modified: str

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "filename": self.filename,
            "size": self.size,
            "modified": self.modified,
            "created": self.created,
        }


def check_user_id(user_id, suffix: str = ".log") -> None:
    """Reject identities that cannot name a single stream in the store."""
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError(["user_id"], ["user_id is required"], missing=True)
    if user_id in _FORBIDDEN_KEYS or "/" in user_id or "\\" in user_id or "\x00" in user_id:
        raise ValidationError(["user_id"], [f"user_id {user_id!r} is not a valid identity"])
    try:
        encoded = (user_id + suffix).encode("utf-8")
    except UnicodeEncodeError:
        raise ValidationError(["user_id"], ["user_id is not valid UTF-8 text"]) from None
    if len(encoded) > MAX_NAME_BYTES:
        raise ValidationError(
            ["user_id"], [f"user_id is longer than {MAX_NAME_BYTES - len(suffix)} bytes"]
        )


class IdentityStore:
    """Per-identity append/read/list on top of a LogBackend.

    Backend OSErrors surface as StorageFailure; nothing is cached, so every
    call sees the current durable state.
    """

    def __init__(self, backend: LogBackend, suffix: str = ".log"):
        self._backend = backend
        self._suffix = suffix

    @property
    def backend(self) -> LogBackend:
        return self._backend

    def filename(self, user_id: str) -> str:
        return f"{user_id}{self._suffix}"

    def append(self, user_id: str, entry_text: str) -> None:
        check_user_id(user_id, self._suffix)
        try:
            self._backend.append(user_id, entry_text.encode("utf-8"))
        except OSError as exc:
            logger.exception("Append failed for user_id=%s", user_id)
            raise StorageFailure("append") from exc
        logger.debug("Appended %d bytes for user_id=%s", len(entry_text), user_id)

    def exists(self, user_id: str) -> bool:
        try:
            return self._backend.exists(user_id)
        except OSError as exc:
            logger.exception("Existence check failed for user_id=%s", user_id)
            raise StorageFailure("read") from exc

    def read(self, user_id: str) -> list[str]:
        """Return the identity's non-blank lines in append order."""
        check_user_id(user_id, self._suffix)
        try:
            data = self._backend.read(user_id)
        except KeyError:
            raise NotFound(user_id) from None
        except OSError as exc:
            logger.exception("Read failed for user_id=%s", user_id)
            raise StorageFailure("read") from exc
        return split_lines(data.decode("utf-8", errors="replace"))

    def open(self, user_id: str) -> BinaryIO:
        try:
            return self._backend.open(user_id)
        except KeyError:
            raise NotFound(user_id) from None
        except OSError as exc:
            logger.exception("Open failed for user_id=%s", user_id)
            raise StorageFailure("read") from exc

    def identities(self) -> list[str]:
        try:
            return self._backend.keys()
        except OSError as exc:
            logger.exception("Listing identities failed")
            raise StorageFailure("list") from exc

    def metadata(self, user_id: str) -> IdentityMetadata:
        try:
            st = self._backend.stat(user_id)
        except KeyError:
            raise NotFound(user_id) from None
        except OSError as exc:
            logger.exception("Stat failed for user_id=%s", user_id)
            raise StorageFailure("list") from exc
        return IdentityMetadata(
            user_id=user_id,
            filename=self.filename(user_id),
            size=st.size,
            created=format_timestamp(st.created),
            modified=format_timestamp(st.modified),
        )

    def list_metadata(self) -> list[IdentityMetadata]:
        """Metadata for every identity, lexical by user_id.

        An identity removed out-of-band between listing and stat is skipped.
        """
        records = []
        for user_id in self.identities():
            try:
                records.append(self.metadata(user_id))
            except NotFound:
                logger.warning("Identity %s vanished while listing", user_id)
        return records
