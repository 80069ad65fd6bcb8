"""Entry formatting: timestamps and the one-line rendered log entry."""

from datetime import datetime, timezone


def format_timestamp(dt: datetime) -> str:
    """Render a datetime as fixed-width ISO-8601 UTC with millisecond precision.

    Naive datetimes are taken to be UTC already.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 string (trailing ``Z`` allowed) into an aware UTC datetime.

    Raises ValueError on anything that is not a timestamp.
    """
    if not isinstance(text, str):
        raise ValueError(f"Timestamp must be a string, got {type(text).__name__}")
    value = text.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_timestamp(text: str) -> str:
    """Re-render a client-supplied timestamp in the canonical text form."""
    return format_timestamp(parse_timestamp(text))


def format_entry(message: str, received_at, created_at) -> str:
    """Render one log line: ``[received] [created: created] message\\n``.

    Both timestamps may be datetimes or already-rendered strings. The message
    is written as-is; embedded newlines split the entry on read.
    """
    if isinstance(received_at, datetime):
        received_at = format_timestamp(received_at)
    if isinstance(created_at, datetime):
        created_at = format_timestamp(created_at)
    return f"[{received_at}] [created: {created_at}] {message}\n"


def split_lines(text: str) -> list[str]:
    """Split a log body into lines, dropping blank and whitespace-only ones."""
    return [line for line in text.split("\n") if line.strip()]
