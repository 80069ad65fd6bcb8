"""Error taxonomy shared by the store, the service facade and the HTTP layer."""


class LogStoreError(Exception):
    """Base class for every failure the core reports to its caller."""


class ValidationError(LogStoreError):
    """Raised when a client-supplied request is missing or has malformed fields.

    ``fields`` names the offending fields so the caller can correct the
    request; ``messages`` holds one human-readable line per problem.
    ``missing`` is True when every problem is an absent or blank required field.
    """

    def __init__(self, fields, messages=None, missing: bool = False):
        self.fields = list(fields)
        self.messages = list(messages or [])
        self.missing = missing
        msg = "Invalid field(s): " + ", ".join(self.fields)
        if self.messages:
            msg += " (" + "; ".join(self.messages) + ")"
        super().__init__(msg)


class NotFound(LogStoreError):
    """Raised when an identity has never been appended to."""

    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__(f"No log found for user_id {user_id!r}")


class RateLimited(LogStoreError):
    """Raised when a client key exceeded its quota for the current window."""

    def __init__(self, key, retry_after: float = 0.0):
        self.key = key
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded for {key}")


class StorageFailure(LogStoreError):
    """Raised when the durable storage layer fails.

    ``operation`` is a short generic description safe to show to clients;
    the underlying exception is chained as ``__cause__`` for operators.
    """

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Storage failure during {operation}")
