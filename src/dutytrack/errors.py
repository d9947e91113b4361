"""Error taxonomy for the field-activity engine.

Data anomalies (malformed coordinates, dangling or unterminated duty events)
are never raised; they degrade to documented policies. Unknown, inactive and
out-of-range checkpoints are returned as verdicts. Only I/O against the
collaborators raises.
"""


class DutyTrackError(Exception):
    """Base class for all engine errors."""

    retryable: bool = False


class TransientError(DutyTrackError):
    """Recoverable I/O failure; the caller may retry or render partial data."""

    retryable = True


class DataRetrievalError(TransientError):
    """Samples, events or checkpoints could not be read from their store.

    Distinct from an empty result: a subject with no activity yields empty
    data, not this error.
    """

    def __init__(self, store: str, subject_id: str | None = None, detail: str = ""):
        self.store = store
        self.subject_id = subject_id
        self.detail = detail
        message = f"Could not retrieve data from {store} store"
        if subject_id:
            message += f" for subject {subject_id}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class StorageUnavailable(TransientError):
    """An accepted sample could not be appended to the sample store."""


class PositionSourceError(DutyTrackError):
    """The raw position source failed to produce a fix."""


class PositionTimeout(PositionSourceError):
    """No fix was acquired within the timeout; worth a retry prompt."""

    retryable = True

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Unable to acquire a position within {timeout_seconds:g} seconds"
        )


class SourceUnavailable(PositionSourceError):
    """The position source is missing or disabled; retried on the next tick."""

    retryable = True


class PositionPermissionDenied(SourceUnavailable):
    """The user denied access to the position source; needs a permissions prompt."""

    retryable = False
