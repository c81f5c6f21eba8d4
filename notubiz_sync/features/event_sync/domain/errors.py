"""
Error taxonomy for the event sync.

None of these are process-fatal: the batch pipeline turns them into skips,
the notification handler turns them into a rejected outcome carrying the
message.
"""


class EventSyncError(Exception):
    """Base class for sync failures that end one operation."""

    def __init__(self, message: str, *, source_id: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.message = message
        self.source_id = source_id
        self.recoverable = recoverable


class ConfigurationError(EventSyncError):
    """The run configuration is incomplete or references unknown resources."""

    def __init__(self, message: str):
        super().__init__(message, recoverable=False)


class TransportFailure(EventSyncError):
    """Network, HTTP or decode failure while talking to the source."""


class MeetingContextUnavailable(TransportFailure):
    """The parent meeting of an event could not be fetched."""


class NotFoundUpstream(EventSyncError):
    """The source no longer knows the requested record."""


class ScopeMismatch(EventSyncError):
    """The record belongs to another organisation, gremium or category."""


class ValidationFailure(EventSyncError):
    """The mapped record was rejected by the target schema."""

    def __init__(self, message: str, errors: list[str], *, source_id: str | None = None):
        super().__init__(message, source_id=source_id)
        self.errors = errors


class StillExistsUpstream(EventSyncError):
    """A delete was requested for a record the source still returns."""


class NotSyncedLocally(EventSyncError):
    """No sync link exists for the requested source id."""
