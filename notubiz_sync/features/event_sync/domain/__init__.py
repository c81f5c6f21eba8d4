"""
Domain subpackage for the event sync feature.
"""

from .errors import (
    ConfigurationError,
    EventSyncError,
    MeetingContextUnavailable,
    NotFoundUpstream,
    NotSyncedLocally,
    ScopeMismatch,
    StillExistsUpstream,
    TransportFailure,
    ValidationFailure,
)
from .models import (
    FetchResult,
    Mapped,
    MapResult,
    NotificationOutcome,
    Skipped,
    SyncBatch,
    SyncLink,
    SyncRunResult,
    SyncScope,
    TargetObject,
)

__all__ = [
    "ConfigurationError",
    "EventSyncError",
    "FetchResult",
    "Mapped",
    "MapResult",
    "MeetingContextUnavailable",
    "NotFoundUpstream",
    "NotSyncedLocally",
    "NotificationOutcome",
    "ScopeMismatch",
    "Skipped",
    "StillExistsUpstream",
    "SyncBatch",
    "SyncLink",
    "SyncRunResult",
    "SyncScope",
    "TargetObject",
    "TransportFailure",
    "ValidationFailure",
]
