"""
Pipeline components for the event sync.

fetcher -> mapping -> record_sync -> reconciler, with attachments fanned
out once a batch is committed.
"""

__all__ = ["attachments", "fetcher", "mapping", "reconciler", "record_sync"]
