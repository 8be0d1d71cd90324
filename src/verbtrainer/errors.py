"""Error kinds raised at the application's I/O boundaries."""

from __future__ import annotations


class ValidationError(ValueError):
    """Submitted score or notification fields are missing or malformed."""


class StoreUnavailable(RuntimeError):
    """The leaderboard or notification service could not complete a request."""


class StorageUnavailable(RuntimeError):
    """Local progress storage failed."""
