"""Error types raised by the feed and pin layers."""

from __future__ import annotations


class WorldNewsError(Exception):
    """Base class for all application errors."""


class CredentialsUnavailable(WorldNewsError):
    """API credentials have not been provided yet."""


class FetchError(WorldNewsError):
    """A page request failed before producing articles."""

    kind = "network"


class NetworkFailure(FetchError):
    kind = "network"


class EmptyResponseBody(NetworkFailure):
    kind = "noData"


class DecodeFailure(FetchError):
    kind = "decodeError"


class FetchCancelled(WorldNewsError):
    """Raised inside a fetch task that was cancelled; never surfaced."""


class StorageFailure(WorldNewsError):
    """Persisting a pin change failed; in-memory state was left unchanged."""
