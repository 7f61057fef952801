"""Exceptions raised by the session aggregator."""

from __future__ import annotations


class AggregatorError(Exception):
    """Base exception for aggregator errors."""


class MalformedSignalError(AggregatorError):
    """A signal body did not have the expected shape; it is discarded."""


class SnapshotError(AggregatorError):
    """Fetching the full property snapshot of a new player failed."""


class CommandError(AggregatorError):
    """A media command sent to the current player failed."""


class InhibitError(AggregatorError):
    """Acquiring or releasing an inhibition lock failed."""
