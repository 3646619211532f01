"""Error taxonomy shared by the ingestion pipeline."""

from __future__ import annotations


class AlertServiceError(Exception):
    """Base class for errors raised by the alerting service."""


class ValidationError(AlertServiceError, ValueError):
    """Input rejected before any side effect was performed."""


class StorageError(AlertServiceError):
    """The storage collaborator failed to read or write."""


class DispatchBatchError(AlertServiceError):
    """A single push batch could not be delivered."""
