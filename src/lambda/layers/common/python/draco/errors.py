"""Error taxonomy shared by the saga handlers, poller and lifecycle."""

from __future__ import annotations

from typing import Optional


class DracoError(Exception):
    """Base class for all DRACO errors."""


class ValidationError(DracoError, ValueError):
    """Raised when an inbound payload is malformed. Fatal to the invocation."""


class UnrecognizedInput(ValidationError):
    """Raised when an envelope, subject or event id cannot be mapped to an Event."""


class UnsupportedSnapshotType(ValidationError):
    """Raised when a message names a snapshot kind we do not replicate."""


class ConfigurationError(DracoError):
    """Raised when a required setting is missing for the requested operation."""


class SnapshotNotFound(DracoError):
    """The provider reports that the snapshot does not exist (yet)."""

    def __init__(self, identifier: str, code: Optional[str] = None) -> None:
        super().__init__(f"Snapshot not found: {identifier}")
        self.identifier = identifier
        self.code = code

