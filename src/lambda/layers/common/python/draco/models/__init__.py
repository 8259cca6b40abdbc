"""Models subpackage exposed via the common layer."""

from .events import (
    Event,
    EventType,
    PollIterator,
    PollIteratorState,
    PollRequest,
    PollResult,
    SnapshotRef,
    SnapshotStatus,
    SnapshotType,
    Tag,
)
from .settings import DracoSettings

__all__ = [
    "DracoSettings",
    "Event",
    "EventType",
    "PollIterator",
    "PollIteratorState",
    "PollRequest",
    "PollResult",
    "SnapshotRef",
    "SnapshotStatus",
    "SnapshotType",
    "Tag",
]
