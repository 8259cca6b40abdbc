"""Explicit transition tables of the replication saga.

A saga instance moves one production snapshot through::

    Created -> CopyRequested -> TransitCopying -> TransitShared
            -> DrCopying -> Cleanup -> Done

with the terminal branches ``NoCopy`` (ineligible source), ``Compensated``
(copy failed, transit copy cleaned up) and ``Failed`` (nothing to clean up).

Each role owns one table keyed by ``(EventType, Outcome)``. :func:`step` is the
only way a handler derives the next message, so the emitted event type and the
channel it travels on always come from the table.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from draco.models.events import Event, EventType


class SagaState(str, Enum):
    CREATED = "Created"
    COPY_REQUESTED = "CopyRequested"
    TRANSIT_COPYING = "TransitCopying"
    TRANSIT_SHARED = "TransitShared"
    DR_COPYING = "DrCopying"
    CLEANUP = "Cleanup"
    DONE = "Done"
    NO_COPY = "NoCopy"
    COMPENSATED = "Compensated"
    FAILED = "Failed"
    IGNORED = "Ignored"


class Role(str, Enum):
    PRODUCER = "producer"
    CONSUMER = "consumer"


class Outcome(str, Enum):
    OK = "ok"
    INELIGIBLE = "ineligible"
    FAILED = "failed"
    # Side effect succeeded but the follow-up could not be started; undone
    ROLLED_BACK = "rolled-back"


class Channel(str, Enum):
    """Where an emitted event goes next."""

    CONSUMER_TOPIC = "consumer-topic"
    PRODUCER_TOPIC = "producer-topic"
    COPY_WAIT = "copy-wait"
    NONE = "none"


@dataclass(frozen=True)
class Transition:
    role: Role
    trigger: EventType
    outcome: Outcome
    state: SagaState
    next_state: SagaState
    emits: Optional[EventType] = None
    channel: Channel = Channel.NONE

    @property
    def terminal(self) -> bool:
        return self.next_state in (
            SagaState.DONE,
            SagaState.NO_COPY,
            SagaState.COMPENSATED,
            SagaState.FAILED,
            SagaState.IGNORED,
        )


def _table(role: Role, *rows: Tuple[EventType, Outcome, SagaState, SagaState, Optional[EventType], Channel]):
    return {
        (trigger, outcome): Transition(role, trigger, outcome, state, next_state, emits, channel)
        for trigger, outcome, state, next_state, emits, channel in rows
    }


PRODUCER_TRANSITIONS: Dict[Tuple[EventType, Outcome], Transition] = _table(
    Role.PRODUCER,
    (EventType.SNAPSHOT_CREATED, Outcome.OK, SagaState.CREATED, SagaState.COPY_REQUESTED,
     EventType.COPY_REQUEST, Channel.CONSUMER_TOPIC),
    (EventType.COPY_INITIATE, Outcome.OK, SagaState.COPY_REQUESTED, SagaState.TRANSIT_COPYING,
     EventType.COPY_COMPLETED, Channel.COPY_WAIT),
    (EventType.COPY_INITIATE, Outcome.FAILED, SagaState.COPY_REQUESTED, SagaState.FAILED,
     None, Channel.NONE),
    (EventType.COPY_INITIATE, Outcome.ROLLED_BACK, SagaState.COPY_REQUESTED, SagaState.COMPENSATED,
     None, Channel.NONE),
    (EventType.COPY_COMPLETED, Outcome.OK, SagaState.TRANSIT_COPYING, SagaState.TRANSIT_SHARED,
     EventType.COPY_SHARED, Channel.CONSUMER_TOPIC),
    (EventType.COPY_COMPLETED, Outcome.FAILED, SagaState.TRANSIT_COPYING, SagaState.COMPENSATED,
     None, Channel.NONE),
    (EventType.DELETE_SHARED, Outcome.OK, SagaState.CLEANUP, SagaState.DONE,
     None, Channel.NONE),
    (EventType.DELETE_SHARED, Outcome.FAILED, SagaState.CLEANUP, SagaState.COMPENSATED,
     None, Channel.NONE),
    (EventType.NO_COPY, Outcome.OK, SagaState.COPY_REQUESTED, SagaState.NO_COPY,
     None, Channel.NONE),
)

CONSUMER_TRANSITIONS: Dict[Tuple[EventType, Outcome], Transition] = _table(
    Role.CONSUMER,
    (EventType.COPY_REQUEST, Outcome.OK, SagaState.COPY_REQUESTED, SagaState.TRANSIT_COPYING,
     EventType.COPY_INITIATE, Channel.PRODUCER_TOPIC),
    (EventType.COPY_REQUEST, Outcome.INELIGIBLE, SagaState.COPY_REQUESTED, SagaState.NO_COPY,
     EventType.NO_COPY, Channel.PRODUCER_TOPIC),
    (EventType.COPY_REQUEST, Outcome.FAILED, SagaState.COPY_REQUESTED, SagaState.NO_COPY,
     EventType.NO_COPY, Channel.PRODUCER_TOPIC),
    (EventType.COPY_SHARED, Outcome.OK, SagaState.TRANSIT_SHARED, SagaState.DR_COPYING,
     EventType.COPY_COMPLETED, Channel.COPY_WAIT),
    (EventType.COPY_SHARED, Outcome.FAILED, SagaState.TRANSIT_SHARED, SagaState.COMPENSATED,
     EventType.DELETE_SHARED, Channel.PRODUCER_TOPIC),
    (EventType.COPY_COMPLETED, Outcome.OK, SagaState.DR_COPYING, SagaState.CLEANUP,
     EventType.DELETE_SHARED, Channel.PRODUCER_TOPIC),
)

_TABLES = {Role.PRODUCER: PRODUCER_TRANSITIONS, Role.CONSUMER: CONSUMER_TRANSITIONS}


def transition_for(role: Role, event_type: EventType, outcome: Outcome = Outcome.OK) -> Transition:
    """Look up a row; events the role does not act on map to ``Ignored``."""
    row = _TABLES[role].get((event_type, outcome))
    if row is not None:
        return row
    return Transition(role, event_type, outcome, SagaState.IGNORED, SagaState.IGNORED)


def handles(role: Role, event_type: EventType) -> bool:
    return any(trigger == event_type for trigger, _ in _TABLES[role])


def step(
    role: Role,
    event: Event,
    outcome: Outcome = Outcome.OK,
    **changes: Any,
) -> Tuple[Transition, Optional[Event]]:
    """Apply one transition; returns the row and the new event to emit, if any."""
    transition = transition_for(role, event.event_type, outcome)
    if transition.emits is None:
        return transition, None
    return transition, event.evolve(event_type=transition.emits, **changes)
