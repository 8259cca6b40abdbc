"""Typed helper to start the copy completion-wait workflow.

The state machine waits ``PollInterval`` seconds, invokes the wait4copy poller
with ``SnapshotType``/``SourceArn``/``iterator`` and, once the snapshot is
available, publishes ``event`` with subject ``DRACO Event``.

Example
-------

from draco.workflow import CopyWaitExecutionInput, CopyWaitStarter

payload = CopyWaitExecutionInput(
    snapshot_type=SnapshotType.DATABASE_INSTANCE,
    source_arn="arn:aws:rds:us-east-1:111111111111:snapshot:orders-2024-03-01-dr",
    event=pending_event,
)
execution_arn = CopyWaitStarter(sfn, state_machine_arn).start(payload, name=request_id)
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from draco.errors import ConfigurationError
from draco.models.events import Event, SnapshotType
from draco.utils.logger import get_logger

logger = get_logger(__name__)

_EXECUTION_NAME_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")


@dataclass
class CopyWaitExecutionInput:
    """Input payload for one completion-wait execution."""

    snapshot_type: SnapshotType
    source_arn: str
    event: Event
    poll_interval: int = 60
    max_iterations: int = 120

    def to_dict(self) -> Dict[str, Any]:
        if not self.source_arn:
            raise ValueError("source_arn of the snapshot to watch is required")
        return {
            "SnapshotType": SnapshotType(self.snapshot_type).value,
            "SourceArn": self.source_arn,
            "PollInterval": int(self.poll_interval),
            "iterator": {"count": 0, "maxcount": int(self.max_iterations)},
            "event": self.event.to_message(),
        }


def execution_name(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    return _EXECUTION_NAME_UNSAFE.sub("-", raw)[:80]


class CopyWaitStarter:
    def __init__(self, sfn: Any, state_machine_arn: Optional[str]) -> None:
        if not state_machine_arn:
            raise ConfigurationError("STATE_MACHINE_ARN is not configured")
        self.sfn = sfn
        self.state_machine_arn = state_machine_arn

    def start(self, payload: CopyWaitExecutionInput, name: Optional[str] = None) -> str:
        """Start the wait workflow and return the execution ARN."""
        args: Dict[str, Any] = {
            "stateMachineArn": self.state_machine_arn,
            "input": json.dumps(payload.to_dict()),
        }
        safe_name = execution_name(name)
        if safe_name:
            args["name"] = safe_name

        resp = self.sfn.start_execution(**args)
        logger.info(
            f"Started copy wait for {payload.source_arn}",
            extra={"snapshot_type": SnapshotType(payload.snapshot_type).value, "source_arn": payload.source_arn},
        )
        return str(resp.get("executionArn", ""))
