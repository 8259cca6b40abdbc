"""Completion poller: one status check per Step Functions iteration.

Input::

    {"SnapshotType": "RDS", "SourceArn": "arn:...", "iterator": {"count": 3, "maxcount": 120}}

Output::

    {"statusCode": 200, "iterator": {"count": 4, "maxcount": 120, "exhausted": false},
     "status": "pending", "info": {...describe result...}}

Not-found is reported as ``statusCode`` 404 (the copy may not be visible yet),
every other failure as 500. No state is kept between invocations.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from draco.errors import SnapshotNotFound
from draco.models.events import PollIteratorState, PollRequest, PollResult
from draco.snapshots import PROVIDER_ERRORS, ClientFactory, failure_text, service_for
from draco.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ITERATIONS = 120


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def advance_iterator(raw: Any, default_max: int = DEFAULT_MAX_ITERATIONS) -> PollIteratorState:
    raw = raw if isinstance(raw, dict) else {}
    count = _as_int(raw.get("count"), 0) + 1
    maxcount = max(1, _as_int(raw.get("maxcount"), default_max))
    return PollIteratorState(count=count, maxcount=maxcount, exhausted=count >= maxcount)


def _json_safe(value: Any) -> Any:
    return json.loads(json.dumps(value, default=str))


def check_completion(
    payload: Dict[str, Any],
    clients: ClientFactory,
    region: str,
    *,
    default_max: int = DEFAULT_MAX_ITERATIONS,
) -> Dict[str, Any]:
    iterator = advance_iterator(payload.get("iterator") if isinstance(payload, dict) else None, default_max)
    try:
        request = PollRequest.model_validate(payload)
        service = service_for(request.snapshot_type, clients, region)
        logger.info(f"Checking snapshot {request.source_arn}", extra={"source_arn": request.source_arn})
        raw = service.describe(request.source_arn)
    except SnapshotNotFound as exc:
        logger.info(f"Snapshot not visible yet: {exc.identifier}")
        return PollResult(status_code=404, iterator=iterator, error=str(exc)).to_dict()
    except ValueError as exc:
        logger.error(f"Invalid poll request: {exc}")
        return PollResult(status_code=500, iterator=iterator, error=str(exc)).to_dict()
    except PROVIDER_ERRORS as exc:
        logger.error(f"Status check failed: {failure_text(exc)}")
        return PollResult(status_code=500, iterator=iterator, error=failure_text(exc)).to_dict()

    status = service.status_of(raw)
    logger.info(f"Snapshot {request.source_arn} is {status.value} (iteration {iterator.count})")
    return PollResult(status_code=200, iterator=iterator, status=status, info=_json_safe(raw)).to_dict()
