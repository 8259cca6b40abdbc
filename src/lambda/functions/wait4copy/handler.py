"""wait4copy Lambda: invoked by the copy-wait state machine once per iteration.

Input
{"SnapshotType": "RDS Cluster", "SourceArn": "arn:aws:rds:...", "iterator": {"count": 0, "maxcount": 120}}

Output
{"statusCode": 200|404|500, "iterator": {"count", "maxcount", "exhausted"}, "status": ..., "info"|"error": ...}
"""

from __future__ import annotations

import json
from typing import Any, Dict

import boto3

from draco.models.settings import DracoSettings
from draco.poller import check_completion
from draco.utils.logger import configure_debug, get_logger


def main(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    log = get_logger(__name__, correlation_id=getattr(context, "aws_request_id", None))
    settings = DracoSettings.load()
    configure_debug(settings.debug)
    log.debug(f"Raw Event: {json.dumps(event, default=str)}")
    return check_completion(
        event,
        lambda name, **kwargs: boto3.client(name, **kwargs),
        settings.region,
        default_max=settings.max_poll_iterations,
    )
