"""Producer Lambda (production account).

Triggers
- SNS ``RDS Notification Message`` from the RDS event subscription
  (RDS-EVENT-0091/0042 instance, RDS-EVENT-0169/0075 cluster snapshots)
- EventBridge ``aws.ec2`` ``createSnapshot`` results
- SNS ``DRACO Event`` saga messages from the DR account and from the
  producer's own copy-wait state machine

Environment
- DR_ACCT, DR_TOPIC_ARN, STATE_MACHINE_ARN (legacy SM_COPY_ARN)
- TRANSIT_KEY_ARN (optional), DRY_RUN, DEBUG, ENVIRONMENT

Output
{"statusCode": 200, "body": {"state": "CopyRequested", "emitted": {...}}}
"""

from __future__ import annotations

import json
from typing import Any, Dict

import boto3

from draco.models.settings import DracoSettings
from draco.normalizer import normalize
from draco.producer import Producer
from draco.utils.logger import configure_debug, extract_correlation_id, get_logger


def main(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    corr_id = extract_correlation_id(event, context)
    log = get_logger(__name__, correlation_id=corr_id)
    try:
        settings = DracoSettings.load()
        configure_debug(settings.debug)
        log.debug(f"Incoming Event: {json.dumps(event, default=str)}")

        normalized = normalize(event)
        log.debug(f"Normalized Event: {json.dumps(normalized.to_message())}")

        producer = Producer(
            settings,
            lambda name, **kwargs: boto3.client(name, **kwargs),
            request_id=getattr(context, "aws_request_id", None),
        )
        return producer.handle(normalized).to_response()

    except ValueError as e:
        log.warning(f"Rejected event: {str(e)}")
        return {"statusCode": 400, "body": {"error": str(e), "message": "Unrecognized or invalid event"}}
    except Exception as e:
        log.exception(f"Producer failed: {str(e)}")
        log.error(f"Raw Event: {json.dumps(event, default=str)}")
        return {"statusCode": 500, "body": {"error": str(e), "message": "Failed to process event"}}
