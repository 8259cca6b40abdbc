"""Consumer Lambda (DR account).

Triggered by ``DRACO Event`` SNS messages on the DR topic, published by the
producer and by the consumer's own copy-wait state machine.

Environment
- DR_ACCT, PRODUCER_TOPIC_ARN, STATE_MACHINE_ARN, KEY_ARN (optional)
- TAG_KEY / TAG_VALUE, KEY_STORE (alias|s3), KEY_BUCKET, PRODUCER_ROLE_NAME
- DRY_RUN, DEBUG, ENVIRONMENT
"""

from __future__ import annotations

import json
from typing import Any, Dict

import boto3

from draco.consumer import Consumer
from draco.models.settings import DracoSettings
from draco.normalizer import normalize
from draco.utils.logger import configure_debug, extract_correlation_id, get_logger


def main(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    corr_id = extract_correlation_id(event, context)
    log = get_logger(__name__, correlation_id=corr_id)
    try:
        settings = DracoSettings.load()
        configure_debug(settings.debug)
        log.debug(f"Incoming Event: {json.dumps(event, default=str)}")

        normalized = normalize(event, allow_native=False)
        log.debug(f"Normalized Event: {json.dumps(normalized.to_message())}")

        consumer = Consumer(
            settings,
            lambda name, **kwargs: boto3.client(name, **kwargs),
            request_id=getattr(context, "aws_request_id", None),
        )
        return consumer.handle(normalized).to_response()

    except ValueError as e:
        log.warning(f"Rejected event: {str(e)}")
        return {"statusCode": 400, "body": {"error": str(e), "message": "Unrecognized or invalid event"}}
    except Exception as e:
        log.exception(f"Consumer failed: {str(e)}")
        log.error(f"Raw Event: {json.dumps(event, default=str)}")
        return {"statusCode": 500, "body": {"error": str(e), "message": "Failed to process event"}}
