"""SNS publisher for saga messages."""

from __future__ import annotations

import json
from typing import Any

from draco.errors import ConfigurationError
from draco.models.events import Event
from draco.utils.logger import get_logger

logger = get_logger(__name__)

SAGA_SUBJECT = "DRACO Event"


class SagaPublisher:
    def __init__(self, sns: Any, topic_arn: str) -> None:
        if not topic_arn:
            raise ConfigurationError("Saga topic arn is not configured")
        self.sns = sns
        self.topic_arn = topic_arn

    def publish(self, event: Event) -> str:
        message = event.to_message()
        resp = self.sns.publish(
            TopicArn=self.topic_arn,
            Subject=SAGA_SUBJECT,
            Message=json.dumps(message),
        )
        logger.info(
            f"Published {event.event_type.value} to {self.topic_arn}",
            extra={"event_type": event.event_type.value, "source_arn": event.source_arn},
        )
        logger.debug(f"Published message: {json.dumps(message)}")
        return str(resp.get("MessageId", ""))
