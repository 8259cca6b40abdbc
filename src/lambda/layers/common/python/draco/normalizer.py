"""Normalise inbound Lambda payloads into a canonical :class:`Event`.

Recognised envelopes
- SNS record with subject ``RDS Notification Message`` (RDS event subscription)
- SNS record with subject ``DRACO Event`` (saga message, JSON body)
- EventBridge ``aws.ec2`` ``createSnapshot`` result (``version == "0"``)

Anything else raises :class:`UnrecognizedInput`.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

from pydantic import ValidationError as ModelValidationError

from draco.arns import account_of, ec2_snapshot_arn, rds_snapshot_arn, region_of, resource_id, volume_id
from draco.errors import UnrecognizedInput, ValidationError
from draco.messaging import SAGA_SUBJECT
from draco.models.events import Event, EventType, SnapshotType

RDS_SUBJECT = "RDS Notification Message"

_INSTANCE_CREATED = {"RDS-EVENT-0091", "RDS-EVENT-0042"}
_CLUSTER_CREATED = {"RDS-EVENT-0169", "RDS-EVENT-0075"}
_EVENT_NUMBER = re.compile(r"[0-9]{4}$")


def normalize(envelope: Any, *, allow_native: bool = True) -> Event:
    """Return the canonical event for ``envelope``.

    ``allow_native=False`` accepts saga messages only (the DR account never
    receives RDS or EventBridge notifications).
    """
    if not isinstance(envelope, dict):
        raise UnrecognizedInput("Unrecognized input format!")

    if "Records" in envelope:
        return _from_sns(envelope, allow_native)

    if not allow_native:
        raise UnrecognizedInput("No records!")
    if envelope.get("version") != "0":
        raise UnrecognizedInput("Unrecognized input format!")
    return _from_eventbridge(envelope)


def _from_sns(envelope: Dict[str, Any], allow_native: bool) -> Event:
    records = envelope.get("Records")
    if not isinstance(records, list) or not records or not isinstance(records[0], dict):
        raise UnrecognizedInput("No records!")
    record = records[0]
    source = record.get("EventSource")
    if source != "aws:sns":
        raise UnrecognizedInput(f"Unhandled source: {source}")

    sns = record.get("Sns") or {}
    subject = sns.get("Subject")
    if subject == SAGA_SUBJECT:
        return parse_saga_message(sns.get("Message"))
    if subject == RDS_SUBJECT and allow_native:
        return _from_rds_notification(str(sns.get("Message") or ""), str(sns.get("TopicArn") or ""))
    raise UnrecognizedInput(f"Unhandled subject: {subject}")


def parse_saga_message(message: Any) -> Event:
    """Decode a ``DRACO Event`` body; ``SourceId`` is re-derived from ``SourceArn``."""
    try:
        payload = json.loads(message) if isinstance(message, (str, bytes)) else message
    except json.JSONDecodeError as exc:
        raise UnrecognizedInput(f"Saga message is not JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise UnrecognizedInput("Saga message must be a JSON object")
    try:
        event = Event.model_validate(payload)
    except ModelValidationError as exc:
        raise UnrecognizedInput(f"Invalid saga message: {exc.errors()[0].get('msg')}") from exc
    if event.source_arn:
        try:
            return event.evolve(source_id=resource_id(event.source_arn))
        except ValidationError as exc:
            raise UnrecognizedInput(str(exc)) from exc
    return event


def _from_rds_notification(message: str, topic_arn: str) -> Event:
    if message.startswith("This"):
        # "This is a notification ..." sent when the event subscription is created
        return Event(event_type=EventType.UNHANDLED, native_event_id="rds-startup", reason=message)

    try:
        body = json.loads(message)
    except json.JSONDecodeError as exc:
        raise UnrecognizedInput(f"RDS notification is not JSON: {exc}") from exc

    event_id = str(body.get("Event ID") or "")
    native = event_id.split("#", 1)[1] if "#" in event_id else event_id
    if not _EVENT_NUMBER.search(native):
        raise UnrecognizedInput(f"Unhandled event type: {native}")

    source_id = body.get("Source ID")
    if native in _INSTANCE_CREATED:
        kind, cluster = SnapshotType.DATABASE_INSTANCE, False
    elif native in _CLUSTER_CREATED:
        kind, cluster = SnapshotType.DATABASE_CLUSTER, True
    else:
        return Event(event_type=EventType.UNHANDLED, native_event_id=native, source_id=source_id)

    if not source_id:
        raise UnrecognizedInput(f"{native} notification without Source ID")
    region, account = region_of(topic_arn), account_of(topic_arn)
    if not region or not account:
        raise UnrecognizedInput(f"Cannot derive arn prefix from topic {topic_arn!r}")
    return Event(
        event_type=EventType.SNAPSHOT_CREATED,
        snapshot_type=kind,
        source_id=source_id,
        source_arn=rds_snapshot_arn(region, account, source_id, cluster=cluster),
        prod_acct=account,
        region=region,
        native_event_id=native,
    )


def _from_eventbridge(envelope: Dict[str, Any]) -> Event:
    source = envelope.get("source")
    detail = envelope.get("detail")
    if source != "aws.ec2" or not isinstance(detail, dict):
        raise UnrecognizedInput(f"Unhandled EventBridge source: {source}")

    native = f"{source}.{detail.get('event')}"
    if detail.get("event") != "createSnapshot" or detail.get("result") != "succeeded":
        return Event(event_type=EventType.UNHANDLED, native_event_id=native, reason=detail.get("result"))

    snapshot_arn = str(detail.get("snapshot_id") or "")
    if ":snapshot/" not in snapshot_arn:
        raise UnrecognizedInput(f"createSnapshot without snapshot arn: {snapshot_arn!r}")
    snapshot_id = snapshot_arn.split(":snapshot/", 1)[1]
    region = region_of(snapshot_arn) or envelope.get("region")
    account: Optional[str] = envelope.get("account")
    source_volume = detail.get("source")

    return Event(
        event_type=EventType.SNAPSHOT_CREATED,
        snapshot_type=SnapshotType.VOLUME,
        source_id=snapshot_id,
        source_arn=ec2_snapshot_arn(str(region), snapshot_id, account or ""),
        source_name=volume_id(source_volume) if source_volume else None,
        prod_acct=account,
        region=region,
        end_time=detail.get("endTime"),
        native_event_id=native,
    )
