import json

import pytest

from draco.errors import UnrecognizedInput
from draco.models.events import EventType, SnapshotType
from draco.normalizer import normalize, parse_saga_message
from tests.fixtures.event_builders import (
    SOURCE_ARN,
    SOURCE_ID,
    ebs_created_event,
    rds_notification,
    saga_envelope,
    saga_event,
    sns_envelope,
)


def test_rds_instance_snapshot_notification() -> None:
    """
    Given: RDS-EVENT-0091 자동 스냅샷 생성 알림(SNS)
    When: 정규화하면
    Then: snapshot-created 이벤트와 토픽 ARN에서 유도한 스냅샷 ARN을 얻어야 함
    """
    event = normalize(rds_notification("0091"))

    assert event.event_type is EventType.SNAPSHOT_CREATED
    assert event.snapshot_type is SnapshotType.DATABASE_INSTANCE
    assert event.source_id == SOURCE_ID
    assert event.source_arn == SOURCE_ARN
    assert event.prod_acct == "111111111111"
    assert event.region == "us-east-1"
    assert event.native_event_id == "RDS-EVENT-0091"


@pytest.mark.parametrize("number", ["0169", "0075"])
def test_rds_cluster_snapshot_notification(number: str) -> None:
    event = normalize(rds_notification(number, "ledger-2024-03-01"))

    assert event.snapshot_type is SnapshotType.DATABASE_CLUSTER
    assert event.source_arn == "arn:aws:rds:us-east-1:111111111111:cluster-snapshot:ledger-2024-03-01"


def test_other_rds_events_are_unhandled() -> None:
    event = normalize(rds_notification("0040"))

    assert event.event_type is EventType.UNHANDLED
    assert event.native_event_id == "RDS-EVENT-0040"


def test_rds_subscription_confirmation_is_unhandled() -> None:
    envelope = sns_envelope("RDS Notification Message", "This is a notification to confirm the subscription")

    event = normalize(envelope)

    assert event.event_type is EventType.UNHANDLED
    assert event.native_event_id == "rds-startup"


def test_rds_event_id_without_number_is_rejected() -> None:
    message = json.dumps({"Event ID": "http://docs/#RDS-EVENT-X", "Source ID": "a"})
    with pytest.raises(UnrecognizedInput):
        normalize(sns_envelope("RDS Notification Message", message))


def test_saga_message_rederives_source_id() -> None:
    """
    Given: SourceId 가 SourceArn 과 불일치하는 DRACO Event 메시지
    When: 정규화하면
    Then: SourceId 는 SourceArn 에서 다시 계산되어야 함
    """
    body = saga_event(EventType.COPY_REQUEST).to_message()
    body["SourceId"] = "stale"

    event = normalize(saga_envelope(body))

    assert event.event_type is EventType.COPY_REQUEST
    assert event.source_id == SOURCE_ID
    assert event.tag_list[0].key == "Draco_Lifecycle"


def test_saga_message_with_unknown_event_type() -> None:
    event = parse_saga_message(json.dumps({"EventType": "snapshot-exploded"}))

    assert event.event_type is EventType.UNHANDLED
    assert event.native_event_id == "snapshot-exploded"


@pytest.mark.parametrize("message", ["not json", "[1, 2]", json.dumps({"SnapshotType": "RDS"})])
def test_invalid_saga_messages_are_rejected(message: str) -> None:
    with pytest.raises(UnrecognizedInput):
        normalize(sns_envelope("DRACO Event", message))


def test_ebs_snapshot_created_eventbridge() -> None:
    """
    Given: EventBridge aws.ec2 createSnapshot 성공 이벤트
    When: 정규화하면
    Then: EBS snapshot-created 이벤트(볼륨 id, 종료 시각 포함)를 얻어야 함
    """
    event = normalize(ebs_created_event())

    assert event.event_type is EventType.SNAPSHOT_CREATED
    assert event.snapshot_type is SnapshotType.VOLUME
    assert event.source_id == "snap-01234567890abcdef"
    assert event.source_arn == "arn:aws:ec2:us-east-1:111111111111:snapshot/snap-01234567890abcdef"
    assert event.source_name == "vol-0abc"
    assert event.end_time == "2024-03-01T05:10:00.000Z"


def test_failed_ebs_snapshot_is_unhandled() -> None:
    event = normalize(ebs_created_event(result="failed"))

    assert event.event_type is EventType.UNHANDLED
    assert event.native_event_id == "aws.ec2.createSnapshot"


@pytest.mark.parametrize(
    "envelope",
    [
        None,
        "text",
        {},
        {"version": "1"},
        {"Records": []},
        {"Records": [{"EventSource": "aws:sqs"}]},
        {"version": "0", "source": "aws.s3", "detail": {}},
    ],
)
def test_unrecognized_envelopes(envelope) -> None:
    with pytest.raises(UnrecognizedInput):
        normalize(envelope)


def test_consumer_side_accepts_saga_messages_only() -> None:
    with pytest.raises(UnrecognizedInput):
        normalize(rds_notification("0091"), allow_native=False)
    with pytest.raises(UnrecognizedInput):
        normalize(ebs_created_event(), allow_native=False)

    event = normalize(saga_envelope(saga_event(EventType.COPY_REQUEST)), allow_native=False)
    assert event.event_type is EventType.COPY_REQUEST
