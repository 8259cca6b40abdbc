import pytest
from pydantic import ValidationError

from draco.models.events import Event, EventType, PollResult, PollIteratorState, SnapshotStatus, SnapshotType
from tests.fixtures.event_builders import SOURCE_ARN, saga_event


def test_wire_format_is_pascal_case_without_nulls() -> None:
    """
    Given: 일부 선택 필드가 비어있는 사가 이벤트
    When: 메시지로 직렬화하면
    Then: PascalCase 키만 포함되고 None 값은 생략되어야 함
    """
    message = saga_event(EventType.COPY_REQUEST).to_message()

    assert message["EventType"] == "snapshot-copy-request"
    assert message["SnapshotType"] == "RDS"
    assert message["SourceArn"] == SOURCE_ARN
    assert message["TagList"] == [{"Key": "Draco_Lifecycle", "Value": "Standard"}]
    assert "TransitArn" not in message
    assert "Error" not in message


def test_message_round_trip_preserves_fields() -> None:
    event = saga_event(EventType.COPY_SHARED, target_arn="arn:aws:rds:us-east-1:2:snapshot:x")
    assert Event.model_validate(event.to_message()) == event


def test_events_are_frozen_and_evolve_returns_copy() -> None:
    event = saga_event(EventType.COPY_REQUEST)

    with pytest.raises(ValidationError):
        event.reason = "changed"  # type: ignore[misc]

    evolved = event.evolve(event_type=EventType.NO_COPY, reason="Ignored")
    assert evolved.event_type is EventType.NO_COPY
    assert evolved.reason == "Ignored"
    assert event.reason is None


def test_duplicate_tag_keys_keep_first() -> None:
    event = Event.model_validate(
        {
            "EventType": "snapshot-copy-request",
            "TagList": [{"Key": "a", "Value": "1"}, {"Key": "a", "Value": "2"}, {"Key": "b"}],
        }
    )
    assert [(t.key, t.value) for t in event.tag_list] == [("a", "1"), ("b", "")]


def test_tag_list_must_be_a_list() -> None:
    with pytest.raises(ValidationError):
        Event.model_validate({"EventType": "snapshot-created", "TagList": "Draco_Lifecycle=Standard"})


def test_unknown_snapshot_type_is_rejected() -> None:
    with pytest.raises(ValidationError):
        Event.model_validate({"EventType": "snapshot-created", "SnapshotType": "S3"})


def test_snapshot_type_values() -> None:
    assert SnapshotType("RDS Cluster") is SnapshotType.DATABASE_CLUSTER
    assert SnapshotType("EBS") is SnapshotType.VOLUME


def test_poll_result_always_carries_status_key() -> None:
    result = PollResult(status_code=404, iterator=PollIteratorState(count=1, maxcount=3), error="missing")
    assert result.to_dict() == {
        "statusCode": 404,
        "iterator": {"count": 1, "maxcount": 3, "exhausted": False},
        "status": None,
        "error": "missing",
    }

    done = PollResult(status_code=200, iterator=PollIteratorState(count=3, maxcount=3, exhausted=True),
                      status=SnapshotStatus.AVAILABLE, info={})
    assert done.to_dict()["status"] == "available"
