import json
import logging

from draco.utils.logger import _JsonFormatter, configure_debug, extract_correlation_id, get_logger
from tests.fixtures.event_builders import ebs_created_event, rds_notification


def test_extract_correlation_id_from_fields() -> None:
    """
    Given: 서로 다른 필드명에 상관관계 ID가 존재
    When: 상관관계 ID 추출
    Then: 각 필드 값 반환
    """
    assert extract_correlation_id({"correlation_id": "cid-1"}) == "cid-1"
    assert extract_correlation_id({"CorrelationId": "cid-2"}) == "cid-2"
    assert extract_correlation_id({"request_id": "cid-3"}) == "cid-3"


def test_extract_correlation_id_from_envelopes() -> None:
    """
    Given: SNS 레코드와 EventBridge 이벤트
    When: 상관관계 ID 추출
    Then: SNS MessageId / EventBridge id 반환
    """
    assert extract_correlation_id(rds_notification()) == "95df01b4-ee98-5cb9-9903-4c221d41eb5e"
    assert extract_correlation_id(ebs_created_event()) == "01234567-0123-0123-0123-012345678901"


def test_extract_correlation_id_falls_back_to_request_id(lambda_context) -> None:
    assert extract_correlation_id({}, lambda_context) == "req-0001"
    assert extract_correlation_id(None) is None


def test_formatter_emits_saga_fields(monkeypatch) -> None:
    """
    Given: 사가 필드(extra)가 포함된 로그 레코드
    When: JSON 포맷터로 출력
    Then: event_type/saga_state/correlation_id 가 JSON 필드로 포함
    """
    monkeypatch.setenv("ENVIRONMENT", "test")
    record = logging.LogRecord("draco.producer", logging.INFO, __file__, 1, "moved", None, None)
    record.correlation_id = "cid-9"
    record.event_type = "snapshot-copy-request"
    record.saga_state = "CopyRequested"

    payload = json.loads(_JsonFormatter().format(record))

    assert payload["message"] == "moved"
    assert payload["environment"] == "test"
    assert payload["correlation_id"] == "cid-9"
    assert payload["event_type"] == "snapshot-copy-request"
    assert payload["saga_state"] == "CopyRequested"
    assert "snapshot_type" not in payload


def test_get_logger_adapter_has_extras() -> None:
    """
    Given: 상관관계 ID가 설정된 로거
    When: extra 포함 로그 기록
    Then: 예외 없이 처리
    """
    log = get_logger("draco.test_logger", correlation_id="abc")
    assert log.extra["correlation_id"] == "abc"
    log.info("hello", extra={"event_type": "snapshot-created"})


def test_configure_debug_raises_draco_loggers() -> None:
    get_logger("draco.test_debug")
    configure_debug(1)
    assert logging.getLogger("draco.test_debug").level == logging.DEBUG
    configure_debug(0)
    assert logging.getLogger("draco.test_debug").level == logging.INFO
