"""Typed event models for the DRACO saga using Pydantic v2.

The wire format is the JSON object carried in the SNS message body with
PascalCase keys (``EventType``, ``SnapshotType``, ``SourceArn`` ...). Models
are frozen: a handler never mutates an inbound event, it derives a new one
with :meth:`Event.evolve` before publishing.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SnapshotType(str, Enum):
    DATABASE_INSTANCE = "RDS"
    DATABASE_CLUSTER = "RDS Cluster"
    VOLUME = "EBS"


class EventType(str, Enum):
    SNAPSHOT_CREATED = "snapshot-created"
    COPY_REQUEST = "snapshot-copy-request"
    COPY_INITIATE = "snapshot-copy-initiate"
    COPY_COMPLETED = "snapshot-copy-completed"
    COPY_SHARED = "snapshot-copy-shared"
    DELETE_SHARED = "snapshot-delete-shared"
    NO_COPY = "snapshot-no-copy"
    UNHANDLED = "unhandled"


class SnapshotStatus(str, Enum):
    AVAILABLE = "available"
    PENDING = "pending"
    FAILED = "failed"


class Tag(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str = Field(alias="Key")
    value: str = Field(default="", alias="Value")

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, v: Any) -> str:  # type: ignore[override]
        return "" if v is None else str(v)

    def to_dict(self) -> Dict[str, str]:
        return {"Key": self.key, "Value": self.value}


class Event(BaseModel):
    """Canonical saga message."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    event_type: EventType = Field(alias="EventType")
    snapshot_type: Optional[SnapshotType] = Field(default=None, alias="SnapshotType")
    source_id: Optional[str] = Field(default=None, alias="SourceId")
    source_arn: Optional[str] = Field(default=None, alias="SourceArn")
    source_name: Optional[str] = Field(default=None, alias="SourceName")
    encrypted: bool = Field(default=False, alias="Encrypted")
    source_kms_id: Optional[str] = Field(default=None, alias="SourceKmsId")
    transit_id: Optional[str] = Field(default=None, alias="TransitId")
    transit_arn: Optional[str] = Field(default=None, alias="TransitArn")
    target_arn: Optional[str] = Field(default=None, alias="TargetArn")
    target_kms_id: Optional[str] = Field(default=None, alias="TargetKmsId")
    tag_list: Tuple[Tag, ...] = Field(default=(), alias="TagList")
    error: Optional[str] = Field(default=None, alias="Error")
    reason: Optional[str] = Field(default=None, alias="Reason")
    prod_acct: Optional[str] = Field(default=None, alias="ProdAcct")
    region: Optional[str] = Field(default=None, alias="Region")
    end_time: Optional[str] = Field(default=None, alias="EndTime")
    native_event_id: Optional[str] = Field(default=None, alias="NativeEventId")

    @model_validator(mode="before")
    @classmethod
    def _unknown_event_type(cls, data: Any) -> Any:
        # Unknown tags are kept as "unhandled" so the handler can report them.
        if not isinstance(data, dict):
            return data
        raw = data.get("EventType", data.get("event_type"))
        if isinstance(raw, EventType):
            return data
        known = {member.value for member in EventType}
        if isinstance(raw, str) and raw not in known:
            data = dict(data)
            data.pop("event_type", None)
            data["EventType"] = EventType.UNHANDLED
            data.setdefault("NativeEventId", str(raw))
        return data

    @field_validator("tag_list", mode="before")
    @classmethod
    def _unique_keys(cls, v: Any) -> Tuple[Any, ...]:  # type: ignore[override]
        if v is None:
            return ()
        if not isinstance(v, (list, tuple)):
            raise ValueError("TagList must be a list of {Key, Value} objects")
        seen: set[str] = set()
        result = []
        for item in v:
            if not isinstance(item, (Tag, dict)):
                raise ValueError("TagList entries must be {Key, Value} objects")
            key = item.key if isinstance(item, Tag) else item.get("Key", item.get("key"))
            if key is None or key in seen:
                continue
            seen.add(key)
            result.append(item)
        return tuple(result)

    def evolve(self, **changes: Any) -> "Event":
        """Return a new, validated event with ``changes`` applied (field names)."""
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    def to_message(self) -> Dict[str, Any]:
        """Serialise to the PascalCase wire format, omitting unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SnapshotRef(BaseModel):
    """A concrete snapshot as seen by the provider."""

    model_config = ConfigDict(frozen=True)

    kind: SnapshotType
    id: str
    arn: Optional[str] = None
    created: datetime
    status: SnapshotStatus = SnapshotStatus.AVAILABLE
    source_name: Optional[str] = None


class PollIterator(BaseModel):
    count: int = 0
    maxcount: int = Field(default=120, ge=1)


class PollRequest(BaseModel):
    """Input of the completion poller (one Step Functions iteration)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    snapshot_type: SnapshotType = Field(alias="SnapshotType")
    source_arn: str = Field(alias="SourceArn", min_length=1)
    iterator: PollIterator = Field(default_factory=PollIterator)


class PollIteratorState(PollIterator):
    exhausted: bool = False


class PollResult(BaseModel):
    """Output of the completion poller, read by the wait state machine's Choice."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(alias="statusCode")
    iterator: PollIteratorState
    status: Optional[SnapshotStatus] = None
    info: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        # The Choice state compares status even when it is absent
        data.setdefault("status", None)
        return data
