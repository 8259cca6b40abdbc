"""Snapshot service capability, one implementation per snapshot kind.

The saga, the completion poller and the lifecycle manager talk to a
``SnapshotService`` obtained from :func:`service_for`; none of them branch on the
snapshot kind themselves.

Example
-------

service = service_for(SnapshotType.DATABASE_INSTANCE, boto3.client, "us-east-1")
raw = service.describe("rds:orders-2024-03-01-05-10")
service.status_of(raw)  # SnapshotStatus.AVAILABLE
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from botocore.exceptions import BotoCoreError, ClientError

from draco.arns import ec2_snapshot_arn, resource_id, volume_id
from draco.errors import SnapshotNotFound, UnsupportedSnapshotType
from draco.models.events import SnapshotRef, SnapshotStatus, SnapshotType, Tag
from draco.tags import to_wire, user_tags
from draco.utils.logger import get_logger

logger = get_logger(__name__)

ClientFactory = Callable[..., Any]

TRANSIT_SUFFIX = "-dr"
DR_DESCRIPTION_PREFIX = "Draco snapshot of "


def transit_id_for(source_id: str) -> str:
    """``rds:orders-2024-03-01`` -> ``orders-2024-03-01-dr``."""
    base = source_id[4:] if source_id.startswith("rds:") else source_id
    return f"{base}{TRANSIT_SUFFIX}"


def dr_id_for(transit_id: str) -> str:
    if transit_id.endswith(TRANSIT_SUFFIX):
        return transit_id[: -len(TRANSIT_SUFFIX)]
    return transit_id


def error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


# Failures of a single provider call; caught at the saga step that issued it
PROVIDER_ERRORS = (ClientError, BotoCoreError)


def failure_text(exc: BaseException) -> str:
    if isinstance(exc, ClientError):
        err = exc.response.get("Error", {})
        return f"{err.get('Code', 'ClientError')}: {err.get('Message', str(exc))}"
    return f"{type(exc).__name__}: {exc}"


@dataclass(frozen=True)
class SnapshotInfo:
    """Owner and encryption details read from a describe call."""

    source_name: Optional[str]
    kms_key_id: Optional[str]

    @property
    def encrypted(self) -> bool:
        return self.kms_key_id is not None


@dataclass(frozen=True)
class CopyRequest:
    source: str
    target_id: Optional[str] = None
    kms_key_id: Optional[str] = None
    tags: Sequence[Tag] = field(default_factory=tuple)
    copy_tags: bool = False
    description: Optional[str] = None
    region: Optional[str] = None


@dataclass(frozen=True)
class CopyResult:
    id: str
    arn: str


class SnapshotService:
    """Common surface of the per-kind snapshot services."""

    kind: SnapshotType
    not_found_codes: Tuple[str, ...] = ()

    def __init__(self, client: Any, region: str) -> None:
        self.client = client
        self.region = region

    def describe(self, identifier: str) -> Dict[str, Any]:
        try:
            snapshots = self._describe(identifier)
        except ClientError as exc:
            code = error_code(exc)
            if code in self.not_found_codes:
                raise SnapshotNotFound(identifier, code) from exc
            raise
        if not snapshots:
            raise SnapshotNotFound(identifier)
        return snapshots[0]

    def info(self, raw: Dict[str, Any]) -> SnapshotInfo:
        raise NotImplementedError

    def status_of(self, raw: Dict[str, Any]) -> SnapshotStatus:
        raise NotImplementedError

    def copy(self, request: CopyRequest) -> CopyResult:
        raise NotImplementedError

    def share(self, snapshot_id: str, account: str) -> None:
        raise NotImplementedError

    def delete(self, snapshot_id: str) -> None:
        raise NotImplementedError

    def list_tags(self, arn_or_id: str) -> List[Tag]:
        raise NotImplementedError

    def list_owned(self, owner: Optional[str] = None) -> Iterator[SnapshotRef]:
        raise NotImplementedError

    def _describe(self, identifier: str) -> List[Dict[str, Any]]:
        raise NotImplementedError


def _rds_status(raw_status: Optional[str]) -> SnapshotStatus:
    status = str(raw_status or "").lower()
    if status == "available":
        return SnapshotStatus.AVAILABLE
    if status in ("failed", "error") or status.startswith("incompatible"):
        return SnapshotStatus.FAILED
    return SnapshotStatus.PENDING


class DbInstanceSnapshots(SnapshotService):
    kind = SnapshotType.DATABASE_INSTANCE
    not_found_codes = ("DBSnapshotNotFound", "DBSnapshotNotFoundFault")

    def _describe(self, identifier: str) -> List[Dict[str, Any]]:
        # DBSnapshotIdentifier also accepts a full snapshot arn
        resp = self.client.describe_db_snapshots(DBSnapshotIdentifier=identifier)
        return list(resp.get("DBSnapshots", []))

    def info(self, raw: Dict[str, Any]) -> SnapshotInfo:
        kms = raw.get("KmsKeyId") if raw.get("Encrypted") else None
        return SnapshotInfo(source_name=raw.get("DBInstanceIdentifier"), kms_key_id=kms)

    def status_of(self, raw: Dict[str, Any]) -> SnapshotStatus:
        return _rds_status(raw.get("Status"))

    def copy(self, request: CopyRequest) -> CopyResult:
        params: Dict[str, Any] = {
            "SourceDBSnapshotIdentifier": request.source,
            "TargetDBSnapshotIdentifier": request.target_id,
            "CopyTags": request.copy_tags,
        }
        if request.kms_key_id:
            params["KmsKeyId"] = request.kms_key_id
        if request.tags:
            params["Tags"] = to_wire(user_tags(request.tags))
        if request.region and request.region != self.region:
            params["SourceRegion"] = request.region
        resp = self.client.copy_db_snapshot(**params)
        snap = resp["DBSnapshot"]
        return CopyResult(id=snap["DBSnapshotIdentifier"], arn=snap["DBSnapshotArn"])

    def share(self, snapshot_id: str, account: str) -> None:
        self.client.modify_db_snapshot_attribute(
            DBSnapshotIdentifier=snapshot_id,
            AttributeName="restore",
            ValuesToAdd=[account],
        )

    def delete(self, snapshot_id: str) -> None:
        self.client.delete_db_snapshot(DBSnapshotIdentifier=snapshot_id)

    def list_tags(self, arn_or_id: str) -> List[Tag]:
        resp = self.client.list_tags_for_resource(ResourceName=arn_or_id)
        return [Tag.model_validate(t) for t in resp.get("TagList", [])]

    def list_owned(self, owner: Optional[str] = None) -> Iterator[SnapshotRef]:
        paginator = self.client.get_paginator("describe_db_snapshots")
        for page in paginator.paginate(SnapshotType="manual"):
            for snap in page.get("DBSnapshots", []):
                status = self.status_of(snap)
                if status is not SnapshotStatus.AVAILABLE:
                    continue
                yield SnapshotRef(
                    kind=self.kind,
                    id=snap["DBSnapshotIdentifier"],
                    arn=snap.get("DBSnapshotArn"),
                    created=snap["SnapshotCreateTime"],
                    status=status,
                    source_name=snap.get("DBInstanceIdentifier"),
                )


class DbClusterSnapshots(SnapshotService):
    kind = SnapshotType.DATABASE_CLUSTER
    not_found_codes = ("DBClusterSnapshotNotFoundFault", "DBClusterSnapshotNotFound")

    def _describe(self, identifier: str) -> List[Dict[str, Any]]:
        resp = self.client.describe_db_cluster_snapshots(DBClusterSnapshotIdentifier=identifier)
        return list(resp.get("DBClusterSnapshots", []))

    def info(self, raw: Dict[str, Any]) -> SnapshotInfo:
        kms = raw.get("KmsKeyId") if raw.get("StorageEncrypted") else None
        return SnapshotInfo(source_name=raw.get("DBClusterIdentifier"), kms_key_id=kms)

    def status_of(self, raw: Dict[str, Any]) -> SnapshotStatus:
        return _rds_status(raw.get("Status"))

    def copy(self, request: CopyRequest) -> CopyResult:
        params: Dict[str, Any] = {
            "SourceDBClusterSnapshotIdentifier": request.source,
            "TargetDBClusterSnapshotIdentifier": request.target_id,
            "CopyTags": request.copy_tags,
        }
        if request.kms_key_id:
            params["KmsKeyId"] = request.kms_key_id
        if request.tags:
            params["Tags"] = to_wire(user_tags(request.tags))
        resp = self.client.copy_db_cluster_snapshot(**params)
        snap = resp["DBClusterSnapshot"]
        return CopyResult(id=snap["DBClusterSnapshotIdentifier"], arn=snap["DBClusterSnapshotArn"])

    def share(self, snapshot_id: str, account: str) -> None:
        self.client.modify_db_cluster_snapshot_attribute(
            DBClusterSnapshotIdentifier=snapshot_id,
            AttributeName="restore",
            ValuesToAdd=[account],
        )

    def delete(self, snapshot_id: str) -> None:
        self.client.delete_db_cluster_snapshot(DBClusterSnapshotIdentifier=snapshot_id)

    def list_tags(self, arn_or_id: str) -> List[Tag]:
        resp = self.client.list_tags_for_resource(ResourceName=arn_or_id)
        return [Tag.model_validate(t) for t in resp.get("TagList", [])]

    def list_owned(self, owner: Optional[str] = None) -> Iterator[SnapshotRef]:
        paginator = self.client.get_paginator("describe_db_cluster_snapshots")
        for page in paginator.paginate(SnapshotType="manual"):
            for snap in page.get("DBClusterSnapshots", []):
                status = self.status_of(snap)
                if status is not SnapshotStatus.AVAILABLE:
                    continue
                yield SnapshotRef(
                    kind=self.kind,
                    id=snap["DBClusterSnapshotIdentifier"],
                    arn=snap.get("DBClusterSnapshotArn"),
                    created=snap["SnapshotCreateTime"],
                    status=status,
                    source_name=snap.get("DBClusterIdentifier"),
                )


class VolumeSnapshots(SnapshotService):
    kind = SnapshotType.VOLUME
    not_found_codes = ("InvalidSnapshot.NotFound",)

    @staticmethod
    def _snapshot_id(arn_or_id: str) -> str:
        return resource_id(arn_or_id) if arn_or_id.startswith("arn:") else arn_or_id

    def _describe(self, identifier: str) -> List[Dict[str, Any]]:
        resp = self.client.describe_snapshots(SnapshotIds=[self._snapshot_id(identifier)])
        return list(resp.get("Snapshots", []))

    def info(self, raw: Dict[str, Any]) -> SnapshotInfo:
        kms = raw.get("KmsKeyId") if raw.get("Encrypted") else None
        return SnapshotInfo(source_name=raw.get("VolumeId"), kms_key_id=kms)

    def status_of(self, raw: Dict[str, Any]) -> SnapshotStatus:
        state = str(raw.get("State") or "").lower()
        if state == "completed":
            return SnapshotStatus.AVAILABLE
        if state in ("error", "recoverable"):
            return SnapshotStatus.FAILED
        return SnapshotStatus.PENDING

    def copy(self, request: CopyRequest) -> CopyResult:
        region = request.region or self.region
        params: Dict[str, Any] = {
            "SourceSnapshotId": self._snapshot_id(request.source),
            "SourceRegion": region,
            "DestinationRegion": self.region,
            "Description": request.description or f"Draco copy of {request.source}",
        }
        if request.kms_key_id:
            params["Encrypted"] = True
            params["KmsKeyId"] = request.kms_key_id
        tags = user_tags(request.tags)
        if tags:
            params["TagSpecifications"] = [{"ResourceType": "snapshot", "Tags": to_wire(tags)}]
        resp = self.client.copy_snapshot(**params)
        snapshot_id = resp["SnapshotId"]
        return CopyResult(id=snapshot_id, arn=ec2_snapshot_arn(self.region, snapshot_id))

    def share(self, snapshot_id: str, account: str) -> None:
        self.client.modify_snapshot_attribute(
            Attribute="createVolumePermission",
            OperationType="add",
            SnapshotId=self._snapshot_id(snapshot_id),
            UserIds=[account],
        )

    def delete(self, snapshot_id: str) -> None:
        self.client.delete_snapshot(SnapshotId=self._snapshot_id(snapshot_id))

    def list_tags(self, arn_or_id: str) -> List[Tag]:
        raw = self.describe(arn_or_id)
        return [Tag.model_validate(t) for t in raw.get("Tags", [])]

    def list_owned(self, owner: Optional[str] = None) -> Iterator[SnapshotRef]:
        paginator = self.client.get_paginator("describe_snapshots")
        kwargs: Dict[str, Any] = {"OwnerIds": [owner]} if owner else {"OwnerIds": ["self"]}
        for page in paginator.paginate(**kwargs):
            for snap in page.get("Snapshots", []):
                status = self.status_of(snap)
                if status is not SnapshotStatus.AVAILABLE:
                    continue
                description = str(snap.get("Description") or "")
                # Only DR copies carry "Draco snapshot of ...:volume/<id>"
                if not description.startswith(DR_DESCRIPTION_PREFIX) or ":volume/" not in description:
                    continue
                yield SnapshotRef(
                    kind=self.kind,
                    id=snap["SnapshotId"],
                    arn=ec2_snapshot_arn(self.region, snap["SnapshotId"], str(snap.get("OwnerId") or "")),
                    created=snap["StartTime"],
                    status=status,
                    source_name=volume_id(description),
                )


_SERVICES = {
    SnapshotType.DATABASE_INSTANCE: (DbInstanceSnapshots, "rds"),
    SnapshotType.DATABASE_CLUSTER: (DbClusterSnapshots, "rds"),
    SnapshotType.VOLUME: (VolumeSnapshots, "ec2"),
}


def service_for(
    kind: Union[SnapshotType, str, None],
    clients: ClientFactory,
    region: str,
) -> SnapshotService:
    """Return the snapshot service for ``kind`` built on ``clients(service_name)``."""
    try:
        snapshot_type = SnapshotType(kind)
    except ValueError as exc:
        raise UnsupportedSnapshotType(f"Invalid Snapshot Type: {kind}") from exc
    cls, client_name = _SERVICES[snapshot_type]
    return cls(clients(client_name, region_name=region), region)


class KeyFallbackCopy:
    """Copy with the encryption key, retrying once without it on a parameter fault.

    Aurora refuses to encrypt a copy of an unencrypted cluster snapshot and
    reports it as ``InvalidParameterValue`` or ``InvalidParameterCombination``.
    """

    fallback_codes = ("InvalidParameterValue", "InvalidParameterCombination")

    def __init__(self, service: SnapshotService) -> None:
        self.service = service

    def copy(self, request: CopyRequest) -> CopyResult:
        try:
            return self.service.copy(request)
        except ClientError as exc:
            if not request.kms_key_id or error_code(exc) not in self.fallback_codes:
                raise
            logger.warning(
                f"Copy of {request.source} with key {request.kms_key_id} rejected "
                f"({error_code(exc)}); retrying without key"
            )
            return self.service.copy(replace(request, kms_key_id=None))
