from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from botocore.exceptions import ClientError


def client_error(code: str, operation: str = "Operation", message: str = "stubbed failure") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class _Paginator:
    def __init__(self, pages: List[Dict[str, Any]], error: Optional[str] = None) -> None:
        self.pages = pages
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def paginate(self, **kwargs: Any) -> Iterable[Dict[str, Any]]:
        self.calls.append(kwargs)
        if self.error:
            raise client_error(self.error, "Paginate")
        return iter(self.pages)


def _pages(key: str, items: List[Dict[str, Any]], page_size: int = 5) -> List[Dict[str, Any]]:
    if not items:
        return [{key: []}]
    return [{key: items[i : i + page_size]} for i in range(0, len(items), page_size)]


class RdsStub:
    """RDS instance and cluster snapshots keyed by identifier."""

    def __init__(self, *, account: str = "222222222222", region: str = "us-east-1") -> None:
        self.account = account
        self.region = region
        self.snapshots: Dict[str, Dict[str, Any]] = {}
        self.cluster_snapshots: Dict[str, Dict[str, Any]] = {}
        self.tags: Dict[str, List[Dict[str, str]]] = {}
        self.copy_calls: List[Dict[str, Any]] = []
        self.copy_errors: List[str] = []
        self.share_calls: List[Dict[str, Any]] = []
        self.share_error: Optional[str] = None
        self.delete_calls: List[str] = []
        self.delete_errors: Dict[str, str] = {}
        self.describe_error: Optional[str] = None
        self.paginate_error: Optional[str] = None
        self.paginators: Dict[str, _Paginator] = {}

    # describe
    @staticmethod
    def _lookup(store: Dict[str, Dict[str, Any]], identifier: str, arn_key: str) -> Optional[Dict[str, Any]]:
        if identifier in store:
            return store[identifier]
        for snap in store.values():
            if snap.get(arn_key) == identifier:
                return snap
        return None

    def describe_db_snapshots(self, **kwargs: Any) -> Dict[str, Any]:
        if self.describe_error:
            raise client_error(self.describe_error, "DescribeDBSnapshots")
        snap = self._lookup(self.snapshots, kwargs["DBSnapshotIdentifier"], "DBSnapshotArn")
        if snap is None:
            raise client_error("DBSnapshotNotFound", "DescribeDBSnapshots")
        return {"DBSnapshots": [snap]}

    def describe_db_cluster_snapshots(self, **kwargs: Any) -> Dict[str, Any]:
        if self.describe_error:
            raise client_error(self.describe_error, "DescribeDBClusterSnapshots")
        snap = self._lookup(self.cluster_snapshots, kwargs["DBClusterSnapshotIdentifier"], "DBClusterSnapshotArn")
        if snap is None:
            raise client_error("DBClusterSnapshotNotFoundFault", "DescribeDBClusterSnapshots")
        return {"DBClusterSnapshots": [snap]}

    # copy
    def _next_copy_error(self, operation: str) -> None:
        if self.copy_errors:
            raise client_error(self.copy_errors.pop(0), operation)

    def copy_db_snapshot(self, **kwargs: Any) -> Dict[str, Any]:
        self.copy_calls.append(kwargs)
        self._next_copy_error("CopyDBSnapshot")
        target = kwargs["TargetDBSnapshotIdentifier"]
        return {
            "DBSnapshot": {
                "DBSnapshotIdentifier": target,
                "DBSnapshotArn": f"arn:aws:rds:{self.region}:{self.account}:snapshot:{target}",
                "Status": "creating",
            }
        }

    def copy_db_cluster_snapshot(self, **kwargs: Any) -> Dict[str, Any]:
        self.copy_calls.append(kwargs)
        self._next_copy_error("CopyDBClusterSnapshot")
        target = kwargs["TargetDBClusterSnapshotIdentifier"]
        return {
            "DBClusterSnapshot": {
                "DBClusterSnapshotIdentifier": target,
                "DBClusterSnapshotArn": f"arn:aws:rds:{self.region}:{self.account}:cluster-snapshot:{target}",
                "Status": "creating",
            }
        }

    # share
    def modify_db_snapshot_attribute(self, **kwargs: Any) -> Dict[str, Any]:
        self.share_calls.append(kwargs)
        if self.share_error:
            raise client_error(self.share_error, "ModifyDBSnapshotAttribute")
        return {}

    def modify_db_cluster_snapshot_attribute(self, **kwargs: Any) -> Dict[str, Any]:
        self.share_calls.append(kwargs)
        if self.share_error:
            raise client_error(self.share_error, "ModifyDBClusterSnapshotAttribute")
        return {}

    # delete
    def _delete(self, identifier: str, operation: str) -> Dict[str, Any]:
        self.delete_calls.append(identifier)
        if identifier in self.delete_errors:
            raise client_error(self.delete_errors[identifier], operation)
        return {}

    def delete_db_snapshot(self, **kwargs: Any) -> Dict[str, Any]:
        return self._delete(kwargs["DBSnapshotIdentifier"], "DeleteDBSnapshot")

    def delete_db_cluster_snapshot(self, **kwargs: Any) -> Dict[str, Any]:
        return self._delete(kwargs["DBClusterSnapshotIdentifier"], "DeleteDBClusterSnapshot")

    def list_tags_for_resource(self, **kwargs: Any) -> Dict[str, Any]:
        return {"TagList": list(self.tags.get(kwargs["ResourceName"], []))}

    def get_paginator(self, name: str) -> _Paginator:
        if name == "describe_db_snapshots":
            pages = _pages("DBSnapshots", list(self.snapshots.values()))
        elif name == "describe_db_cluster_snapshots":
            pages = _pages("DBClusterSnapshots", list(self.cluster_snapshots.values()))
        else:
            raise AssertionError(f"unexpected paginator {name}")
        paginator = _Paginator(pages, self.paginate_error)
        self.paginators[name] = paginator
        return paginator


class Ec2Stub:
    """EBS snapshots keyed by snapshot id."""

    def __init__(self) -> None:
        self.snapshots: Dict[str, Dict[str, Any]] = {}
        self.copy_calls: List[Dict[str, Any]] = []
        self.copy_errors: List[str] = []
        self.share_calls: List[Dict[str, Any]] = []
        self.delete_calls: List[str] = []
        self.delete_errors: Dict[str, str] = {}
        self.paginators: Dict[str, _Paginator] = {}
        self._counter = 0

    def describe_snapshots(self, **kwargs: Any) -> Dict[str, Any]:
        found = [self.snapshots[i] for i in kwargs.get("SnapshotIds", []) if i in self.snapshots]
        if not found:
            raise client_error("InvalidSnapshot.NotFound", "DescribeSnapshots")
        return {"Snapshots": found}

    def copy_snapshot(self, **kwargs: Any) -> Dict[str, Any]:
        self.copy_calls.append(kwargs)
        if self.copy_errors:
            raise client_error(self.copy_errors.pop(0), "CopySnapshot")
        self._counter += 1
        return {"SnapshotId": f"snap-copy{self._counter:04d}"}

    def modify_snapshot_attribute(self, **kwargs: Any) -> Dict[str, Any]:
        self.share_calls.append(kwargs)
        return {}

    def delete_snapshot(self, **kwargs: Any) -> Dict[str, Any]:
        snapshot_id = kwargs["SnapshotId"]
        self.delete_calls.append(snapshot_id)
        if snapshot_id in self.delete_errors:
            raise client_error(self.delete_errors[snapshot_id], "DeleteSnapshot")
        return {}

    def get_paginator(self, name: str) -> _Paginator:
        if name != "describe_snapshots":
            raise AssertionError(f"unexpected paginator {name}")
        paginator = _Paginator(_pages("Snapshots", list(self.snapshots.values())))
        self.paginators[name] = paginator
        return paginator


class KmsStub:
    def __init__(self) -> None:
        self.aliases: Dict[str, str] = {}
        self.create_calls: List[Dict[str, Any]] = []
        self.rotation_enabled: List[str] = []
        self.create_error: Optional[str] = None
        self._counter = 0

    def describe_key(self, **kwargs: Any) -> Dict[str, Any]:
        key_id = kwargs["KeyId"]
        if key_id.startswith("alias/"):
            if key_id not in self.aliases:
                raise client_error("NotFoundException", "DescribeKey", f"Alias {key_id} is not found.")
            key_id = self.aliases[key_id]
        return {"KeyMetadata": {"KeyId": key_id, "Arn": f"arn:aws:kms:us-east-1:222222222222:key/{key_id}"}}

    def create_key(self, **kwargs: Any) -> Dict[str, Any]:
        self.create_calls.append(kwargs)
        if self.create_error:
            raise client_error(self.create_error, "CreateKey")
        self._counter += 1
        key_id = f"key-{self._counter}"
        return {"KeyMetadata": {"KeyId": key_id}}

    def enable_key_rotation(self, **kwargs: Any) -> Dict[str, Any]:
        self.rotation_enabled.append(kwargs["KeyId"])
        return {}

    def create_alias(self, **kwargs: Any) -> Dict[str, Any]:
        self.aliases[kwargs["AliasName"]] = kwargs["TargetKeyId"]
        return {}


class _Body:
    def __init__(self, data: bytes) -> None:
        self._data = data

    def read(self) -> bytes:
        return self._data


class S3Stub:
    def __init__(self) -> None:
        self.objects: Dict[str, bytes] = {}
        self.put_calls: List[Dict[str, Any]] = []

    def get_object(self, **kwargs: Any) -> Dict[str, Any]:
        key = f"{kwargs['Bucket']}/{kwargs['Key']}"
        if key not in self.objects:
            raise client_error("NoSuchKey", "GetObject", "The specified key does not exist.")
        return {"Body": _Body(self.objects[key])}

    def put_object(self, **kwargs: Any) -> Dict[str, Any]:
        self.put_calls.append(kwargs)
        self.objects[f"{kwargs['Bucket']}/{kwargs['Key']}"] = kwargs["Body"]
        return {"ETag": "stub"}


class SnsStub:
    def __init__(self) -> None:
        self.published: List[Dict[str, Any]] = []

    def publish(self, **kwargs: Any) -> Dict[str, Any]:
        self.published.append(kwargs)
        return {"MessageId": f"mid-{len(self.published)}"}


class StepFunctionsStub:
    def __init__(self) -> None:
        self.executions: List[Dict[str, Any]] = []
        self.start_error: Optional[str] = None

    def start_execution(self, **kwargs: Any) -> Dict[str, Any]:
        if self.start_error:
            raise client_error(self.start_error, "StartExecution")
        self.executions.append(kwargs)
        return {"executionArn": f"arn:aws:states:us-east-1:111111111111:execution:stub:{len(self.executions)}"}


class BotoStub:
    def __init__(
        self,
        *,
        rds: Optional[Any] = None,
        ec2: Optional[Any] = None,
        kms: Optional[Any] = None,
        s3: Optional[Any] = None,
        sns: Optional[Any] = None,
        stepfunctions: Optional[Any] = None,
    ) -> None:
        self._clients = {
            "rds": rds,
            "ec2": ec2,
            "kms": kms,
            "s3": s3,
            "sns": sns,
            "stepfunctions": stepfunctions,
        }
        self.requested: List[Dict[str, Any]] = []

    def client(self, name: str, **kwargs: Any) -> Any:
        self.requested.append({"name": name, **kwargs})
        found = self._clients.get(name)
        if found is not None:
            return found

        # Provide minimal stub for unknown client names
        class _Stub:
            pass

        return _Stub()
