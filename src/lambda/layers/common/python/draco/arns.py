"""ARN parsing and construction helpers for RDS and EC2 snapshots."""

from __future__ import annotations

from typing import Optional

from draco.errors import ValidationError


def resource_id(arn: str) -> str:
    """Return the snapshot identifier embedded in an RDS or EC2 snapshot arn.

    RDS automated snapshot ids carry an ``rds:`` prefix, so everything after the
    sixth ``:`` is the id. EC2 ids follow the last ``/``.
    """
    if not isinstance(arn, str) or not arn.startswith("arn:"):
        raise ValidationError(f"Not an arn: {arn!r}")
    parts = arn.split(":", 6)
    if len(parts) < 6:
        raise ValidationError(f"Malformed arn: {arn}")
    if parts[2] == "ec2":
        tail = parts[5] if len(parts) == 6 else ":".join(parts[5:])
        if "/" not in tail:
            raise ValidationError(f"Malformed EC2 arn: {arn}")
        return tail.rsplit("/", 1)[1]
    if len(parts) < 7 or not parts[6]:
        raise ValidationError(f"Malformed arn: {arn}")
    return parts[6]


def region_of(arn: str) -> Optional[str]:
    """Region of an arn.

    EventBridge EBS notifications place the region in the account slot
    (``arn:aws:ec2::us-east-1:snapshot/...``); both layouts are accepted.
    """
    parts = arn.split(":")
    if len(parts) < 5:
        return None
    if parts[3]:
        return parts[3]
    return parts[4] or None


def account_of(arn: Optional[str]) -> Optional[str]:
    if not arn:
        return None
    parts = arn.split(":")
    if len(parts) < 5:
        return None
    candidate = parts[4]
    return candidate if candidate.isdigit() else None


def rds_snapshot_arn(region: str, account: str, snapshot_id: str, *, cluster: bool = False) -> str:
    kind = "cluster-snapshot" if cluster else "snapshot"
    return f"arn:aws:rds:{region}:{account}:{kind}:{snapshot_id}"


def ec2_snapshot_arn(region: str, snapshot_id: str, account: str = "") -> str:
    return f"arn:aws:ec2:{region}:{account}:snapshot/{snapshot_id}"


def volume_id(arn_or_id: str) -> str:
    """``arn:aws:ec2::us-east-1:volume/vol-1`` -> ``vol-1``; plain ids pass through."""
    if ":volume/" in arn_or_id:
        return arn_or_id.split(":volume/", 1)[1]
    return arn_or_id
