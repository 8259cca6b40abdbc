"""Reusable IAM helper utilities for the DRACO role constructs."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from aws_cdk import aws_iam as iam

from infrastructure.config.types import EnvironmentConfig

RDS_SNAPSHOT_READ_ACTIONS = [
    "rds:DescribeDBSnapshots",
    "rds:DescribeDBClusterSnapshots",
    "rds:ListTagsForResource",
]

RDS_SNAPSHOT_WRITE_ACTIONS = [
    "rds:CopyDBSnapshot",
    "rds:CopyDBClusterSnapshot",
    "rds:DeleteDBSnapshot",
    "rds:DeleteDBClusterSnapshot",
    "rds:AddTagsToResource",
]

EC2_SNAPSHOT_ACTIONS = [
    "ec2:DescribeSnapshots",
    "ec2:CopySnapshot",
    "ec2:DeleteSnapshot",
    "ec2:CreateTags",
]

KMS_USE_ACTIONS = [
    "kms:Encrypt",
    "kms:Decrypt",
    "kms:ReEncrypt*",
    "kms:GenerateDataKey*",
    "kms:DescribeKey",
    "kms:CreateGrant",
    "kms:ListGrants",
    "kms:RevokeGrant",
]


def dedupe(values: Iterable[str]) -> list[str]:
    """Return items without duplicates while preserving order."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        text = str(value or "").strip()
        if not text or text in seen:
            continue
        seen.add(text)
        result.append(text)
    return result


def bucket_arn(bucket_name: str) -> str:
    """Return the ARN for an S3 bucket."""
    bucket = str(bucket_name or "").strip()
    if not bucket:
        raise ValueError("Bucket name must be provided")
    return f"arn:aws:s3:::{bucket}"


def bucket_objects_arn(bucket_name: str, prefix: Optional[str] = None) -> str:
    """Return an object-level ARN for an S3 bucket with an optional prefix."""
    base_arn = bucket_arn(bucket_name)
    if prefix is None or not str(prefix).strip():
        return f"{base_arn}/*"
    normalized = str(prefix).strip().lstrip("/")
    if normalized.endswith("*"):
        return f"{base_arn}/{normalized}"
    return f"{base_arn}/{normalized.rstrip('/')}/*"


def config_string_list(config: EnvironmentConfig, key: str, default: Sequence[str] = ()) -> list[str]:
    """Return normalized list[str] from config or provide default."""
    raw_values = config.get(key)
    items = list(default if raw_values is None else raw_values)  # type: ignore[arg-type]
    normalized: list[str] = []
    for value in items:
        text = str(value or "").strip()
        if not text:
            continue
        normalized.append(text)
    return dedupe(normalized)


def kms_resources(config: EnvironmentConfig, *extra: Optional[str]) -> list[str]:
    """Keys a role may use: every key unless ``kms_key_arns`` pins them, then those plus ``extra``."""
    pinned = config_string_list(config, "kms_key_arns")
    if not pinned:
        return ["*"]
    return dedupe(pinned + [str(arn or "") for arn in extra])


def snapshot_statements(region: str, account: str) -> list[iam.PolicyStatement]:
    """Describe/copy/delete/tag rights over RDS and EBS snapshots in one account."""
    return [
        iam.PolicyStatement(
            effect=iam.Effect.ALLOW,
            actions=RDS_SNAPSHOT_READ_ACTIONS,
            resources=["*"],
        ),
        iam.PolicyStatement(
            effect=iam.Effect.ALLOW,
            actions=RDS_SNAPSHOT_WRITE_ACTIONS,
            resources=[
                f"arn:aws:rds:{region}:{account}:snapshot:*",
                f"arn:aws:rds:{region}:{account}:cluster-snapshot:*",
                # Source side of a cross-account copy
                f"arn:aws:rds:{region}:*:snapshot:*",
                f"arn:aws:rds:{region}:*:cluster-snapshot:*",
            ],
        ),
        iam.PolicyStatement(
            effect=iam.Effect.ALLOW,
            actions=EC2_SNAPSHOT_ACTIONS,
            resources=["*"],
        ),
    ]


def state_machine_arn(region: str, account: str, name: str) -> str:
    return f"arn:aws:states:{region}:{account}:stateMachine:{name}"


def topic_arn(region: str, account: str, name: str) -> str:
    return f"arn:aws:sns:{region}:{account}:{name}"
