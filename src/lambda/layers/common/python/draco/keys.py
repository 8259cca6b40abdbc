"""DR encryption key provisioning.

Every replicated source gets its own customer managed key in the DR account.
The key is looked up by a deterministic name first and only created when the
lookup misses, so repeated copy requests for a source reuse one key.

Two registries are supported:

- ``AliasKeyStore`` (default): KMS alias ``alias/draco/<source>``.
- ``S3KeyStore``: legacy object ``keys/<source>`` in ``draco-<dr>-<region>``
  holding the key id as UTF-8 text.

Concurrent first requests for the same source are not serialised; both may
create a key and the second alias/object write wins or fails.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterable, Optional

from botocore.exceptions import ClientError

from draco.errors import ConfigurationError
from draco.models.events import Tag
from draco.models.settings import DracoSettings
from draco.tags import TagLike, merge_tags, to_kms
from draco.utils.logger import get_logger

logger = get_logger(__name__)

ALIAS_PREFIX = "alias/draco/"
KEY_OBJECT_PREFIX = "keys/"

_ALIAS_UNSAFE = re.compile(r"[^A-Za-z0-9/_-]")


class KeyStore:
    """Registry mapping a source name to its key id."""

    def lookup(self, source_name: str) -> Optional[str]:
        raise NotImplementedError

    def record(self, source_name: str, key_id: str) -> None:
        raise NotImplementedError


class AliasKeyStore(KeyStore):
    def __init__(self, kms: Any) -> None:
        self.kms = kms

    @staticmethod
    def alias_name(source_name: str) -> str:
        return ALIAS_PREFIX + _ALIAS_UNSAFE.sub("-", source_name)

    def lookup(self, source_name: str) -> Optional[str]:
        try:
            resp = self.kms.describe_key(KeyId=self.alias_name(source_name))
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "NotFoundException":
                return None
            raise
        return str(resp["KeyMetadata"]["KeyId"])

    def record(self, source_name: str, key_id: str) -> None:
        self.kms.create_alias(AliasName=self.alias_name(source_name), TargetKeyId=key_id)


class S3KeyStore(KeyStore):
    def __init__(self, s3: Any, bucket: str) -> None:
        self.s3 = s3
        self.bucket = bucket

    @staticmethod
    def object_key(source_name: str) -> str:
        return f"{KEY_OBJECT_PREFIX}{source_name}"

    def lookup(self, source_name: str) -> Optional[str]:
        try:
            resp = self.s3.get_object(Bucket=self.bucket, Key=self.object_key(source_name))
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in {"404", "NoSuchKey", "NotFound"}:
                return None
            raise
        key_id = resp["Body"].read().decode("utf-8").strip()
        return key_id or None

    def record(self, source_name: str, key_id: str) -> None:
        self.s3.put_object(
            Bucket=self.bucket,
            Key=self.object_key(source_name),
            Body=key_id.encode("utf-8"),
            ContentType="text/plain",
        )


def build_key_policy(dr_account: str, producer_account: str, producer_role_name: str) -> Dict[str, Any]:
    producer_role = f"arn:aws:iam::{producer_account}:role/{producer_role_name}"
    return {
        "Version": "2012-10-17",
        "Id": "dr_key_policy",
        "Statement": [
            {
                "Sid": "DR Root account full access",
                "Effect": "Allow",
                "Principal": {"AWS": f"arn:aws:iam::{dr_account}:root"},
                "Action": "kms:*",
                "Resource": "*",
            },
            {
                "Sid": "Allow Producer to encrypt with the key",
                "Effect": "Allow",
                "Principal": {"AWS": producer_role},
                "Action": [
                    "kms:Encrypt",
                    "kms:ReEncrypt*",
                    "kms:GenerateDataKey*",
                    "kms:DescribeKey",
                ],
                "Resource": "*",
            },
            {
                "Sid": "Allow Producer to use this key with RDS and EC2",
                "Effect": "Allow",
                "Principal": {"AWS": producer_role},
                "Action": ["kms:CreateGrant", "kms:ListGrants", "kms:RevokeGrant"],
                "Resource": "*",
                "Condition": {"Bool": {"kms:GrantIsForAWSResource": "true"}},
            },
        ],
    }


def key_store_for(settings: DracoSettings, kms: Any, s3: Any = None) -> KeyStore:
    if settings.key_store == "s3":
        if s3 is None:
            raise ConfigurationError("KEY_STORE=s3 requires an S3 client")
        return S3KeyStore(s3, settings.require("key_bucket"))
    return AliasKeyStore(kms)


class KeyProvisioner:
    """Get-or-create of the per-source DR key."""

    def __init__(self, kms: Any, store: KeyStore, settings: DracoSettings) -> None:
        self.kms = kms
        self.store = store
        self.settings = settings

    def get_or_create_key(
        self,
        source_name: str,
        tag_list: Iterable[TagLike] = (),
        *,
        producer_account: Optional[str] = None,
    ) -> str:
        if not source_name:
            raise ValueError("source_name is required to provision a key")

        existing = self.store.lookup(source_name)
        if existing:
            logger.debug(f"Found existing key {existing} for '{source_name}'")
            return existing

        dr_account = self.settings.require("dr_account")
        # Same-account deployments have no separate producer account
        producer = producer_account or dr_account
        policy = build_key_policy(dr_account, producer, self.settings.require("producer_role_name"))
        tags = merge_tags(tag_list, [Tag(key=self.settings.tag_key, value=self.settings.tag_value)])
        logger.debug(f"Key policy for '{source_name}': {json.dumps(policy)}")

        resp = self.kms.create_key(
            Policy=json.dumps(policy),
            Description=f"DRACO key for {source_name}",
            BypassPolicyLockoutSafetyCheck=True,
            Tags=to_kms(tags),
        )
        key_id = str(resp["KeyMetadata"]["KeyId"])
        self.kms.enable_key_rotation(KeyId=key_id)
        self.store.record(source_name, key_id)
        logger.info(f"Created key {key_id} for '{source_name}'")
        return key_id
