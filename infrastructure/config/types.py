"""Typed configuration contracts for environment-specific settings."""

from __future__ import annotations

from typing import Dict, List, NotRequired, Required, TypedDict


class EnvironmentConfig(TypedDict, total=False):
    """Strongly-typed environment configuration contract."""

    region: Required[str]
    account_id: NotRequired[str | None]

    production_account_id: Required[str]
    dr_account_id: Required[str]

    producer_topic_name: NotRequired[str]
    dr_topic_name: NotRequired[str]

    lambda_memory: NotRequired[int]
    lambda_timeout: NotRequired[int]
    poller_timeout: NotRequired[int]
    log_retention_days: NotRequired[int]
    enable_xray_tracing: NotRequired[bool]

    poll_interval_seconds: NotRequired[int]
    max_poll_iterations: NotRequired[int]
    copy_wait_timeout_hours: NotRequired[int]

    dr_key_arn: NotRequired[str | None]
    transit_key_arn: NotRequired[str | None]
    kms_key_arns: NotRequired[List[str]]
    key_store: NotRequired[str]

    tag_key: NotRequired[str]
    tag_value: NotRequired[str]
    dry_run: NotRequired[bool]
    debug: NotRequired[int]

    tags: NotRequired[Dict[str, str]]
