"""Development environment configuration."""

import os

dev_config = {
    "account_id": os.environ.get("CDK_DEFAULT_ACCOUNT"),
    "region": "eu-west-2",
    # Account pair; the producer stack deploys into the first, the consumer stack into the second
    "production_account_id": os.environ.get("DRACO_PRODUCTION_ACCOUNT", "111111111111"),
    "dr_account_id": os.environ.get("DRACO_DR_ACCOUNT", "222222222222"),
    "producer_topic_name": "draco-producer-dev",
    "dr_topic_name": "draco-dr-dev",
    "lambda_memory": 256,
    "lambda_timeout": 300,
    "poller_timeout": 30,
    "log_retention_days": 14,
    "enable_xray_tracing": True,
    # Completion wait: one poll per minute, give up after two hours
    "poll_interval_seconds": 60,
    "max_poll_iterations": 120,
    "copy_wait_timeout_hours": 3,
    "dr_key_arn": None,
    "transit_key_arn": None,
    "key_store": "alias",
    "tag_key": "Draco",
    "tag_value": "DR",
    # Deletes are logged only
    "dry_run": True,
    "debug": 1,
    "tags": {
        "Environment": "dev",
        "Project": "Draco",
        "Owner": "PlatformTeam",
        "CostCenter": "Engineering",
    },
}
