"""Production environment configuration."""

import os

prod_config = {
    "account_id": os.environ.get("CDK_DEFAULT_ACCOUNT"),
    "region": "eu-west-2",
    "production_account_id": os.environ.get("DRACO_PRODUCTION_ACCOUNT", ""),
    "dr_account_id": os.environ.get("DRACO_DR_ACCOUNT", ""),
    "producer_topic_name": "draco-producer",
    "dr_topic_name": "draco-dr",
    "lambda_memory": 512,
    "lambda_timeout": 900,
    "poller_timeout": 60,
    "log_retention_days": 90,
    "enable_xray_tracing": True,
    "poll_interval_seconds": 60,
    # Large cluster copies can take most of a day
    "max_poll_iterations": 1440,
    "copy_wait_timeout_hours": 25,
    "dr_key_arn": os.environ.get("DRACO_DR_KEY_ARN"),
    "transit_key_arn": os.environ.get("DRACO_TRANSIT_KEY_ARN"),
    "key_store": "alias",
    "tag_key": "Draco",
    "tag_value": "DR",
    "dry_run": False,
    "debug": 0,
    "tags": {
        "Environment": "prod",
        "Project": "Draco",
        "Owner": "PlatformTeam",
        "CostCenter": "Engineering",
    },
}
