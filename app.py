#!/usr/bin/env python3
"""
DRACO CDK App
Cross-account snapshot replication: deploy the producer stack into the production
account and the consumer stack into the DR account.

    cdk deploy -c environment=prod -c role=producer
    cdk deploy -c environment=prod -c role=consumer
"""

import aws_cdk as cdk

from infrastructure.stacks.consumer_stack import DracoConsumerStack
from infrastructure.stacks.producer_stack import DracoProducerStack

# Configuration
from infrastructure.config.environments import get_environment_config

app = cdk.App()

# Get environment configuration
environment = app.node.try_get_context("environment") or "dev"
role = str(app.node.try_get_context("role") or "producer").lower()
config = get_environment_config(environment)

if role == "producer":
    account = config.get("production_account_id") or config.get("account_id")
elif role == "consumer":
    account = config.get("dr_account_id") or config.get("account_id")
else:
    raise ValueError(f"Unknown role: {role} (expected producer or consumer)")

# CDK environment (account/region)
cdk_env = cdk.Environment(account=account, region=config.get("region", "eu-west-2"))

stack_prefix = f"Draco-{environment}"

if role == "producer":
    stack = DracoProducerStack(
        app,
        f"{stack_prefix}-Producer",
        environment=environment,
        config=config,
        env=cdk_env,
    )
else:
    stack = DracoConsumerStack(
        app,
        f"{stack_prefix}-Consumer",
        environment=environment,
        config=config,
        env=cdk_env,
    )

# ========================================
# TAGGING STRATEGY
# ========================================

for key, value in dict(config.get("tags", {})).items():
    cdk.Tags.of(app).add(key, value)
cdk.Tags.of(app).add("Environment", environment)
cdk.Tags.of(app).add("ManagedBy", "CDK")
cdk.Tags.of(stack).add("DracoRole", role)

app.synth()
