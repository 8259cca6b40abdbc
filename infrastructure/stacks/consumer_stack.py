"""Consumer side of DRACO (DR account)."""

from __future__ import annotations

from typing import Optional

from aws_cdk import (
    CfnOutput,
    Duration,
    RemovalPolicy,
    Stack,
    aws_iam as iam,
    aws_lambda as lambda_,
    aws_logs as logs,
    aws_s3 as s3,
    aws_sns as sns,
    aws_sns_subscriptions as subscriptions,
)
from aws_cdk.aws_lambda_python_alpha import BundlingOptions, PythonFunction, PythonLayerVersion
from constructs import Construct

from infrastructure.constructs.wait_for_copy_construct import WaitForCopyConstruct
from infrastructure.core.iam import ConsumerRoleConstruct
from infrastructure.core.iam import utils as iam_utils


class DracoConsumerStack(Stack):
    """DR topic, consumer Lambda, key registry and the DR copy-wait workflow."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        environment: str,
        config: dict,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.env_name = environment
        self.config = config
        self.production_account: str = str(self.config.get("production_account_id") or "").strip()
        if not self.production_account:
            raise ValueError("production_account_id must be configured for the consumer stack")

        self.key_store: str = str(self.config.get("key_store", "alias")).lower()
        if self.key_store not in ("alias", "s3"):
            raise ValueError(f"Unknown key_store: {self.key_store}")

        self.topic_name: str = str(self.config.get("dr_topic_name") or f"draco-dr-{self.env_name}")
        self.producer_topic_arn: str = iam_utils.topic_arn(
            self.region,
            self.production_account,
            str(self.config.get("producer_topic_name") or f"draco-producer-{self.env_name}"),
        )
        self.state_machine_name: str = f"draco-copy-wait-{self.env_name}"

        self.common_layer = self._create_common_layer()
        self.key_bucket = self._create_key_bucket()

        self.role = ConsumerRoleConstruct(
            self,
            "ConsumerRole",
            config=self.config,
            producer_topic_arn=self.producer_topic_arn,
            state_machine_name=self.state_machine_name,
            key_bucket_name=self.key_bucket.bucket_name if self.key_bucket is not None else None,
        ).role

        self.topic = self._create_topic()

        self.poller_function = self._create_poller_function()
        self.copy_wait = WaitForCopyConstruct(
            self,
            "CopyWait",
            state_machine_name=self.state_machine_name,
            poller=self.poller_function,
            topic=self.topic,
            failure_topic=sns.Topic.from_topic_arn(self, "ProducerTopicRef", self.producer_topic_arn),
            timeout=Duration.hours(int(self.config.get("copy_wait_timeout_hours", 3))),
            log_retention=self._log_retention(),
            tracing_enabled=bool(self.config.get("enable_xray_tracing", False)),
        )

        self.consumer_function = self._create_consumer_function()
        self.topic.add_subscription(subscriptions.LambdaSubscription(self.consumer_function))

        self._create_outputs()

    def _create_topic(self) -> sns.Topic:
        topic = sns.Topic(
            self,
            "DrTopic",
            topic_name=self.topic_name,
            display_name="DRACO DR",
        )
        topic.add_to_resource_policy(
            iam.PolicyStatement(
                sid="AllowProductionAccountPublish",
                effect=iam.Effect.ALLOW,
                principals=[iam.AccountPrincipal(self.production_account)],
                actions=["sns:Publish"],
                resources=[topic.topic_arn],
            )
        )
        return topic

    def _create_key_bucket(self) -> Optional[s3.Bucket]:
        """Legacy key registry, only when keys are tracked in S3 rather than KMS aliases."""
        if self.key_store != "s3":
            return None
        return s3.Bucket(
            self,
            "KeyRegistryBucket",
            bucket_name=f"draco-{self.account}-{self.region}",
            encryption=s3.BucketEncryption.S3_MANAGED,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            enforce_ssl=True,
            versioned=True,
            removal_policy=RemovalPolicy.RETAIN,
        )

    def _create_poller_function(self) -> lambda_.IFunction:
        """Create the wait4copy poller Lambda invoked by the copy-wait workflow."""
        return PythonFunction(
            self,
            "Wait4CopyFunction",
            function_name=f"draco-wait4copy-consumer-{self.env_name}",
            runtime=lambda_.Runtime.PYTHON_3_12,
            entry="src/lambda/functions/wait4copy",
            index="handler.py",
            handler="main",
            memory_size=128,
            timeout=Duration.seconds(int(self.config.get("poller_timeout", 30))),
            log_retention=self._log_retention(),
            role=self.role,
            layers=[self.common_layer],
            environment={
                "ENVIRONMENT": self.env_name,
                "DEBUG": str(int(self.config.get("debug", 0))),
                "MAX_POLL_ITERATIONS": str(int(self.config.get("max_poll_iterations", 120))),
            },
        )

    def _create_consumer_function(self) -> lambda_.IFunction:
        """Create the consumer Lambda."""
        env = {
            "ENVIRONMENT": self.env_name,
            "DR_ACCT": self.account,
            "PRODUCER_TOPIC_ARN": self.producer_topic_arn,
            "STATE_MACHINE_ARN": self.copy_wait.state_machine.state_machine_arn,
            "TAG_KEY": str(self.config.get("tag_key", "Draco")),
            "TAG_VALUE": str(self.config.get("tag_value", "DR")),
            "KEY_STORE": self.key_store,
            "DRY_RUN": "true" if self.config.get("dry_run") else "false",
            "DEBUG": str(int(self.config.get("debug", 0))),
            "POLL_INTERVAL": str(int(self.config.get("poll_interval_seconds", 60))),
            "MAX_POLL_ITERATIONS": str(int(self.config.get("max_poll_iterations", 120))),
        }
        if self.config.get("dr_key_arn"):
            env["KEY_ARN"] = str(self.config["dr_key_arn"])
        if self.key_bucket is not None:
            env["KEY_BUCKET"] = self.key_bucket.bucket_name

        return PythonFunction(
            self,
            "ConsumerFunction",
            function_name=f"draco-consumer-{self.env_name}",
            runtime=lambda_.Runtime.PYTHON_3_12,
            entry="src/lambda/functions/consumer",
            index="handler.py",
            handler="main",
            memory_size=self._lambda_memory(),
            timeout=self._lambda_timeout(),
            log_retention=self._log_retention(),
            role=self.role,
            layers=[self.common_layer],
            environment=env,
        )

    def _create_outputs(self) -> None:
        """Create CloudFormation outputs."""
        CfnOutput(
            self,
            "DrTopicArn",
            value=self.topic.topic_arn,
            description="Topic the producer publishes consumer-bound saga events to",
        )
        CfnOutput(
            self,
            "CopyWaitStateMachineArn",
            value=self.copy_wait.state_machine.state_machine_arn,
            description="DR copy completion-wait workflow ARN",
        )

    def _create_common_layer(self) -> lambda_.LayerVersion:
        """Create the layer carrying the ``draco`` package."""
        return PythonLayerVersion(
            self,
            "CommonLayer",
            entry="src/lambda/layers/common",
            layer_version_name=f"draco-common-consumer-{self.env_name}",
            description="DRACO saga, snapshot and retention modules",
            compatible_runtimes=[lambda_.Runtime.PYTHON_3_12],
            bundling=BundlingOptions(
                command=[
                    "bash",
                    "-c",
                    "set -euxo pipefail; "
                    "mkdir -p /asset-output/python; "
                    "cp -R /asset-input/python/. /asset-output/python/; "
                    "if [ -f requirements.txt ]; then pip install -q -r requirements.txt -t /asset-output/python; fi",
                ],
                asset_excludes=["tests", "__pycache__", "*.pyc"],
            ),
        )

    # ===== Helpers =====
    def _log_retention(self) -> logs.RetentionDays:
        """Map integer days from config to CloudWatch Logs retention enum."""
        retention_map = {
            1: logs.RetentionDays.ONE_DAY,
            3: logs.RetentionDays.THREE_DAYS,
            5: logs.RetentionDays.FIVE_DAYS,
            7: logs.RetentionDays.ONE_WEEK,
            14: logs.RetentionDays.TWO_WEEKS,
            30: logs.RetentionDays.ONE_MONTH,
            90: logs.RetentionDays.THREE_MONTHS,
        }
        return retention_map.get(self.config.get("log_retention_days", 14), logs.RetentionDays.TWO_WEEKS)

    def _lambda_memory(self) -> int:
        """Resolve Lambda memory size from config (MB)."""
        return int(self.config.get("lambda_memory", 512))

    def _lambda_timeout(self) -> Duration:
        """Resolve Lambda timeout from config (seconds)."""
        return Duration.seconds(int(self.config.get("lambda_timeout", 300)))
