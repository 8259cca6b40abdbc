"""Producer side of DRACO (production account)."""

from __future__ import annotations

from aws_cdk import (
    CfnOutput,
    Duration,
    Stack,
    aws_events as events,
    aws_events_targets as targets,
    aws_iam as iam,
    aws_lambda as lambda_,
    aws_logs as logs,
    aws_rds as rds,
    aws_sns as sns,
    aws_sns_subscriptions as subscriptions,
)
from aws_cdk.aws_lambda_python_alpha import BundlingOptions, PythonFunction, PythonLayerVersion
from constructs import Construct

from infrastructure.constructs.wait_for_copy_construct import WaitForCopyConstruct
from infrastructure.core.iam import ProducerRoleConstruct
from infrastructure.core.iam import utils as iam_utils


class DracoProducerStack(Stack):
    """RDS/EBS snapshot sources, producer Lambda and its copy-wait workflow."""

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
        self.dr_account: str = str(self.config.get("dr_account_id") or "").strip()
        if not self.dr_account:
            raise ValueError("dr_account_id must be configured for the producer stack")

        self.topic_name: str = str(self.config.get("producer_topic_name") or f"draco-producer-{self.env_name}")
        self.dr_topic_arn: str = iam_utils.topic_arn(
            self.region,
            self.dr_account,
            str(self.config.get("dr_topic_name") or f"draco-dr-{self.env_name}"),
        )
        self.state_machine_name: str = f"draco-copy-wait-{self.env_name}"

        self.common_layer = self._create_common_layer()

        self.role = ProducerRoleConstruct(
            self,
            "ProducerRole",
            config=self.config,
            dr_topic_arn=self.dr_topic_arn,
            state_machine_name=self.state_machine_name,
        ).role

        # Receives RDS notifications, DR-side saga messages and our own copy-completed events
        self.topic = self._create_topic()

        self.poller_function = self._create_poller_function()
        self.copy_wait = WaitForCopyConstruct(
            self,
            "CopyWait",
            state_machine_name=self.state_machine_name,
            poller=self.poller_function,
            topic=self.topic,
            failure_topic=self.topic,
            timeout=Duration.hours(int(self.config.get("copy_wait_timeout_hours", 3))),
            log_retention=self._log_retention(),
            tracing_enabled=bool(self.config.get("enable_xray_tracing", False)),
        )

        self.producer_function = self._create_producer_function()
        self.topic.add_subscription(subscriptions.LambdaSubscription(self.producer_function))

        self._create_rds_event_subscriptions()
        self.ebs_rule = self._create_ebs_snapshot_rule()

        self._create_outputs()

    def _create_topic(self) -> sns.Topic:
        topic = sns.Topic(
            self,
            "ProducerTopic",
            topic_name=self.topic_name,
            display_name="DRACO producer",
        )
        topic.add_to_resource_policy(
            iam.PolicyStatement(
                sid="AllowDrAccountPublish",
                effect=iam.Effect.ALLOW,
                principals=[iam.AccountPrincipal(self.dr_account)],
                actions=["sns:Publish"],
                resources=[topic.topic_arn],
            )
        )
        topic.add_to_resource_policy(
            iam.PolicyStatement(
                sid="AllowRdsEventsPublish",
                effect=iam.Effect.ALLOW,
                principals=[iam.ServicePrincipal("events.rds.amazonaws.com")],
                actions=["sns:Publish"],
                resources=[topic.topic_arn],
            )
        )
        return topic

    def _create_rds_event_subscriptions(self) -> None:
        """Snapshot creation events (RDS-EVENT-0091/0042, 0169/0075) to the producer topic."""
        rds.CfnEventSubscription(
            self,
            "DbSnapshotEvents",
            subscription_name=f"draco-db-snapshot-{self.env_name}",
            sns_topic_arn=self.topic.topic_arn,
            source_type="db-snapshot",
            event_categories=["creation"],
            enabled=True,
        )
        rds.CfnEventSubscription(
            self,
            "DbClusterSnapshotEvents",
            subscription_name=f"draco-db-cluster-snapshot-{self.env_name}",
            sns_topic_arn=self.topic.topic_arn,
            source_type="db-cluster-snapshot",
            event_categories=["backup"],
            enabled=True,
        )

    def _create_ebs_snapshot_rule(self) -> events.Rule:
        return events.Rule(
            self,
            "EbsSnapshotCreated",
            rule_name=f"draco-ebs-snapshot-{self.env_name}",
            description="EBS createSnapshot results to the DRACO producer",
            event_pattern=events.EventPattern(
                source=["aws.ec2"],
                detail_type=["EBS Snapshot Notification"],
                detail={"event": ["createSnapshot"]},
            ),
            targets=[targets.LambdaFunction(self.producer_function)],
        )

    def _create_poller_function(self) -> lambda_.IFunction:
        """Create the wait4copy poller Lambda invoked by the copy-wait workflow."""
        return PythonFunction(
            self,
            "Wait4CopyFunction",
            function_name=f"draco-wait4copy-producer-{self.env_name}",
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

    def _create_producer_function(self) -> lambda_.IFunction:
        """Create the producer Lambda."""
        env = {
            "ENVIRONMENT": self.env_name,
            "DR_ACCT": self.dr_account,
            "DR_TOPIC_ARN": self.dr_topic_arn,
            "STATE_MACHINE_ARN": self.copy_wait.state_machine.state_machine_arn,
            "DRY_RUN": "true" if self.config.get("dry_run") else "false",
            "DEBUG": str(int(self.config.get("debug", 0))),
            "POLL_INTERVAL": str(int(self.config.get("poll_interval_seconds", 60))),
            "MAX_POLL_ITERATIONS": str(int(self.config.get("max_poll_iterations", 120))),
        }
        if self.config.get("transit_key_arn"):
            env["TRANSIT_KEY_ARN"] = str(self.config["transit_key_arn"])

        return PythonFunction(
            self,
            "ProducerFunction",
            function_name=f"draco-producer-{self.env_name}",
            runtime=lambda_.Runtime.PYTHON_3_12,
            entry="src/lambda/functions/producer",
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
            "ProducerTopicArn",
            value=self.topic.topic_arn,
            description="Topic the DR account publishes producer-bound saga events to",
        )
        CfnOutput(
            self,
            "CopyWaitStateMachineArn",
            value=self.copy_wait.state_machine.state_machine_arn,
            description="Transit copy completion-wait workflow ARN",
        )

    def _create_common_layer(self) -> lambda_.LayerVersion:
        """Create the layer carrying the ``draco`` package."""
        return PythonLayerVersion(
            self,
            "CommonLayer",
            entry="src/lambda/layers/common",
            layer_version_name=f"draco-common-producer-{self.env_name}",
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
