"""Construct providing the producer-side execution role."""

from __future__ import annotations

from aws_cdk import Stack, aws_iam as iam
from constructs import Construct

from infrastructure.config.types import EnvironmentConfig
from infrastructure.core.iam import utils as iam_utils


class ProducerRoleConstruct(Construct):
    """Provision ``DracoProducer-<region>`` for the producer and poller Lambdas.

    The DR account names this role in the policy of every key it creates, so
    the role name must stay stable.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: EnvironmentConfig,
        dr_topic_arn: str,
        state_machine_name: str,
    ) -> None:
        super().__init__(scope, construct_id)
        stack = Stack.of(self)
        account = stack.account
        region = stack.region

        dr_account = str(config.get("dr_account_id") or "").strip()
        if not dr_account:
            raise ValueError("dr_account_id must be configured for the producer role")

        self._role = iam.Role(
            self,
            "Role",
            role_name=f"DracoProducer-{region}",
            assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name("service-role/AWSLambdaBasicExecutionRole"),
            ],
            inline_policies={
                "SnapshotAccess": iam.PolicyDocument(
                    statements=iam_utils.snapshot_statements(region, account)
                    + [
                        iam.PolicyStatement(
                            effect=iam.Effect.ALLOW,
                            actions=["rds:ModifyDBSnapshotAttribute", "rds:ModifyDBClusterSnapshotAttribute"],
                            resources=[
                                f"arn:aws:rds:{region}:{account}:snapshot:*",
                                f"arn:aws:rds:{region}:{account}:cluster-snapshot:*",
                            ],
                        ),
                        iam.PolicyStatement(
                            effect=iam.Effect.ALLOW,
                            actions=["ec2:ModifySnapshotAttribute"],
                            resources=[f"arn:aws:ec2:{region}::snapshot/*", f"arn:aws:ec2:{region}:{account}:snapshot/*"],
                        ),
                    ]
                ),
                "KmsKeyUse": iam.PolicyDocument(
                    statements=[
                        iam.PolicyStatement(
                            effect=iam.Effect.ALLOW,
                            actions=iam_utils.KMS_USE_ACTIONS,
                            resources=iam_utils.kms_resources(
                                config,
                                config.get("transit_key_arn"),
                                # Per-source DR keys
                                f"arn:aws:kms:{region}:{dr_account}:key/*",
                            ),
                        )
                    ]
                ),
                "SnsPublishDr": iam.PolicyDocument(
                    statements=[
                        iam.PolicyStatement(
                            effect=iam.Effect.ALLOW,
                            actions=["sns:Publish"],
                            resources=[dr_topic_arn],
                        )
                    ]
                ),
                "StepFunctionsStartExecution": iam.PolicyDocument(
                    statements=[
                        iam.PolicyStatement(
                            effect=iam.Effect.ALLOW,
                            actions=["states:StartExecution"],
                            resources=[iam_utils.state_machine_arn(region, account, state_machine_name)],
                        )
                    ]
                ),
            },
        )

    @property
    def role(self) -> iam.Role:
        """Return the created IAM role."""
        return self._role
