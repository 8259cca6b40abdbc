"""Construct providing the DR-side execution role."""

from __future__ import annotations

from typing import Optional

from aws_cdk import Stack, aws_iam as iam
from constructs import Construct

from infrastructure.config.types import EnvironmentConfig
from infrastructure.core.iam import utils as iam_utils


class ConsumerRoleConstruct(Construct):
    """Provision ``DracoConsumer-<region>`` with key-provisioning rights."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: EnvironmentConfig,
        producer_topic_arn: str,
        state_machine_name: str,
        key_bucket_name: Optional[str] = None,
    ) -> None:
        super().__init__(scope, construct_id)
        stack = Stack.of(self)
        account = stack.account
        region = stack.region

        statements_by_policy = {
            "SnapshotAccess": iam.PolicyDocument(statements=iam_utils.snapshot_statements(region, account)),
            "KmsKeyProvisioning": iam.PolicyDocument(
                statements=[
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=[
                            "kms:CreateKey",
                            "kms:ListAliases",
                        ],
                        resources=["*"],
                    ),
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=["kms:CreateAlias", "kms:DescribeKey"],
                        resources=[
                            f"arn:aws:kms:{region}:{account}:alias/draco/*",
                            f"arn:aws:kms:{region}:{account}:key/*",
                        ],
                    ),
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=["kms:EnableKeyRotation", "kms:TagResource"],
                        resources=[f"arn:aws:kms:{region}:{account}:key/*"],
                    ),
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=iam_utils.KMS_USE_ACTIONS,
                        # Transit keys live in the production account
                        resources=["*"],
                    ),
                ]
            ),
            "SnsPublishProducer": iam.PolicyDocument(
                statements=[
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=["sns:Publish"],
                        resources=[producer_topic_arn],
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
        }

        if key_bucket_name:
            statements_by_policy["KeyRegistryAccess"] = iam.PolicyDocument(
                statements=[
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=["s3:GetObject", "s3:PutObject"],
                        resources=[iam_utils.bucket_objects_arn(key_bucket_name, "keys")],
                    ),
                    iam.PolicyStatement(
                        effect=iam.Effect.ALLOW,
                        actions=["s3:ListBucket"],
                        resources=[iam_utils.bucket_arn(key_bucket_name)],
                    ),
                ]
            )

        self._role = iam.Role(
            self,
            "Role",
            role_name=f"DracoConsumer-{region}",
            assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name("service-role/AWSLambdaBasicExecutionRole"),
            ],
            inline_policies=statements_by_policy,
        )

    @property
    def role(self) -> iam.Role:
        """Return the created IAM role."""
        return self._role
