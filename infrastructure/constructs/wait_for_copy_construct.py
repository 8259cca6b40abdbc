"""Reusable completion-wait state machine for snapshot copies.

Execution input (started by ``draco.workflow.CopyWaitStarter``)::

    {"SnapshotType": "RDS", "SourceArn": "arn:...", "PollInterval": 60,
     "iterator": {"count": 0, "maxcount": 120}, "event": {...DRACO event...}}

Flow: init iterator -> Wait PollInterval -> poller Lambda -> Choice
  available             -> publish $.event (subject "DRACO Event") -> succeed
  500 or failed         -> [cleanup] -> fail CopyFailed
  iterator exhausted    -> [cleanup] -> fail CopyTimedOut
  otherwise (404, pending) -> wait again

With a ``failure_topic`` the [cleanup] step publishes $.event rewritten as a
snapshot-delete-shared carrying an Error, so the producer removes the transit
copy instead of leaving it behind.
"""

from __future__ import annotations

from typing import Optional

from aws_cdk import (
    Duration,
    aws_lambda as lambda_,
    aws_logs as logs,
    aws_sns as sns,
    aws_stepfunctions as sfn,
    aws_stepfunctions_tasks as tasks,
)
from constructs import Construct

SAGA_SUBJECT = "DRACO Event"
DELETE_SHARED = "snapshot-delete-shared"


class WaitForCopyConstruct(Construct):
    """Poll a snapshot copy until it is available, then publish the pending saga event."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        state_machine_name: str,
        poller: lambda_.IFunction,
        topic: sns.ITopic,
        timeout: Duration,
        failure_topic: Optional[sns.ITopic] = None,
        log_retention: logs.RetentionDays = logs.RetentionDays.TWO_WEEKS,
        tracing_enabled: bool = False,
    ) -> None:
        super().__init__(scope, construct_id)

        init_iterator = sfn.Pass(
            self,
            "InitIterator",
            parameters={
                "SnapshotType.$": "$.SnapshotType",
                "SourceArn.$": "$.SourceArn",
                "PollInterval.$": "$.PollInterval",
                "event.$": "$.event",
                "iterator": {"count": 0, "maxcount.$": "$.iterator.maxcount", "exhausted": False},
            },
        )

        wait = sfn.Wait(
            self,
            "WaitPollInterval",
            time=sfn.WaitTime.seconds_path("$.PollInterval"),
        )

        check_task = tasks.LambdaInvoke(
            self,
            "CheckCopyStatus",
            lambda_function=poller,
            payload=sfn.TaskInput.from_object(
                {
                    "SnapshotType.$": "$.SnapshotType",
                    "SourceArn.$": "$.SourceArn",
                    "iterator.$": "$.iterator",
                }
            ),
            payload_response_only=True,
            result_path="$.result",
        )
        check_task.add_retry(
            errors=["Lambda.ServiceException", "Lambda.AWSLambdaException", "Lambda.SdkClientException"],
            interval=Duration.seconds(5),
            max_attempts=3,
            backoff_rate=2.0,
        )

        update_iterator = sfn.Pass(
            self,
            "UpdateIterator",
            input_path="$.result.iterator",
            result_path="$.iterator",
        )

        publish_task = tasks.SnsPublish(
            self,
            "PublishSagaEvent",
            topic=topic,
            subject=SAGA_SUBJECT,
            message=sfn.TaskInput.from_text(sfn.JsonPath.json_to_string(sfn.JsonPath.object_at("$.event"))),
            result_path=sfn.JsonPath.DISCARD,
        )
        copied = sfn.Succeed(self, "CopyAvailable", comment="Snapshot copy is available")

        copy_failed = self._failure(
            "CopyFailed", "Snapshot copy failed or its status could not be read", failure_topic
        )
        timed_out = self._failure(
            "CopyTimedOut", "Snapshot copy did not become available within the polling budget", failure_topic
        )

        check_task.add_catch(handler=copy_failed, result_path="$.error")

        decide = (
            sfn.Choice(self, "IsCopyAvailable")
            .when(
                sfn.Condition.and_(
                    sfn.Condition.number_equals("$.result.statusCode", 200),
                    sfn.Condition.is_string("$.result.status"),
                    sfn.Condition.string_equals("$.result.status", "available"),
                ),
                publish_task.next(copied),
            )
            .when(
                sfn.Condition.or_(
                    sfn.Condition.number_equals("$.result.statusCode", 500),
                    sfn.Condition.and_(
                        sfn.Condition.is_string("$.result.status"),
                        sfn.Condition.string_equals("$.result.status", "failed"),
                    ),
                ),
                copy_failed,
            )
            .when(
                sfn.Condition.boolean_equals("$.iterator.exhausted", True),
                timed_out,
            )
            .otherwise(wait)
        )

        definition = init_iterator.next(wait).next(check_task).next(update_iterator).next(decide)

        log_group = logs.LogGroup(self, "CopyWaitLogs", retention=log_retention)

        self.state_machine = sfn.StateMachine(
            self,
            "StateMachine",
            state_machine_name=state_machine_name,
            definition_body=sfn.DefinitionBody.from_chainable(definition),
            logs=sfn.LogOptions(destination=log_group, level=sfn.LogLevel.ERROR, include_execution_data=True),
            tracing_enabled=tracing_enabled,
            timeout=timeout,
        )

    def _failure(self, name: str, cause: str, failure_topic: Optional[sns.ITopic]) -> sfn.IChainable:
        """Fail state ``name``, preceded by the cleanup publish when ``failure_topic`` is set."""
        fail = sfn.Fail(self, name, error=name, cause=cause)
        if failure_topic is None:
            return fail

        mark = sfn.Pass(
            self,
            f"{name}Error",
            parameters={
                "EventType": DELETE_SHARED,
                "Error": f"Copy wait failed ({name}: {cause})",
            },
            result_path="$.failure",
        )
        merge = sfn.Pass(
            self,
            f"{name}CleanupEvent",
            parameters={
                "event": sfn.JsonPath.json_merge(
                    sfn.JsonPath.object_at("$.event"),
                    sfn.JsonPath.object_at("$.failure"),
                )
            },
            result_path="$.cleanup",
        )
        publish = tasks.SnsPublish(
            self,
            f"Publish{name}Cleanup",
            topic=failure_topic,
            subject=SAGA_SUBJECT,
            message=sfn.TaskInput.from_text(sfn.JsonPath.json_to_string(sfn.JsonPath.object_at("$.cleanup.event"))),
            result_path=sfn.JsonPath.DISCARD,
        )
        return mark.next(merge).next(publish).next(fail)
