"""Producer role: runs in the production account.

Reacts to snapshot creation notifications and to the saga messages the
consumer (or its own copy-wait workflow) sends back:

| inbound                  | action                                  | outbound               |
|--------------------------|-----------------------------------------|------------------------|
| snapshot-created         | describe + tags, build the request      | snapshot-copy-request  |
| snapshot-copy-initiate   | transit copy under the DR key           | copy wait              |
|                          | (wait not started) delete transit copy  | -                      |
| snapshot-copy-completed  | share transit copy with the DR account  | snapshot-copy-shared   |
| snapshot-delete-shared   | delete the transit copy                 | -                      |
| snapshot-no-copy         | log                                     | -                      |
"""

from __future__ import annotations

from typing import Callable, Dict

from botocore.exceptions import ClientError

from draco.arns import account_of, region_of, resource_id
from draco.models.events import Event, EventType, SnapshotType
from draco.participant import SagaParticipant, SagaResult
from draco.saga import Channel, Outcome, Role, step
from draco.snapshots import (
    PROVIDER_ERRORS,
    CopyRequest,
    SnapshotService,
    error_code,
    failure_text,
    transit_id_for,
)
from draco.tags import merge_tags


class Producer(SagaParticipant):
    role = Role.PRODUCER

    def handlers(self) -> Dict[EventType, Callable[[Event], SagaResult]]:
        return {
            EventType.SNAPSHOT_CREATED: self.request_copy,
            EventType.COPY_INITIATE: self.start_transit_copy,
            EventType.COPY_COMPLETED: self.share_transit_copy,
            EventType.DELETE_SHARED: self.delete_transit_copy,
            EventType.NO_COPY: self.acknowledge_no_copy,
        }

    def topic_for(self, channel: Channel) -> str:
        return self.settings.require("dr_topic_arn")

    def request_copy(self, event: Event) -> SagaResult:
        source_arn = self.require(event, "source_arn")
        service = self.service(event)
        raw = service.describe(event.source_id or source_arn)
        info = service.info(raw)
        tags = service.list_tags(source_arn)
        self.log.info(
            f"{service.kind.value} Snapshot: {event.source_id}, source: {info.source_name}, kms_id: {info.kms_key_id}",
            extra={"snapshot_type": service.kind.value, "source_arn": source_arn},
        )
        transition, request = step(
            self.role,
            event,
            Outcome.OK,
            source_name=info.source_name or event.source_name,
            source_kms_id=info.kms_key_id,
            encrypted=info.encrypted,
            tag_list=tags,
            prod_acct=event.prod_acct or account_of(source_arn),
            region=event.region or region_of(source_arn),
        )
        return self.emit(transition, request)

    def start_transit_copy(self, event: Event) -> SagaResult:
        source_arn = self.require(event, "source_arn")
        source_id = event.source_id or resource_id(source_arn)
        service = self.service(event)
        key = event.target_kms_id or self.settings.transit_key_arn
        if service.kind is SnapshotType.DATABASE_CLUSTER and not event.encrypted:
            # Aurora cannot encrypt a copy of a plaintext cluster snapshot
            key = None

        if service.kind is SnapshotType.VOLUME:
            request = CopyRequest(
                source=source_id,
                kms_key_id=key,
                tags=event.tag_list,
                description=f"Draco transient snapshot of {event.source_name} at {event.end_time}",
                region=event.region,
            )
        else:
            request = CopyRequest(
                source=source_id,
                target_id=transit_id_for(source_id),
                kms_key_id=key,
                copy_tags=True,
            )

        try:
            result = service.copy(request)
        except PROVIDER_ERRORS as exc:
            error = f"Transit copy failed ({failure_text(exc)})"
            self.log.error(f"{error} for {source_arn}", extra={"source_arn": source_arn})
            transition, _ = step(self.role, event, Outcome.FAILED)
            return self.emit(transition, None, status=500, detail=error)

        self.log.info(f"Initiated {service.kind.value} Snapshot Copy from {source_id} to {result.id}")
        transition, pending = step(
            self.role,
            event,
            Outcome.OK,
            transit_id=result.id,
            transit_arn=result.arn,
        )
        try:
            return self.emit(transition, pending, watch_arn=result.arn)
        except PROVIDER_ERRORS as exc:
            error = f"Copy wait failed ({failure_text(exc)})"
            self.log.error(f"{error}, removing transit copy {result.arn}", extra={"source_arn": result.arn})

        try:
            self._delete(service, result.id)
        except PROVIDER_ERRORS as exc:
            error = f"{error}; transit copy {result.id} not removed ({failure_text(exc)})"
            self.log.error(error, extra={"source_arn": result.arn})
            transition, _ = step(self.role, event, Outcome.FAILED)
            return self.emit(transition, None, status=500, detail=error)
        transition, _ = step(self.role, event, Outcome.ROLLED_BACK)
        return self.emit(transition, None, status=500, detail=error)

    def share_transit_copy(self, event: Event) -> SagaResult:
        transit_arn = self.require(event, "transit_arn")
        transit_id = event.transit_id or resource_id(transit_arn)
        dr_account = self.settings.require("dr_account")
        service = self.service(event)

        try:
            service.share(transit_id, dr_account)
            transit_tags = service.list_tags(transit_arn)
        except PROVIDER_ERRORS as exc:
            error = f"Share failed ({failure_text(exc)})"
            self.log.error(f"{error}, removing transit copy {transit_arn}", extra={"source_arn": transit_arn})
            self._delete(service, transit_id)
            transition, _ = step(self.role, event, Outcome.FAILED)
            return self.emit(transition, None, detail=error)

        self.log.info(f"Shared {transit_arn} with {dr_account}")
        transition, shared = step(
            self.role,
            event,
            Outcome.OK,
            tag_list=merge_tags(transit_tags, event.tag_list),
        )
        return self.emit(transition, shared)

    def delete_transit_copy(self, event: Event) -> SagaResult:
        transit_arn = self.require(event, "transit_arn")
        transit_id = event.transit_id or resource_id(transit_arn)
        service = self.service(event)
        if event.error:
            self.log.error(f"In DR account {self.settings.dr_account}: {event.error}")
        self._delete(service, transit_id)
        outcome = Outcome.FAILED if event.error else Outcome.OK
        transition, _ = step(self.role, event, outcome)
        return self.emit(transition, None, detail=event.error)

    def acknowledge_no_copy(self, event: Event) -> SagaResult:
        self.log.warning(
            f"Not Copying {event.snapshot_type.value if event.snapshot_type else ''} "
            f"Snapshot {event.source_id}: {event.reason}",
            extra={"source_arn": event.source_arn},
        )
        transition, _ = step(self.role, event, Outcome.OK)
        return self.emit(transition, None, detail=event.reason)

    def _delete(self, service: SnapshotService, snapshot_id: str) -> None:
        if self.settings.dry_run:
            self.log.info(f"Dry Run - Not Deleting: {snapshot_id}")
            return
        try:
            service.delete(snapshot_id)
        except ClientError as exc:
            # At-least-once delivery: the copy may already be gone
            if error_code(exc) not in service.not_found_codes:
                raise
            self.log.warning(f"Transit copy {snapshot_id} already deleted")
            return
        self.log.info(f"Deleting {service.kind.value} Snapshot {snapshot_id}")
