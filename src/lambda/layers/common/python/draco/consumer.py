"""Consumer role: runs in the DR account.

| inbound                  | action                                          | outbound                |
|--------------------------|-------------------------------------------------|-------------------------|
| snapshot-copy-request    | eligibility gate, get-or-create the DR key      | snapshot-copy-initiate  |
|                          | (ineligible or key failure)                     | snapshot-no-copy        |
| snapshot-copy-shared     | copy transit -> DR copy under the DR key        | copy wait               |
|                          | (copy failure)                                  | snapshot-delete-shared  |
| snapshot-copy-completed  | ask producer to clean up, run retention         | snapshot-delete-shared  |
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from draco.arns import account_of, region_of, resource_id
from draco.keys import KeyProvisioner, key_store_for
from draco.lifecycle import LifecycleManager
from draco.models.events import Event, EventType, SnapshotType, Tag
from draco.participant import SagaParticipant, SagaResult
from draco.saga import Channel, Outcome, Role, step
from draco.snapshots import (
    DR_DESCRIPTION_PREFIX,
    PROVIDER_ERRORS,
    CopyRequest,
    KeyFallbackCopy,
    SnapshotService,
    dr_id_for,
    failure_text,
)
from draco.tags import LIFECYCLE_TAG, find_tag, merge_tags

NO_LIFECYCLE_TAG = "No Draco_Lifecycle tag"
IGNORED = "Ignored"


def ineligibility_reason(event: Event) -> Optional[str]:
    """Return why ``event``'s source must not be copied, or ``None``."""
    lifecycle = find_tag(event.tag_list, LIFECYCLE_TAG)
    if lifecycle is None:
        return NO_LIFECYCLE_TAG
    if lifecycle.strip().lower() == "ignore":
        return IGNORED
    return None


class Consumer(SagaParticipant):
    role = Role.CONSUMER

    def __init__(self, *args: Any, keys: Optional[KeyProvisioner] = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._keys = keys

    def handlers(self) -> Dict[EventType, Callable[[Event], SagaResult]]:
        return {
            EventType.COPY_REQUEST: self.accept_request,
            EventType.COPY_SHARED: self.copy_to_dr,
            EventType.COPY_COMPLETED: self.finish_copy,
        }

    def topic_for(self, channel: Channel) -> str:
        return self.settings.require("producer_topic_arn")

    @property
    def keys(self) -> KeyProvisioner:
        if self._keys is None:
            kms = self.client("kms")
            s3 = self.client("s3") if self.settings.key_store == "s3" else None
            self._keys = KeyProvisioner(kms, key_store_for(self.settings, kms, s3), self.settings)
        return self._keys

    def draco_tag(self) -> Tag:
        return Tag(key=self.settings.tag_key, value=self.settings.tag_value)

    def accept_request(self, event: Event) -> SagaResult:
        reason = ineligibility_reason(event)
        if reason is not None:
            kind = event.snapshot_type.value if event.snapshot_type else ""
            self.log.warning(f"Not Copying {kind} Snapshot {event.source_id}: {reason}")
            transition, reply = step(self.role, event, Outcome.INELIGIBLE, reason=reason)
            return self.emit(transition, reply, detail=reason)

        source_name = self.require(event, "source_name")
        try:
            key_id = self.keys.get_or_create_key(
                source_name,
                event.tag_list,
                producer_account=event.prod_acct or account_of(event.source_arn),
            )
        except PROVIDER_ERRORS as exc:
            error = f"Key provisioning failed ({failure_text(exc)})"
            self.log.error(f"{error} for {source_name}")
            transition, reply = step(
                self.role, event, Outcome.FAILED, reason="Key provisioning failed", error=error
            )
            return self.emit(transition, reply, detail=error)

        transition, reply = step(self.role, event, Outcome.OK, target_kms_id=key_id)
        return self.emit(transition, reply)

    def copy_to_dr(self, event: Event) -> SagaResult:
        transit_arn = self.require(event, "transit_arn")
        transit_id = event.transit_id or resource_id(transit_arn)
        service = self.service(event)
        key = event.target_kms_id or self.settings.key_arn
        tags = merge_tags(event.tag_list, [self.draco_tag()])
        enc = "Encrypted" if event.encrypted else "Plaintext"
        self.log.info(f"Copying {enc} {service.kind.value} Snapshot {transit_arn} ...")

        try:
            if service.kind is SnapshotType.VOLUME:
                region = region_of(transit_arn) or self.settings.region
                result = service.copy(
                    CopyRequest(
                        source=transit_id,
                        kms_key_id=key,
                        tags=tags,
                        description=f"{DR_DESCRIPTION_PREFIX}arn:aws:ec2::{region}:volume/{event.source_name}",
                        region=region,
                    )
                )
            else:
                request = CopyRequest(
                    source=transit_arn,
                    target_id=dr_id_for(transit_id),
                    kms_key_id=key,
                    tags=tags,
                    copy_tags=False,
                )
                copier = KeyFallbackCopy(service) if service.kind is SnapshotType.DATABASE_CLUSTER else service
                result = copier.copy(request)
        except PROVIDER_ERRORS as exc:
            return self._request_cleanup(event, transit_arn, f"Copy failed ({failure_text(exc)})")

        self.log.info(f"Copied to {result.id}")
        transition, pending = step(self.role, event, Outcome.OK, target_arn=result.arn, tag_list=tags)
        try:
            return self.emit(transition, pending, watch_arn=result.arn)
        except PROVIDER_ERRORS as exc:
            return self._request_cleanup(event, transit_arn, f"Copy wait failed ({failure_text(exc)})")

    def _request_cleanup(self, event: Event, transit_arn: str, error: str) -> SagaResult:
        """Ask the producer to delete the shared transit copy."""
        self.log.error(f"{error}, removing source {transit_arn} ...", extra={"source_arn": transit_arn})
        transition, cleanup = step(self.role, event, Outcome.FAILED, error=error)
        return self.emit(transition, cleanup, detail=error)

    def finish_copy(self, event: Event) -> SagaResult:
        service = self.service(event)
        self.require(event, "transit_arn")
        transition, cleanup = step(self.role, event, Outcome.OK)
        result = self.emit(transition, cleanup)
        self.run_lifecycle(service)
        return result

    def run_lifecycle(self, service: SnapshotService) -> None:
        """Apply retention to every DR copy of the service's kind; failures are logged only."""
        try:
            LifecycleManager(service, self.settings, request_id=self.request_id).run()
        except Exception:
            self.log.exception(f"Lifecycle management failed for {service.kind.value}")
