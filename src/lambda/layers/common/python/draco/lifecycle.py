"""Retention lifecycle over the DR copies of one snapshot kind.

Collects every available DR copy, groups them by source, reads the policy from
the youngest copy's ``Draco_Lifecycle`` tag and deletes what the policy does
not retain. Sources without a tag or with an unsupported policy are skipped
before any delete is issued.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from draco.models.events import SnapshotRef
from draco.models.settings import DracoSettings
from draco.retention import RetentionPolicy, implement_policy
from draco.snapshots import PROVIDER_ERRORS, SnapshotService, failure_text
from draco.tags import LIFECYCLE_TAG, find_tag
from draco.utils.logger import get_logger


@dataclass
class SourceGroup:
    source_name: str
    snapshots: List[SnapshotRef] = field(default_factory=list)

    @property
    def youngest(self) -> SnapshotRef:
        return max(self.snapshots, key=lambda s: s.created)


@dataclass
class LifecycleReport:
    source_name: str
    policy: Optional[str] = None
    retained: List[str] = field(default_factory=list)
    expired: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: Optional[str] = None
    dry_run: bool = False


class LifecycleManager:
    def __init__(
        self,
        service: SnapshotService,
        settings: DracoSettings,
        *,
        request_id: Optional[str] = None,
    ) -> None:
        self.service = service
        self.settings = settings
        self.log = get_logger(__name__, correlation_id=request_id)

    def collect(self) -> List[SourceGroup]:
        groups: Dict[str, SourceGroup] = {}
        for ref in self.service.list_owned(owner=self.settings.dr_account):
            if not ref.source_name:
                continue
            groups.setdefault(ref.source_name, SourceGroup(ref.source_name)).snapshots.append(ref)
        return [groups[name] for name in sorted(groups)]

    def run(self) -> List[LifecycleReport]:
        kind = self.service.kind.value
        self.log.info(f"Performing Lifecycle Management for: {kind}", extra={"snapshot_type": kind})
        return [self.apply(group) for group in self.collect()]

    def apply(self, group: SourceGroup) -> LifecycleReport:
        report = LifecycleReport(source_name=group.source_name, dry_run=self.settings.dry_run)
        youngest = group.youngest
        tags = self.service.list_tags(youngest.arn or youngest.id)
        lifecycle = find_tag(tags, LIFECYCLE_TAG)
        if lifecycle is None:
            self.log.warning(f"Source: {group.source_name} has no {LIFECYCLE_TAG} tag. Skipped")
            report.skipped = f"No {LIFECYCLE_TAG} tag"
            return report

        report.policy = lifecycle
        policy = RetentionPolicy.parse(lifecycle)
        if policy is RetentionPolicy.UNKNOWN:
            self.log.warning(f"Source: {group.source_name} lifecycle '{lifecycle}' not supported. Skipped")
            report.skipped = f"Lifecycle '{lifecycle}' not supported"
            return report

        self.log.info(
            f"Source: {group.source_name} has lifecycle '{lifecycle}' with {len(group.snapshots)} snapshots. "
            f"Youngest: {youngest.id}"
        )
        for decision in implement_policy(group.snapshots, policy):
            snapshot_id = decision.snapshot.id
            if decision.retain:
                report.retained.append(snapshot_id)
                continue
            report.expired.append(snapshot_id)
            if self.settings.dry_run:
                self.log.info(f"Dry Run - Not Deleting: {snapshot_id}")
                continue
            self.log.info(f"Deleting: {snapshot_id}")
            try:
                self.service.delete(snapshot_id)
            except PROVIDER_ERRORS as exc:
                self.log.error(f"Delete of {snapshot_id} failed ({failure_text(exc)})")
                report.failed.append(snapshot_id)
                continue
            report.deleted.append(snapshot_id)
        return report
