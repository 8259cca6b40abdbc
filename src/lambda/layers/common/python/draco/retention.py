"""Retention decisions for the DR copies of one source.

``implement_policy`` is pure: it sorts the snapshots youngest first, annotates
each with its UTC calendar buckets and marks which ones survive under the named
policy. Deleting the others is the caller's job (see ``draco.lifecycle``).

Policies
--------
- Standard: newest per day (7), per ISO week (5), per month (12), per year (7).
- Weekly / Fortnightly: newest per day for 7 / 14 days.
- Biweekly: one snapshot from each of the two most recent ISO weeks.
- SemiMonthly: 14 dailies, then one per new ISO week for two more weeks.
- Monthly: newest per day back to the same day of the previous month (exclusive).
- CurrentMonth: newest per day within the newest snapshot's month.
- Test: the three youngest.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Tuple, Union

from draco.models.events import SnapshotRef
from draco.utils.logger import get_logger

logger = get_logger(__name__)


def iso_week(day: date) -> Tuple[int, int]:
    """Return ``(iso_year, iso_week)``; Thursday of the week decides the year."""
    iso = day.isocalendar()
    return iso[0], iso[1]


class RetentionPolicy(str, Enum):
    STANDARD = "Standard"
    WEEKLY = "Weekly"
    FORTNIGHTLY = "Fortnightly"
    BIWEEKLY = "Biweekly"
    SEMI_MONTHLY = "SemiMonthly"
    MONTHLY = "Monthly"
    CURRENT_MONTH = "CurrentMonth"
    TEST = "Test"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, name: Optional[str]) -> "RetentionPolicy":
        text = str(name or "").strip()
        for member in cls:
            if member is not cls.UNKNOWN and member.value.lower() == text.lower():
                return member
        return cls.UNKNOWN


@dataclass(frozen=True)
class RetentionDecision:
    snapshot: SnapshotRef
    created: datetime
    retain: bool = False

    @property
    def day(self) -> Tuple[int, int, int]:
        return (self.created.year, self.created.month, self.created.day)

    @property
    def week(self) -> Tuple[int, int]:
        return iso_week(self.created.date())

    @property
    def month(self) -> Tuple[int, int]:
        return (self.created.year, self.created.month)

    @property
    def year(self) -> int:
        return self.created.year


class _Bucket:
    """First-seen-per-key counter with an optional cap.

    Input is sorted, so equal keys are adjacent and tracking the last key is
    enough to detect a new bucket.
    """

    def __init__(self, cap: Optional[int] = None) -> None:
        self.cap = cap
        self.count = 0
        self.last: Optional[Hashable] = None

    @property
    def exhausted(self) -> bool:
        return self.cap is not None and self.count >= self.cap

    def offer(self, key: Hashable) -> bool:
        if key == self.last or self.exhausted:
            return False
        self.last = key
        self.count += 1
        return True


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _standard(items: List[RetentionDecision]) -> List[bool]:
    days, weeks, months, years = _Bucket(7), _Bucket(5), _Bucket(12), _Bucket(7)
    flags = []
    for item in items:
        # every bucket must see the snapshot, so no short-circuit here
        hits = [days.offer(item.day), weeks.offer(item.week), months.offer(item.month), years.offer(item.year)]
        flags.append(any(hits))
    return flags


def _dailies(cap: int) -> Callable[[List[RetentionDecision]], List[bool]]:
    def _apply(items: List[RetentionDecision]) -> List[bool]:
        days = _Bucket(cap)
        return [days.offer(item.day) for item in items]

    return _apply


def _biweekly(items: List[RetentionDecision]) -> List[bool]:
    weeks = _Bucket(2)
    return [weeks.offer(item.week) for item in items]


def _semi_monthly(items: List[RetentionDecision]) -> List[bool]:
    """Fourteen dailies plus the newest snapshot of each of the next two unseen ISO weeks.

    The dailies usually span two or three ISO weeks, so up to five distinct
    weeks can survive; the extra weeks are counted on top of the dailies
    rather than capping the total at four weeks.
    """
    days, extra_weeks = _Bucket(14), _Bucket(2)
    seen_weeks: set = set()
    flags = []
    for item in items:
        keep = days.offer(item.day)
        if not keep and item.week not in seen_weeks:
            keep = extra_weeks.offer(item.week)
        seen_weeks.add(item.week)
        flags.append(keep)
    return flags


def _monthly(items: List[RetentionDecision]) -> List[bool]:
    if not items:
        return []
    year, month, day = items[0].day
    # Same day one calendar month back; (2024, 2, 31) compares fine as a tuple
    baseline = (year - 1, 12, day) if month == 1 else (year, month - 1, day)
    days = _Bucket()
    return [item.day > baseline and days.offer(item.day) for item in items]


def _current_month(items: List[RetentionDecision]) -> List[bool]:
    if not items:
        return []
    current = items[0].month
    days = _Bucket()
    return [item.month == current and days.offer(item.day) for item in items]


def _test(items: List[RetentionDecision]) -> List[bool]:
    return [index < 3 for index in range(len(items))]


_RULES: Dict[RetentionPolicy, Callable[[List[RetentionDecision]], List[bool]]] = {
    RetentionPolicy.STANDARD: _standard,
    RetentionPolicy.WEEKLY: _dailies(7),
    RetentionPolicy.FORTNIGHTLY: _dailies(14),
    RetentionPolicy.BIWEEKLY: _biweekly,
    RetentionPolicy.SEMI_MONTHLY: _semi_monthly,
    RetentionPolicy.MONTHLY: _monthly,
    RetentionPolicy.CURRENT_MONTH: _current_month,
    RetentionPolicy.TEST: _test,
}


def implement_policy(
    snapshots: Iterable[Union[SnapshotRef, Dict[str, Any]]],
    policy: Union[RetentionPolicy, str, None],
) -> List[RetentionDecision]:
    """Return one decision per snapshot, youngest first.

    An unknown policy retains everything; callers are expected to skip such
    sources before reaching this point.
    """
    refs = [s if isinstance(s, SnapshotRef) else SnapshotRef.model_validate(s) for s in snapshots]
    ordered = sorted(
        (RetentionDecision(snapshot=ref, created=_utc(ref.created)) for ref in refs),
        key=lambda d: d.created,
        reverse=True,
    )
    resolved = policy if isinstance(policy, RetentionPolicy) else RetentionPolicy.parse(policy)
    rule = _RULES.get(resolved)
    if rule is None:
        logger.warning(f"Lifecycle '{policy}' not supported; retaining all {len(ordered)} snapshots")
        flags = [True] * len(ordered)
    else:
        flags = rule(ordered)
    return [RetentionDecision(snapshot=d.snapshot, created=d.created, retain=flag) for d, flag in zip(ordered, flags)]
