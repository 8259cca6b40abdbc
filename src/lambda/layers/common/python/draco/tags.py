"""Tag helpers: first-writer-wins merging and wire conversions.

RDS snapshots shared across accounts lose their tags and EBS copies never carry
them, so the saga forwards tags inside the message and re-applies them on the
DR copy.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Union

from draco.models.events import Tag

LIFECYCLE_TAG = "Draco_Lifecycle"

TagLike = Union[Tag, Dict[str, Any]]


def _as_tag(item: TagLike) -> Tag:
    if isinstance(item, Tag):
        return item
    return Tag.model_validate(item)


def merge_tags(first: Iterable[TagLike], second: Iterable[TagLike]) -> List[Tag]:
    """Concatenate two ordered tag lists keeping the first value seen for each key."""
    merged: List[Tag] = []
    seen: set[str] = set()
    for item in list(first or []) + list(second or []):
        tag = _as_tag(item)
        if tag.key in seen:
            continue
        seen.add(tag.key)
        merged.append(tag)
    return merged


def find_tag(tags: Iterable[TagLike], key: str) -> Optional[str]:
    for item in tags or []:
        tag = _as_tag(item)
        if tag.key == key:
            return tag.value
    return None


def user_tags(tags: Iterable[TagLike]) -> List[Tag]:
    """Drop ``aws:`` tags; providers refuse them on create/copy calls."""
    return [t for t in (_as_tag(i) for i in tags or []) if not t.key.lower().startswith("aws:")]


def to_wire(tags: Iterable[TagLike]) -> List[Dict[str, str]]:
    return [_as_tag(t).to_dict() for t in tags or []]


def to_kms(tags: Iterable[TagLike]) -> List[Dict[str, str]]:
    return [{"TagKey": t.key, "TagValue": t.value} for t in user_tags(tags)]
