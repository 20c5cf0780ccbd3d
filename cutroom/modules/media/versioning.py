"""Pure version-graph arithmetic.

A group is one root (``parent_id is None``) plus the assets pointing at it.
The service turns rows into :class:`Slot` values, asks one of the functions
below for the new layout, checks it with :func:`validate_group` and writes
it back in a single transaction. Promote, delete and merge all share
:func:`renumber` / :func:`compact`.
"""
import uuid
from dataclasses import dataclass, replace
from typing import Iterable, Sequence

from cutroom.core.errors import ValidationFailed


@dataclass(frozen=True)
class Slot:
    id: uuid.UUID
    parent_id: uuid.UUID | None
    version_number: int
    is_current: bool


def slot_of(asset) -> Slot:
    return Slot(asset.id, asset.parent_id, asset.version_number, asset.is_current)


def slots_of(assets: Iterable) -> list[Slot]:
    return [slot_of(a) for a in assets]


def group_root(slots: Sequence[Slot]) -> Slot:
    roots = [s for s in slots if s.parent_id is None]
    if len(roots) != 1:
        raise ValueError(f"group must have exactly one root, found {len(roots)}")
    return roots[0]


def validate_group(slots: Sequence[Slot]) -> None:
    """Raise ValueError unless the slots form one well-formed group."""
    if not slots:
        return
    root = group_root(slots)
    for s in slots:
        if s.parent_id is not None and s.parent_id != root.id:
            raise ValueError(f"{s.id} points at {s.parent_id}, not the group root {root.id}")
        if s.version_number < 1:
            raise ValueError(f"{s.id} has non-positive version {s.version_number}")
    numbers = [s.version_number for s in slots]
    if len(set(numbers)) != len(numbers):
        raise ValueError("version numbers are not unique within the group")
    current = [s for s in slots if s.is_current]
    if len(current) != 1:
        raise ValueError(f"group must have exactly one current version, found {len(current)}")


def renumber(slots: Sequence[Slot], order: Sequence[uuid.UUID]) -> list[Slot]:
    """Apply a full ordering, highest authority first.

    ``version_number`` becomes ``count - position`` and only the first entry
    is current. Parents are left alone: the root stays the group identity
    even when it is no longer current.
    """
    by_id = {s.id: s for s in slots}
    if len(order) != len(by_id) or set(order) != set(by_id):
        raise ValidationFailed(
            "Order must list every version of the group exactly once",
            expected=sorted(str(i) for i in by_id),
            received=[str(i) for i in order],
        )
    count = len(order)
    return [
        replace(by_id[asset_id], version_number=count - pos, is_current=(pos == 0))
        for pos, asset_id in enumerate(order)
    ]


def append_version(slots: Sequence[Slot], new_id: uuid.UUID) -> list[Slot]:
    """Add ``new_id`` as the newest, current version of the group."""
    root = group_root(slots)
    next_number = max(s.version_number for s in slots) + 1
    demoted = [replace(s, is_current=False) for s in slots if s.id != new_id]
    return demoted + [Slot(new_id, root.id, next_number, True)]


def compact(remaining: Sequence[Slot], *, removed_was_root: bool) -> list[Slot]:
    """Layout of a group after one member left it.

    Survivors are renumbered 1..n in their previous order. When the root
    left, the lowest survivor becomes the root. When no survivor is current,
    the new root takes the flag if the root left, otherwise the newest
    survivor does.
    """
    if not remaining:
        return []
    ordered = sorted(remaining, key=lambda s: s.version_number)
    root_id = ordered[0].id if removed_was_root else group_root(ordered).id

    current = [s for s in ordered if s.is_current]
    if current:
        current_id = max(current, key=lambda s: s.version_number).id
    elif removed_was_root:
        current_id = root_id
    else:
        current_id = ordered[-1].id

    return [
        Slot(
            id=s.id,
            parent_id=None if s.id == root_id else root_id,
            version_number=pos,
            is_current=(s.id == current_id),
        )
        for pos, s in enumerate(ordered, start=1)
    ]


def merge(target: Sequence[Slot], source: Sequence[Slot], moved_id: uuid.UUID) -> tuple[list[Slot], list[Slot]]:
    """Move ``moved_id`` out of ``source`` and make it the current version of ``target``.

    Returns ``(target_after, source_after)``; an empty ``source_after`` means
    the source group no longer exists.
    """
    target_root = group_root(target)
    source_root = group_root(source)
    if target_root.id == source_root.id:
        raise ValueError("cannot merge a group into itself")
    moved = next((s for s in source if s.id == moved_id), None)
    if moved is None:
        raise ValueError(f"{moved_id} is not a member of the source group")
    remaining = [s for s in source if s.id != moved_id]
    source_after = compact(remaining, removed_was_root=(moved.parent_id is None))
    target_after = append_version(target, moved_id)
    return target_after, source_after


def changed(before: Sequence[Slot], after: Sequence[Slot]) -> list[Slot]:
    old = {s.id: s for s in before}
    return [s for s in after if old.get(s.id) != s]
