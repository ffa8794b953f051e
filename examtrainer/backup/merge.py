from __future__ import annotations

"""Merge policies for bringing an uploaded question set into an existing bank.

- reset: the upload becomes the bank verbatim.
- update: same-id uploads replace existing questions in place; unseen ids append.
- regenerate: nothing is overwritten; colliding uploads are appended under a
  freshly allocated id.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from storage.schema import Question


class MergePolicy(str, Enum):
    RESET = "reset"
    UPDATE = "update"
    REGENERATE = "regenerate"


class IdAllocator:
    """Hand out integer ids never present in the known set.

    The counter starts past the largest known id and every candidate is still
    checked against the set before use.
    """

    def __init__(self, known: Iterable[int] = (), start: Optional[int] = None) -> None:
        self.known = set(known)
        floor = max(self.known) + 1 if self.known else 1
        self._next = max(floor, start) if start is not None else floor

    def next(self) -> int:
        candidate = self._next
        while candidate in self.known:
            candidate += 1
        self.known.add(candidate)
        self._next = candidate + 1
        return candidate


@dataclass(frozen=True)
class ImportPreview:
    total: int
    new_count: int
    update_count: int


@dataclass(frozen=True)
class MergeReport:
    policy: MergePolicy
    questions: List[Question]
    added: int = 0
    updated: int = 0
    regenerated: int = 0


def preview(existing: Sequence[Question], uploaded: Sequence[Question]) -> ImportPreview:
    ids = {q.id for q in existing}
    update_count = sum(1 for q in uploaded if q.id in ids)
    return ImportPreview(total=len(uploaded), new_count=len(uploaded) - update_count, update_count=update_count)


def full_reset(existing: Sequence[Question], uploaded: Sequence[Question]) -> MergeReport:
    return MergeReport(MergePolicy.RESET, list(uploaded), added=len(uploaded))


def update_merge(existing: Sequence[Question], uploaded: Sequence[Question]) -> MergeReport:
    ids = {q.id for q in existing}
    replacements: Dict[int, Question] = {}
    appended: List[Question] = []
    for q in uploaded:
        if q.id in ids:
            # first upload for an id wins
            replacements.setdefault(q.id, q)
        else:
            appended.append(q)
    merged = [replacements.get(q.id, q) for q in existing] + appended
    return MergeReport(MergePolicy.UPDATE, merged, added=len(appended), updated=len(replacements))


def regenerate_merge(
    existing: Sequence[Question],
    uploaded: Sequence[Question],
    allocator: Optional[IdAllocator] = None,
) -> MergeReport:
    taken = {q.id for q in existing}
    allocator = allocator or IdAllocator(taken | {q.id for q in uploaded})
    fresh: List[Question] = []
    renamed: List[Question] = []
    for q in uploaded:
        if q.id in taken:
            renamed.append(q.model_copy(update={"id": allocator.next()}))
        else:
            taken.add(q.id)
            fresh.append(q)
    merged = list(existing) + fresh + renamed
    return MergeReport(MergePolicy.REGENERATE, merged, added=len(fresh) + len(renamed), regenerated=len(renamed))


_POLICIES = {
    MergePolicy.RESET: full_reset,
    MergePolicy.UPDATE: update_merge,
    MergePolicy.REGENERATE: regenerate_merge,
}


def merge_questions(existing: Sequence[Question], uploaded: Sequence[Question], policy: MergePolicy | str) -> MergeReport:
    return _POLICIES[MergePolicy(policy)](existing, uploaded)
