from __future__ import annotations

"""Backup payload: a snapshot of subjects, banks, stats and results.

A category left as None was absent from the source and is not touched on
restore; a present category replaces the stored one wholesale.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from storage.repository import Repositories, Repository
from storage.schema import ExamResult, Question, QuestionStats, Subject
from storage.store import KeyValueStore, StoreError

from ..errors import BackupError

logger = logging.getLogger(__name__)


@dataclass
class BackupPayload:
    subjects: Optional[List[Subject]] = None
    questions: Optional[Dict[str, List[Question]]] = None
    question_stats: Optional[Dict[str, List[QuestionStats]]] = None
    exam_results: Optional[List[ExamResult]] = None

    def is_empty(self) -> bool:
        return all(v is None for v in (self.subjects, self.questions, self.question_stats, self.exam_results))

    def counts(self) -> Dict[str, int]:
        return {
            "subjects": len(self.subjects or []),
            "questions": sum(len(v) for v in (self.questions or {}).values()),
            "questionStats": sum(len(v) for v in (self.question_stats or {}).values()),
            "examResults": len(self.exam_results or []),
        }

    def to_json(self) -> Dict[str, Any]:
        """camelCase document; absent categories are omitted."""
        out: Dict[str, Any] = {}
        if self.subjects is not None:
            out["subjects"] = [s.to_json() for s in self.subjects]
        if self.questions is not None:
            out["questions"] = {k: [q.to_json() for q in v] for k, v in self.questions.items()}
        if self.question_stats is not None:
            out["questionStats"] = {k: [s.to_json() for s in v] for k, v in self.question_stats.items()}
        if self.exam_results is not None:
            out["examResults"] = [r.to_json() for r in self.exam_results]
        return out


def collect_backup(repos: Repositories, subjects: List[Subject]) -> BackupPayload:
    """Snapshot the given subject catalogue plus everything stored for it.

    Only custom banks are stored; subjects still on their default set have no
    `questions` entry.
    """
    questions = {}
    for sid in (s.id for s in subjects):
        bank, _ = repos.questions(sid).load_or_empty()
        if bank:
            questions[sid] = bank
    return BackupPayload(
        subjects=list(subjects),
        questions=questions,
        question_stats=repos.stats.load_or_empty()[0],
        exam_results=repos.results.load_or_empty()[0],
    )


def apply_backup(payload: BackupPayload, repos: Repositories) -> Dict[str, int]:
    """Write every present category to the store. Returns imported counts.

    Either every category is written or none is: when a write fails, the keys
    already written get their previous values back and BackupError is raised.
    """
    writes: List[Tuple[Repository[Any], Any]] = []
    if payload.subjects is not None:
        writes.append((repos.subjects, payload.subjects))
    if payload.questions is not None:
        writes.extend((repos.questions(sid), bank) for sid, bank in payload.questions.items())
    if payload.question_stats is not None:
        writes.append((repos.stats, payload.question_stats))
    if payload.exam_results is not None:
        writes.append((repos.results, payload.exam_results))

    store = repos.store
    done: List[Tuple[str, Any]] = []
    try:
        for repo, value in writes:
            previous = store.get(repo.key)
            repo.save(value)
            done.append((repo.key, previous))
    except StoreError as e:
        _roll_back(store, done)
        raise BackupError(f"Could not restore the backup; nothing was changed: {e}") from e
    counts = payload.counts()
    logger.info("Backup applied: %s", counts)
    return counts


def _roll_back(store: KeyValueStore, done: List[Tuple[str, Any]]) -> None:
    for key, previous in reversed(done):
        try:
            if previous is None:
                store.delete(key)
            else:
                store.set(key, previous)
        except StoreError:
            logger.error("Could not roll back %s after a failed restore", key, exc_info=True)
