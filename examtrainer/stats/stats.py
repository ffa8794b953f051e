from __future__ import annotations

"""Per-question stats: upsert counters and importance flags after each answer."""

import time
from typing import Callable, Dict, List, Optional

from storage.repository import Repository
from storage.schema import QuestionStats


def now_ms() -> int:
    return int(time.time() * 1000)


class StatsReconciler:
    """Owns the subject -> stats mapping and flushes it after every mutation."""

    def __init__(self, repo: Repository[Dict[str, List[QuestionStats]]], clock: Optional[Callable[[], int]] = None) -> None:
        self.repo = repo
        self.clock = clock or now_ms
        self._all: Dict[str, List[QuestionStats]]
        self._all, self.notice = repo.load_or_empty()

    def reload(self) -> None:
        self._all, self.notice = self.repo.load_or_empty()

    def all(self) -> Dict[str, List[QuestionStats]]:
        return {k: list(v) for k, v in self._all.items()}

    def for_subject(self, subject_id: str) -> List[QuestionStats]:
        return list(self._all.get(subject_id, []))

    def get(self, subject_id: str, question_id: int) -> Optional[QuestionStats]:
        for s in self._all.get(subject_id, []):
            if s.question_id == question_id:
                return s
        return None

    def _upsert(self, subject_id: str, entry: QuestionStats) -> QuestionStats:
        bucket = self._all.setdefault(subject_id, [])
        for i, s in enumerate(bucket):
            if s.question_id == entry.question_id:
                bucket[i] = entry
                break
        else:
            bucket.append(entry)
        self.repo.save(self._all)
        return entry

    def record_attempt(self, subject_id: str, question_id: int, is_correct: bool) -> QuestionStats:
        """Increment exactly one counter and stamp lastAttempt; keep the importance flag."""
        cur = self.get(subject_id, question_id)
        if cur is None:
            cur = QuestionStats(question_id=question_id)
        entry = cur.model_copy(
            update={
                "correct_count": cur.correct_count + (1 if is_correct else 0),
                "incorrect_count": cur.incorrect_count + (0 if is_correct else 1),
                "last_attempt": self.clock(),
            }
        )
        return self._upsert(subject_id, entry)

    def toggle_important(self, subject_id: str, question_id: int) -> QuestionStats:
        cur = self.get(subject_id, question_id)
        if cur is None:
            # zero-count entry; the question now counts as attempted
            return self._upsert(subject_id, QuestionStats(question_id=question_id, is_important=True))
        return self._upsert(subject_id, cur.model_copy(update={"is_important": not cur.is_important}))

    def remove(self, subject_id: str, question_id: int) -> bool:
        bucket = self._all.get(subject_id, [])
        kept = [s for s in bucket if s.question_id != question_id]
        if len(kept) == len(bucket):
            return False
        self._all[subject_id] = kept
        self.repo.save(self._all)
        return True

    def clear_subject(self, subject_id: str) -> None:
        if self._all.pop(subject_id, None) is not None:
            self.repo.save(self._all)

    def replace_all(self, stats: Dict[str, List[QuestionStats]]) -> None:
        self._all = {k: list(v) for k, v in stats.items()}
        self.repo.save(self._all)

    def clear_all(self) -> None:
        self._all = {}
        self.repo.save(self._all)


def format_summary(stats: List[QuestionStats], total_questions: int) -> str:
    """Return a human-readable summary of one subject's stats."""
    attempted = len(stats)
    correct = sum(s.correct_count for s in stats)
    incorrect = sum(s.incorrect_count for s in stats)
    answers = correct + incorrect
    acc = f"{100.0 * correct / answers:.1f}%" if answers else "n/a"
    lines = [
        f"Questions: {total_questions} ({attempted} with stats, {max(0, total_questions - attempted)} unattempted)",
        f"Answers: {correct}/{answers} correct ({acc})",
        f"Wrong at least once: {sum(1 for s in stats if s.incorrect_count > 0)}",
        f"Marked important: {sum(1 for s in stats if s.is_important)}",
    ]
    return "\n".join(lines)
