from __future__ import annotations

"""Results Manager: exam history, newest first."""

from typing import Any, Dict, List, Optional

from storage.repository import Repository
from storage.schema import ExamResult


class ResultManager:
    def __init__(self, repo: Repository[List[ExamResult]]) -> None:
        self.repo = repo
        self._results: List[ExamResult]
        self._results, self.notice = repo.load_or_empty()

    def reload(self) -> None:
        self._results, self.notice = self.repo.load_or_empty()

    def add(self, result: ExamResult) -> None:
        self._results.insert(0, result)
        self.repo.save(self._results)

    def all(self) -> List[ExamResult]:
        return list(self._results)

    def for_subject(self, subject_id: str) -> List[ExamResult]:
        return [r for r in self._results if r.subject_id == subject_id]

    def replace_all(self, results: List[ExamResult]) -> None:
        self._results = list(results)
        self.repo.save(self._results)

    def clear(self) -> None:
        self._results = []
        self.repo.save(self._results)

    def summarize(self, subject_id: Optional[str] = None) -> Dict[str, Any]:
        rows = self.for_subject(subject_id) if subject_id else self._results
        if not rows:
            return {"exams": 0, "best": None, "average": None, "last": None}
        scores = [r.score for r in rows]
        return {
            "exams": len(rows),
            "best": max(scores),
            "average": round(sum(scores) / len(scores), 1),
            "last": rows[0].score,
        }
