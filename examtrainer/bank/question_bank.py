from __future__ import annotations

"""In-memory question bank for one subject, flushed to the store on change."""

from typing import Iterable, List, Optional

from storage.repository import Repository
from storage.schema import Question


class QuestionBank:
    def __init__(self, subject_id: str, questions: Iterable[Question], repo: Repository[List[Question]]) -> None:
        self.subject_id = subject_id
        self.repo = repo
        self._questions: List[Question] = list(questions)

    @property
    def questions(self) -> List[Question]:
        return list(self._questions)

    def __len__(self) -> int:
        return len(self._questions)

    def ids(self) -> set[int]:
        return {q.id for q in self._questions}

    def get(self, question_id: int) -> Optional[Question]:
        return next((q for q in self._questions if q.id == question_id), None)

    def _flush(self) -> None:
        self.repo.save(self._questions)

    def add(self, question: Question) -> None:
        if question.id in self.ids():
            raise ValueError(f"Question id {question.id} already exists")
        self._questions.append(question)
        self._flush()

    def replace(self, question: Question) -> bool:
        """Replace the question with the same id in place; False if absent."""
        for i, q in enumerate(self._questions):
            if q.id == question.id:
                self._questions[i] = question
                self._flush()
                return True
        return False

    def remove(self, question_id: int) -> bool:
        kept = [q for q in self._questions if q.id != question_id]
        if len(kept) == len(self._questions):
            return False
        self._questions = kept
        self._flush()
        return True

    def replace_all(self, questions: Iterable[Question]) -> None:
        self._questions = list(questions)
        self._flush()
