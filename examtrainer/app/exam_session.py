from __future__ import annotations

"""Exam session state machine: IDLE -> IN_PROGRESS -> COMPLETED.

One session holds the ordered question snapshot for a single attempt, the
current index, the pending (not yet submitted) selection and the map of
submitted answers keyed by question id. A submitted question is locked until
the next `start`.
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from storage.schema import FILL_IN, AnswerSnapshot, ExamResult, Question

from ..bank.question_bank import QuestionBank
from ..errors import SessionRejected
from ..policy.grading import grade
from ..policy.selection import MODES, ExamMode, select
from ..results.result_manager import ResultManager
from ..stats.stats import StatsReconciler, now_ms
from .explain import trace as xtrace


class SessionState(str, Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Submission:
    selected: List[str]
    is_correct: bool


@dataclass(frozen=True)
class StartOutcome:
    started: bool
    count: int = 0
    message: Optional[str] = None


@dataclass(frozen=True)
class SubmitOutcome:
    is_correct: bool
    correct_answer: List[str]
    explanation: str


@dataclass(frozen=True)
class QuestionView:
    index: int
    total: int
    question: Question
    selected: List[str]
    scored: bool
    is_correct: Optional[bool] = None


def score_percent(correct: int, total: int) -> int:
    """Percentage rounded half up."""
    if total <= 0:
        return 0
    return int(100 * correct / total + 0.5)


class ExamSession:
    def __init__(
        self,
        bank: QuestionBank,
        stats: StatsReconciler,
        results: ResultManager,
        clock: Optional[Callable[[], int]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.bank = bank
        self.stats = stats
        self.results = results
        self.clock = clock or now_ms
        self.rng = rng
        self.state = SessionState.IDLE
        self.mode: Optional[ExamMode] = None
        self.questions: List[Question] = []
        self.index = 0
        self.pending: List[str] = []
        self.submitted: Dict[int, Submission] = {}
        self.started_at = 0
        self.result: Optional[ExamResult] = None

    @property
    def subject_id(self) -> str:
        return self.bank.subject_id

    # --- Lifecycle ---

    def start(self, mode: ExamMode | str, count: Optional[int] = None, source: Optional[Sequence[Question]] = None) -> StartOutcome:
        """Snapshot a question list for a new attempt.

        `source` defaults to the whole bank. An empty source or an empty
        selection leaves the session untouched and returns a message.
        """
        mode = ExamMode(mode)
        pool = list(source) if source is not None else self.bank.questions
        if not pool:
            return StartOutcome(False, 0, MODES[ExamMode.ALL].empty_message)
        chosen = select(mode, self.stats.for_subject(self.subject_id), pool, count, self.rng)
        if not chosen:
            return StartOutcome(False, 0, MODES[mode].empty_message)
        self.state = SessionState.IN_PROGRESS
        self.mode = mode
        self.questions = chosen
        self.index = 0
        self.pending = []
        self.submitted = {}
        self.started_at = self.clock()
        self.result = None
        xtrace("exam_started", {"subject": self.subject_id, "mode": mode.value, "questions": len(chosen)})
        return StartOutcome(True, len(chosen))

    def _require_active(self) -> None:
        if self.state is not SessionState.IN_PROGRESS:
            raise SessionRejected("No exam is in progress.")

    @property
    def current(self) -> Optional[Question]:
        if self.state is not SessionState.IN_PROGRESS or not (0 <= self.index < len(self.questions)):
            return None
        return self.questions[self.index]

    def is_scored(self, question_id: int) -> bool:
        return question_id in self.submitted

    # --- Answering ---

    def select_answer(self, value: str) -> None:
        """Replace the pending selection, or toggle it for multiple-answer questions."""
        q = self.current
        if q is None or self.is_scored(q.id):
            return
        if q.type == "multiple":
            if value in self.pending:
                self.pending = [v for v in self.pending if v != value]
            else:
                self.pending = self.pending + [value]
        else:
            self.pending = [value]

    def clear_selection(self) -> None:
        q = self.current
        if q is not None and not self.is_scored(q.id):
            self.pending = []

    def submit(self) -> SubmitOutcome:
        self._require_active()
        q = self.current
        if q is None:
            raise SessionRejected("There is no current question.")
        if self.is_scored(q.id):
            raise SessionRejected("This question has already been answered.")
        if not self.pending:
            raise SessionRejected("Please select an answer.")
        if q.type == FILL_IN and not self.pending[0].strip():
            raise SessionRejected("Please enter an answer.")
        is_correct = grade(q, self.pending)
        self.submitted[q.id] = Submission(list(self.pending), is_correct)
        self.stats.record_attempt(self.subject_id, q.id, is_correct)
        xtrace("answer_submitted", {"question": q.id, "correct": is_correct})
        return SubmitOutcome(is_correct, list(q.correct_answer), q.explanation)

    # --- Navigation ---

    def _restore(self) -> None:
        q = self.current
        sub = self.submitted.get(q.id) if q is not None else None
        self.pending = list(sub.selected) if sub else []

    def jump_to(self, index: int) -> None:
        if self.state is not SessionState.IN_PROGRESS or not (0 <= index < len(self.questions)):
            return
        self.index = index
        self._restore()

    def advance(self) -> Optional[ExamResult]:
        """Move to the next question; at the last one, finish the exam."""
        self._require_active()
        if self.index < len(self.questions) - 1:
            self.jump_to(self.index + 1)
            return None
        if not self.submitted:
            raise SessionRejected("Answer at least one question before finishing.")
        return self.finish()

    def retreat(self) -> None:
        if self.state is SessionState.IN_PROGRESS and self.index > 0:
            self.jump_to(self.index - 1)

    def remove_current_question(self) -> bool:
        """Delete the current question from the bank, the stats and this attempt.

        Returns True when no questions remain and the session went back to IDLE
        without producing a result.
        """
        q = self.current
        if q is None:
            return False
        self.bank.remove(q.id)
        self.stats.remove(self.subject_id, q.id)
        self.questions = [x for x in self.questions if x.id != q.id]
        self.submitted.pop(q.id, None)
        xtrace("question_removed", {"question": q.id, "remaining": len(self.questions)})
        if not self.questions:
            self.reset()
            return True
        self.index = min(self.index, len(self.questions) - 1)
        self._restore()
        return False

    def end_early(self) -> ExamResult:
        """Finish now; needs a submitted answer or a pending selection."""
        self._require_active()
        q = self.current
        answers = dict(self.submitted)
        if q is not None and q.id not in answers and self.pending:
            answers[q.id] = Submission(list(self.pending), grade(q, self.pending))
        if not answers:
            raise SessionRejected("Answer at least one question before ending the exam.")
        return self.finish(answers)

    # --- Completion ---

    def finish(self, answers: Optional[Dict[int, Submission]] = None) -> ExamResult:
        """Grade every question in the snapshot and prepend the result to history.

        Unanswered questions count as wrong with an empty selection.
        """
        self._require_active()
        answers = self.submitted if answers is None else answers
        now = self.clock()
        snapshots: List[AnswerSnapshot] = []
        correct = 0
        for q in self.questions:
            sub = answers.get(q.id)
            selected = list(sub.selected) if sub else []
            ok = bool(selected) and grade(q, selected)
            correct += ok
            snapshots.append(
                AnswerSnapshot(
                    question_id=q.id,
                    question=q.question,
                    question_type=q.type,
                    selected_answer=selected,
                    correct_answer=list(q.correct_answer),
                    is_correct=ok,
                    explanation=q.explanation,
                )
            )
        total = len(self.questions)
        result = ExamResult(
            id=self._result_id(now),
            date=now,
            score=score_percent(correct, total),
            total_questions=total,
            correct_answers=correct,
            time_spent=max(0, now - self.started_at),
            subject_id=self.subject_id,
            answers=snapshots,
        )
        self.results.add(result)
        self.result = result
        self.state = SessionState.COMPLETED
        xtrace("exam_finished", {"subject": self.subject_id, "score": result.score, "correct": correct, "total": total})
        return result

    def _result_id(self, now: int) -> str:
        """Finish time in ms; a numeric suffix keeps ids unique within the history."""
        taken = {r.id for r in self.results.all()}
        rid, n = str(now), 1
        while rid in taken:
            rid = f"{now}-{n}"
            n += 1
        return rid

    def reset(self) -> None:
        """Back to IDLE; the last result (if any) is kept in history only."""
        self.state = SessionState.IDLE
        self.mode = None
        self.questions = []
        self.index = 0
        self.pending = []
        self.submitted = {}

    # --- Views ---

    def current_view(self) -> Optional[QuestionView]:
        q = self.current
        if q is None:
            return None
        sub = self.submitted.get(q.id)
        return QuestionView(
            index=self.index,
            total=len(self.questions),
            question=q,
            selected=list(self.pending),
            scored=sub is not None,
            is_correct=sub.is_correct if sub else None,
        )

    def progress(self) -> Dict[str, int]:
        answered = sum(1 for q in self.questions if q.id in self.submitted)
        return {"answered": answered, "total": len(self.questions)}
