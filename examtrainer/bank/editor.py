from __future__ import annotations

"""Question editing: build validated questions from drafts and apply them to a bank."""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from pydantic import ValidationError

from storage.schema import FILL_IN, Question, QuestionOption

from ..backup.merge import IdAllocator
from ..errors import InvalidInput
from ..stats.stats import StatsReconciler
from .question_bank import QuestionBank

OPTION_LABELS = ["A", "B", "C", "D", "E", "F", "G", "H"]
MIN_OPTIONS = 2


@dataclass
class QuestionDraft:
    question: str
    type: str = "single"
    options: List[QuestionOption] = field(default_factory=list)
    correct_answer: List[str] = field(default_factory=list)
    explanation: str = ""
    chapter: str = ""

    @classmethod
    def from_question(cls, q: Question) -> "QuestionDraft":
        return cls(
            question=q.question,
            type=q.type,
            options=list(q.options),
            correct_answer=list(q.correct_answer),
            explanation=q.explanation,
            chapter=q.chapter or "",
        )


def next_option_label(options: Sequence[QuestionOption]) -> Optional[str]:
    """First unused label in A..H, or None when the question is full."""
    used = {o.label for o in options}
    return next((lbl for lbl in OPTION_LABELS if lbl not in used), None)


def build_question(draft: QuestionDraft, question_id: int) -> Question:
    if not draft.question.strip():
        raise InvalidInput("Question text is required.")
    is_fill = draft.type == FILL_IN
    if not is_fill:
        if len(draft.options) < MIN_OPTIONS:
            raise InvalidInput(f"At least {MIN_OPTIONS} options are required.")
        if len(draft.options) > len(OPTION_LABELS):
            raise InvalidInput(f"At most {len(OPTION_LABELS)} options are allowed.")
        if any(not o.text.strip() for o in draft.options):
            raise InvalidInput("Every option needs text.")
    answers = [a.strip() for a in draft.correct_answer] if is_fill else list(draft.correct_answer)
    answers = [a for a in answers if a]
    if not answers:
        raise InvalidInput("Choose the correct answer.")
    if not draft.explanation.strip():
        raise InvalidInput("An explanation is required.")
    if draft.type == "single" and len(answers) > 1:
        raise InvalidInput("A single-choice question has exactly one answer.")
    if not is_fill:
        labels = {o.label for o in draft.options}
        stray = [a for a in answers if a not in labels]
        if stray:
            raise InvalidInput(f"Correct answer refers to unknown option(s): {', '.join(stray)}")
        answers = sorted(answers)
    try:
        return Question(
            id=question_id,
            question=draft.question.strip(),
            type=draft.type,
            options=[] if is_fill else list(draft.options),
            correct_answer=answers,
            explanation=draft.explanation.strip(),
            chapter=draft.chapter.strip() or None,
        )
    except ValidationError as e:
        raise InvalidInput(f"Invalid question: {e.errors()[0]['msg']}") from e


def add_question(bank: QuestionBank, draft: QuestionDraft) -> Question:
    question = build_question(draft, IdAllocator(bank.ids()).next())
    bank.add(question)
    return question


def update_question(bank: QuestionBank, question_id: int, draft: QuestionDraft) -> Question:
    if bank.get(question_id) is None:
        raise InvalidInput(f"Question {question_id} does not exist.")
    question = build_question(draft, question_id)
    bank.replace(question)
    return question


def delete_question(bank: QuestionBank, stats: StatsReconciler, question_id: int) -> bool:
    """Permanently delete a question and its stat entry."""
    removed = bank.remove(question_id)
    if removed:
        stats.remove(bank.subject_id, question_id)
    return removed
