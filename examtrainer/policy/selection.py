from __future__ import annotations

"""Question selection: named subsets derived from per-question stats.

All functions return new lists and never mutate their inputs. An empty
result is not an error; callers show the mode's `empty_message` instead.
"""

import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from storage.schema import Question, QuestionStats

from ..util.randomness import sample, shuffled

FREQUENTLY_WRONG_THRESHOLD = 2


class ExamMode(str, Enum):
    ALL = "all"
    RANDOM = "random"
    WRONG = "wrong"
    UNATTEMPTED = "unattempted"
    IMPORTANT = "important"
    FREQUENTLY_WRONG = "frequently-wrong"

    @property
    def targeted(self) -> bool:
        return self not in (ExamMode.ALL, ExamMode.RANDOM)


def _pick(questions: Sequence[Question], ids: Iterable[int]) -> List[Question]:
    wanted = set(ids)
    return [q for q in questions if q.id in wanted]


def wrong(stats: Sequence[QuestionStats], questions: Sequence[Question]) -> List[Question]:
    return _pick(questions, (s.question_id for s in stats if s.incorrect_count > 0))


def unattempted(stats: Sequence[QuestionStats], questions: Sequence[Question]) -> List[Question]:
    # Any stat entry counts as attempted, including one created only by
    # marking a question important.
    seen = {s.question_id for s in stats}
    return [q for q in questions if q.id not in seen]


def important(stats: Sequence[QuestionStats], questions: Sequence[Question]) -> List[Question]:
    return _pick(questions, (s.question_id for s in stats if s.is_important))


def frequently_wrong(stats: Sequence[QuestionStats], questions: Sequence[Question]) -> List[Question]:
    return _pick(questions, (s.question_id for s in stats if s.incorrect_count >= FREQUENTLY_WRONG_THRESHOLD))


def random_sample(n: int, questions: Sequence[Question], rng: Optional[random.Random] = None) -> List[Question]:
    """Approximately uniform shuffle truncated to min(n, len(questions))."""
    return sample(n, questions, rng)


@dataclass(frozen=True)
class ModeInfo:
    mode: ExamMode
    label: str
    empty_message: str


MODES: Dict[ExamMode, ModeInfo] = {
    ExamMode.ALL: ModeInfo(ExamMode.ALL, "All questions", "The question bank is empty."),
    ExamMode.RANDOM: ModeInfo(ExamMode.RANDOM, "Random questions", "The question bank is empty."),
    ExamMode.WRONG: ModeInfo(ExamMode.WRONG, "Wrong answers", "No wrongly answered questions. Keep it up!"),
    ExamMode.UNATTEMPTED: ModeInfo(ExamMode.UNATTEMPTED, "Not attempted", "Every question has been attempted already."),
    ExamMode.IMPORTANT: ModeInfo(ExamMode.IMPORTANT, "Marked important", "No questions are marked important yet."),
    ExamMode.FREQUENTLY_WRONG: ModeInfo(
        ExamMode.FREQUENTLY_WRONG, "Frequently wrong", "No question has been answered wrong 2 or more times."
    ),
}

_FILTERS: Dict[ExamMode, Callable[[Sequence[QuestionStats], Sequence[Question]], List[Question]]] = {
    ExamMode.WRONG: wrong,
    ExamMode.UNATTEMPTED: unattempted,
    ExamMode.IMPORTANT: important,
    ExamMode.FREQUENTLY_WRONG: frequently_wrong,
}


def select(
    mode: ExamMode | str,
    stats: Sequence[QuestionStats],
    questions: Sequence[Question],
    count: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> List[Question]:
    """Build the question list for one exam attempt.

    Targeted modes filter and keep bank order. `random` with a count samples;
    `all` (or `random` without a count) shuffles the whole bank.
    """
    mode = ExamMode(mode)
    if mode.targeted:
        return _FILTERS[mode](stats, questions)
    if mode is ExamMode.RANDOM and count is not None:
        return random_sample(count, questions, rng)
    return shuffled(questions, rng)


def mode_counts(stats: Sequence[QuestionStats], questions: Sequence[Question]) -> Dict[ExamMode, int]:
    """Number of questions each targeted mode would select."""
    return {mode: len(fn(stats, questions)) for mode, fn in _FILTERS.items()}
