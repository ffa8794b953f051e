from __future__ import annotations

"""Answer grading rules."""

from typing import Sequence

from storage.schema import FILL_IN, Question


def normalize(text: str) -> str:
    return text.strip().lower()


def grade(question: Question, selected: Sequence[str]) -> bool:
    """Return True if `selected` answers `question` correctly.

    - fill_in_the_blanks: the first token, trimmed and lower-cased, must equal
      one of the accepted answers under the same normalisation.
    - single/multiple: sorted selection must equal sorted correct labels
      element-wise, so missing, extra, or repeated labels are all wrong.
    """
    if question.type == FILL_IN:
        if not selected:
            return False
        given = normalize(selected[0])
        return any(normalize(a) == given for a in question.correct_answer)
    return sorted(selected) == sorted(question.correct_answer)
