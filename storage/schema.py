from __future__ import annotations

"""Pydantic models for the persisted exam records.

JSON field names follow the camelCase layout of exported backups; Python code
uses the snake_case attribute names. Both spellings are accepted on input.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator, model_validator
from pydantic.alias_generators import to_camel

# --- Constants ---

QUESTION_TYPES = ("single", "multiple", "fill_in_the_blanks")
CHOICE_TYPES = {"single", "multiple"}
FILL_IN = "fill_in_the_blanks"

QuestionType = Literal["single", "multiple", "fill_in_the_blanks"]

SUBJECTS_KEY = "custom-subjects"
STATS_KEY = "question-stats"
RESULTS_KEY = "exam-results"


def questions_key(subject_id: str) -> str:
    return f"custom-questions-{subject_id}"


class _Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# --- Questions ---

class QuestionOption(_Record):
    label: StrictStr = Field(min_length=1)
    text: StrictStr


class Question(_Record):
    id: StrictInt
    question: StrictStr
    type: QuestionType
    options: List[QuestionOption] = Field(default_factory=list)
    correct_answer: List[StrictStr]
    explanation: StrictStr
    chapter: Optional[str] = None

    @field_validator("question", "explanation")
    def _not_blank(cls, v: str) -> str:  # type: ignore[override]
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="after")
    def _shape_matches_type(self) -> "Question":
        if self.type in CHOICE_TYPES:
            if not self.options:
                raise ValueError(f"{self.type} question needs a non-empty options list")
            labels = [o.label for o in self.options]
            if len(set(labels)) != len(labels):
                raise ValueError("option labels must be unique")
            if self.type == "single" and len(self.correct_answer) != 1:
                raise ValueError("single question needs exactly one correct answer")
            if self.type == "multiple" and not self.correct_answer:
                raise ValueError("multiple question needs at least one correct answer")
        else:
            if self.options:
                raise ValueError("fill_in_the_blanks question must not have options")
            if not self.correct_answer:
                raise ValueError("fill_in_the_blanks question needs at least one accepted answer")
        return self


# --- Per-question stats ---

class QuestionStats(_Record):
    question_id: StrictInt
    correct_count: int = Field(default=0, ge=0)
    incorrect_count: int = Field(default=0, ge=0)
    last_attempt: Optional[int] = None  # epoch ms
    is_important: Optional[bool] = None


# --- Exam history ---

class AnswerSnapshot(_Record):
    """Denormalised copy of one question as it was answered."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    question_id: int
    question: str
    question_type: QuestionType
    selected_answer: List[str] = Field(default_factory=list)
    correct_answer: List[str]
    is_correct: bool
    explanation: str = ""


class ExamResult(_Record):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: StrictStr = Field(min_length=1)
    date: int  # epoch ms
    score: int = Field(ge=0, le=100)
    total_questions: int = Field(ge=0)
    correct_answers: int = Field(ge=0)
    time_spent: int = Field(default=0, ge=0)  # ms
    subject_id: StrictStr = Field(min_length=1)
    answers: List[AnswerSnapshot]

    @field_validator("correct_answers")
    def _c_le_total(cls, v: int, info):  # type: ignore[override]
        total = info.data.get("total_questions")
        if total is not None and v > total:
            raise ValueError("correctAnswers must be <= totalQuestions")
        return v


# --- Subjects ---

class Subject(_Record):
    id: StrictStr = Field(min_length=1)
    name: StrictStr = Field(min_length=1)
    description: str = ""
    icon: str = ""
