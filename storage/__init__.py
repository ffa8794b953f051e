from .schema import (
    QUESTION_TYPES,
    CHOICE_TYPES,
    FILL_IN,
    SUBJECTS_KEY,
    STATS_KEY,
    RESULTS_KEY,
    questions_key,
    QuestionOption,
    Question,
    QuestionStats,
    AnswerSnapshot,
    ExamResult,
    Subject,
)
from .store import KeyValueStore, MemoryStore, JsonFileStore, StoreError, init_store
from .repository import Repository, Repositories

__all__ = [
    "QUESTION_TYPES",
    "CHOICE_TYPES",
    "FILL_IN",
    "SUBJECTS_KEY",
    "STATS_KEY",
    "RESULTS_KEY",
    "questions_key",
    "QuestionOption",
    "Question",
    "QuestionStats",
    "AnswerSnapshot",
    "ExamResult",
    "Subject",
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "StoreError",
    "init_store",
    "Repository",
    "Repositories",
]
