from __future__ import annotations

"""Typed repositories over a KeyValueStore.

Each repository owns one key and decodes/encodes its value through a pydantic
TypeAdapter, so callers only ever see validated records.
"""

import logging
from typing import Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from pydantic import TypeAdapter, ValidationError

from .schema import (
    RESULTS_KEY,
    STATS_KEY,
    SUBJECTS_KEY,
    ExamResult,
    Question,
    QuestionStats,
    Subject,
    questions_key,
)
from .store import KeyValueStore, StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUBJECT_LIST = TypeAdapter(List[Subject])
QUESTION_LIST = TypeAdapter(List[Question])
STATS_MAP = TypeAdapter(Dict[str, List[QuestionStats]])
RESULT_LIST = TypeAdapter(List[ExamResult])


class Repository(Generic[T]):
    def __init__(self, store: KeyValueStore, key: str, adapter: TypeAdapter, empty: Callable[[], T]) -> None:
        self.store = store
        self.key = key
        self.adapter = adapter
        self._empty = empty

    def exists(self) -> bool:
        return self.store.get(self.key) is not None

    def load(self) -> T:
        """Return the stored value, or the empty value when the key is unset.

        Raises StoreError on I/O failure and pydantic.ValidationError when the
        stored document no longer matches the schema.
        """
        raw = self.store.get(self.key)
        if raw is None:
            return self._empty()
        return self.adapter.validate_python(raw)

    def load_or_empty(self) -> Tuple[T, Optional[str]]:
        """Like load(), but degrade to the empty value and return a user-facing notice."""
        try:
            return self.load(), None
        except (StoreError, ValidationError) as e:
            logger.warning("Could not load %s: %s", self.key, e)
            return self._empty(), f"Saved data under '{self.key}' could not be read; starting empty."

    def save(self, value: T) -> None:
        self.store.set(self.key, self.adapter.dump_python(value, by_alias=True, exclude_none=True, mode="json"))

    def clear(self) -> None:
        self.store.delete(self.key)


class Repositories:
    """Bundle of the repositories for every key family."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self.subjects: Repository[List[Subject]] = Repository(store, SUBJECTS_KEY, SUBJECT_LIST, list)
        self.stats: Repository[Dict[str, List[QuestionStats]]] = Repository(store, STATS_KEY, STATS_MAP, dict)
        self.results: Repository[List[ExamResult]] = Repository(store, RESULTS_KEY, RESULT_LIST, list)

    def questions(self, subject_id: str) -> Repository[List[Question]]:
        return Repository(self.store, questions_key(subject_id), QUESTION_LIST, list)
