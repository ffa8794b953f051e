from __future__ import annotations

"""Question bank loading.

A subject's stored custom bank takes precedence over the default set, which is
resolved by convention as `questions-<subject>.json` under a directory or an
http(s) base URL. Every failure degrades to an empty bank plus a notice.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Literal, Optional

import requests
from pydantic import ValidationError

from storage.repository import QUESTION_LIST, Repositories
from storage.schema import Question
from storage.store import StoreError

from .question_bank import QuestionBank

logger = logging.getLogger(__name__)

PACKAGED_QUESTIONS = Path(__file__).resolve().parent.parent / "resources"


def default_questions_name(subject_id: str) -> str:
    return f"questions-{subject_id}.json"


class DefaultQuestionSource:
    """Fetch bundled default question sets by subject id."""

    def __init__(self, location: Optional[str | Path] = None, timeout_s: float = 10.0) -> None:
        self.location = str(location) if location is not None else str(PACKAGED_QUESTIONS)
        self.timeout_s = timeout_s

    @property
    def is_remote(self) -> bool:
        return self.location.startswith(("http://", "https://"))

    def fetch(self, subject_id: str) -> Any:
        """Return the decoded JSON document. Raises on any failure."""
        name = default_questions_name(subject_id)
        if self.is_remote:
            url = self.location.rstrip("/") + "/" + name
            resp = requests.get(url, timeout=self.timeout_s)
            resp.raise_for_status()
            return resp.json()
        with (Path(self.location) / name).open("r", encoding="utf-8") as f:
            return json.load(f)


@dataclass(frozen=True)
class BankLoad:
    subject_id: str
    questions: List[Question]
    source: Literal["custom", "default", "empty"]
    notice: Optional[str] = None


class QuestionBankLoader:
    def __init__(self, repos: Repositories, source: Optional[DefaultQuestionSource] = None) -> None:
        self.repos = repos
        self.source = source or DefaultQuestionSource()

    def _load_default(self, subject_id: str) -> BankLoad:
        try:
            raw = self.source.fetch(subject_id)
            questions = QUESTION_LIST.validate_python(raw)
        except (OSError, ValueError, requests.RequestException, ValidationError) as e:
            # ValueError covers JSON decoding errors from both file and HTTP paths
            logger.warning("Default questions for %s unavailable: %s", subject_id, e)
            return BankLoad(subject_id, [], "empty", f"Could not load questions for '{subject_id}'.")
        return BankLoad(subject_id, questions, "default")

    def load(self, subject_id: str) -> BankLoad:
        """Stored custom questions when non-empty, else the default set."""
        notice = None
        try:
            custom = self.repos.questions(subject_id).load()
        except (StoreError, ValidationError) as e:
            logger.warning("Custom questions for %s unreadable: %s", subject_id, e)
            custom = []
            notice = f"Saved questions for '{subject_id}' could not be read; using the default set."
        if custom:
            return BankLoad(subject_id, custom, "custom")
        loaded = self._load_default(subject_id)
        if notice and loaded.notice is None:
            return BankLoad(subject_id, loaded.questions, loaded.source, notice)
        return loaded

    def reset_to_default(self, subject_id: str) -> BankLoad:
        """Drop the custom bank and return the default set."""
        try:
            self.repos.questions(subject_id).clear()
        except StoreError as e:
            logger.warning("Could not delete custom questions for %s: %s", subject_id, e)
            return BankLoad(subject_id, [], "empty", f"Could not reset questions for '{subject_id}'.")
        return self._load_default(subject_id)

    def open_bank(self, subject_id: str) -> tuple[QuestionBank, BankLoad]:
        loaded = self.load(subject_id)
        return QuestionBank(subject_id, loaded.questions, self.repos.questions(subject_id)), loaded
