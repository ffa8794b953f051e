from __future__ import annotations

"""Subject catalogue.

The stored catalogue replaces the built-in one as soon as it is non-empty.
Removing a subject never touches its question bank, stats, or results.
"""

import logging
import re
from typing import List

from storage.repository import Repository
from storage.schema import Subject

from ..errors import InvalidInput

logger = logging.getLogger(__name__)

DEFAULT_SUBJECTS: List[Subject] = [
    Subject(id="network", name="Networking Fundamentals", description="Computer networking concepts and protocols", icon="🌐"),
    Subject(id="rfid", name="RFID Technology", description="Radio-frequency identification and its applications", icon="📡"),
    Subject(id="programming", name="Programming", description="Programming basics and algorithms", icon="💻"),
    Subject(id="system", name="Systems Development", description="Systems analysis and software development", icon="🛠️"),
]


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


class SubjectCatalog:
    def __init__(self, repo: Repository[List[Subject]]) -> None:
        self.repo = repo

    def load(self) -> List[Subject]:
        stored, notice = self.repo.load_or_empty()
        if notice:
            logger.warning(notice)
        return stored if stored else list(DEFAULT_SUBJECTS)

    def get(self, subject_id: str) -> Subject | None:
        return next((s for s in self.load() if s.id == subject_id), None)

    def save(self, subjects: List[Subject]) -> None:
        self.repo.save(list(subjects))

    @staticmethod
    def _check(name: str, description: str, icon: str) -> None:
        if not name.strip():
            raise InvalidInput("Subject name is required.")
        if not description.strip():
            raise InvalidInput("Subject description is required.")
        if not icon.strip():
            raise InvalidInput("Subject icon is required.")

    def add(self, name: str, description: str, icon: str = "📚") -> Subject:
        self._check(name, description, icon)
        subjects = self.load()
        sid = slugify(name)
        if any(s.id == sid for s in subjects):
            raise InvalidInput(f"Subject id '{sid}' already exists; choose a different name.")
        subject = Subject(id=sid, name=name.strip(), description=description.strip(), icon=icon.strip())
        self.save(subjects + [subject])
        return subject

    def update(self, subject_id: str, name: str, description: str, icon: str) -> Subject:
        """Edit a subject; the id stays the same."""
        self._check(name, description, icon)
        subjects = self.load()
        if not any(s.id == subject_id for s in subjects):
            raise InvalidInput(f"Unknown subject '{subject_id}'.")
        subject = Subject(id=subject_id, name=name.strip(), description=description.strip(), icon=icon.strip())
        self.save([subject if s.id == subject_id else s for s in subjects])
        return subject

    def remove(self, subject_id: str) -> bool:
        subjects = self.load()
        kept = [s for s in subjects if s.id != subject_id]
        if len(kept) == len(subjects):
            return False
        self.save(kept)
        return True
