from __future__ import annotations

"""Session Manager: orchestrates subjects, question banks, exams and backups.

Owns the current subject, its bank and the single exam session. It is
front-end agnostic; the CLI drives it and asks for confirmation before any
destructive call, since each such call is the point of no return.
"""

import logging
import random
from pathlib import Path
from typing import IO, Any, Callable, Dict, List, Optional, Union

from storage.repository import Repositories
from storage.schema import ExamResult, Question, QuestionStats, Subject
from storage.store import KeyValueStore

from ..backup.archive import export_questions_zip as archive_export_questions_zip
from ..backup.archive import export_zip as archive_export_zip, read_zip
from ..backup.json_io import (
    dump_backup,
    dump_progress,
    dump_questions,
    dump_results,
    dump_stats,
    load_backup,
    load_progress,
    load_questions,
)
from ..backup.merge import MergePolicy, MergeReport, ImportPreview, merge_questions, preview
from ..backup.payload import BackupPayload, apply_backup, collect_backup
from ..backup.validate import DecodeResult, Decoded
from ..bank.editor import QuestionDraft, add_question, delete_question, update_question
from ..bank.loader import BankLoad, DefaultQuestionSource, QuestionBankLoader
from ..bank.question_bank import QuestionBank
from ..bank.subjects import SubjectCatalog
from ..errors import SessionRejected
from ..policy.selection import ExamMode, mode_counts
from ..results.result_manager import ResultManager
from ..stats.stats import StatsReconciler, now_ms
from .exam_session import ExamSession, SessionState, StartOutcome
from .explain import trace as xtrace

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(
        self,
        store: KeyValueStore,
        source: Optional[DefaultQuestionSource] = None,
        clock: Optional[Callable[[], int]] = None,
        rng: Optional[random.Random] = None,
        compression_level: int = 6,
    ) -> None:
        self.repos = Repositories(store)
        self.loader = QuestionBankLoader(self.repos, source)
        self.catalog = SubjectCatalog(self.repos.subjects)
        self.clock = clock or now_ms
        self.rng = rng
        self.compression_level = compression_level
        self.stats = StatsReconciler(self.repos.stats, self.clock)
        self.results = ResultManager(self.repos.results)
        self.subject: Optional[Subject] = None
        self.bank: Optional[QuestionBank] = None
        self.session: Optional[ExamSession] = None

    @property
    def notices(self) -> List[str]:
        """Load problems to show the user once at start-up."""
        return [n for n in (self.stats.notice, self.results.notice) if n]

    # --- Subjects ---

    def subjects(self) -> List[Subject]:
        return self.catalog.load()

    def select_subject(self, subject_id: str) -> BankLoad:
        subject = self.catalog.get(subject_id)
        if subject is None:
            raise SessionRejected(f"Unknown subject '{subject_id}'.")
        self.bank, loaded = self.loader.open_bank(subject_id)
        self.subject = subject
        self.session = ExamSession(self.bank, self.stats, self.results, self.clock, self.rng)
        xtrace("subject_selected", {"subject": subject_id, "questions": len(loaded.questions), "source": loaded.source})
        return loaded

    def add_subject(self, name: str, description: str, icon: str = "📚") -> Subject:
        subject = self.catalog.add(name, description, icon)
        xtrace("subject_added", {"subject": subject.id})
        return subject

    def update_subject(self, subject_id: str, name: str, description: str, icon: str) -> Subject:
        subject = self.catalog.update(subject_id, name, description, icon)
        if self.subject is not None and self.subject.id == subject_id:
            self.subject = subject
        return subject

    def remove_subject(self, subject_id: str) -> bool:
        """Drop a subject from the catalogue; its bank, stats and results stay stored."""
        if self.subject is not None and self.subject.id == subject_id:
            self._require_no_exam()
        removed = self.catalog.remove(subject_id)
        if removed and self.subject is not None and self.subject.id == subject_id:
            self.back_to_subjects()
        return removed

    def back_to_subjects(self) -> None:
        """Leave the subject; an unfinished exam is discarded."""
        self.subject = None
        self.bank = None
        self.session = None

    def _require_subject(self) -> QuestionBank:
        if self.bank is None:
            raise SessionRejected("Select a subject first.")
        return self.bank

    def _require_no_exam(self) -> None:
        if self.session is not None and self.session.state is SessionState.IN_PROGRESS:
            raise SessionRejected("Finish or end the current exam first.")

    # --- Exams ---

    def mode_counts(self) -> Dict[ExamMode, int]:
        bank = self._require_subject()
        return mode_counts(self.stats.for_subject(bank.subject_id), bank.questions)

    def start_exam(self, mode: ExamMode | str, count: Optional[int] = None) -> StartOutcome:
        self._require_subject()
        assert self.session is not None
        self._require_no_exam()
        return self.session.start(mode, count)

    def toggle_important(self, question_id: int) -> QuestionStats:
        bank = self._require_subject()
        return self.stats.toggle_important(bank.subject_id, question_id)

    def remove_from_stats(self, question_id: int) -> bool:
        bank = self._require_subject()
        return self.stats.remove(bank.subject_id, question_id)

    def history(self, subject_id: Optional[str] = None) -> List[ExamResult]:
        return self.results.for_subject(subject_id) if subject_id else self.results.all()

    # --- Question bank ---

    def reset_questions(self) -> BankLoad:
        """Drop the custom bank, reload the defaults and clear the subject's stats."""
        bank = self._require_subject()
        self._require_no_exam()
        loaded = self.loader.reset_to_default(bank.subject_id)
        self.stats.clear_subject(bank.subject_id)
        # the default set is not written back as a custom bank
        self.bank = QuestionBank(bank.subject_id, loaded.questions, bank.repo)
        self.session = ExamSession(self.bank, self.stats, self.results, self.clock, self.rng)
        xtrace("questions_reset", {"subject": bank.subject_id, "questions": len(loaded.questions)})
        return loaded

    def add_question(self, draft: QuestionDraft) -> Question:
        return add_question(self._require_subject(), draft)

    def update_question(self, question_id: int, draft: QuestionDraft) -> Question:
        return update_question(self._require_subject(), question_id, draft)

    def delete_question(self, question_id: int) -> bool:
        self._require_no_exam()
        return delete_question(self._require_subject(), self.stats, question_id)

    def preview_import(self, text: str) -> DecodeResult[ImportPreview]:
        bank = self._require_subject()
        decoded = load_questions(text)
        if not decoded.ok:
            return decoded
        return Decoded(preview(bank.questions, decoded.value))

    def import_questions(self, text: str, policy: MergePolicy | str) -> DecodeResult[MergeReport]:
        """Validate an uploaded question array, then merge it into the bank.

        Nothing is written unless every record is valid.
        """
        bank = self._require_subject()
        self._require_no_exam()
        decoded = load_questions(text)
        if not decoded.ok:
            logger.info("Question import rejected: %d issue(s)", len(decoded.issues))
            return decoded
        report = merge_questions(bank.questions, decoded.value, policy)
        bank.replace_all(report.questions)
        xtrace(
            "questions_imported",
            {"subject": bank.subject_id, "policy": report.policy.value, "added": report.added, "updated": report.updated},
        )
        return Decoded(report)

    def export_questions(self) -> str:
        return dump_questions(self._require_subject().questions)

    # --- Backups ---

    def _after_restore(self) -> None:
        self.stats.reload()
        self.results.reload()
        if self.subject is None:
            return
        if self.catalog.get(self.subject.id) is None:
            self.back_to_subjects()
        else:
            self.select_subject(self.subject.id)

    def export_zip(self, target: Union[str, Path, IO[bytes]]) -> Dict[str, Any]:
        payload = collect_backup(self.repos, self.subjects())
        return archive_export_zip(payload, target, self.compression_level)

    def import_zip(self, source: Union[str, Path, IO[bytes]]) -> DecodeResult[Dict[str, int]]:
        """Validate a ZIP backup and restore every category it contains."""
        self._require_no_exam()
        decoded = read_zip(source)
        if not decoded.ok:
            logger.info("ZIP import rejected: %d issue(s)", len(decoded.issues))
            return decoded
        counts = apply_backup(decoded.value, self.repos)
        self._after_restore()
        xtrace("backup_imported", counts)
        return Decoded(counts)

    def export_questions_zip(self, target: Union[str, Path, IO[bytes]]) -> Dict[str, Any]:
        """Questions-only archive of every subject that has a custom bank."""
        subjects = self.subjects()
        banks = {s.id: self.repos.questions(s.id).load_or_empty()[0] for s in subjects}
        return archive_export_questions_zip(subjects, banks, target, self.compression_level)

    def export_backup(self) -> str:
        """Full backup as one JSON document."""
        return dump_backup(collect_backup(self.repos, self.subjects()))

    def import_backup(self, text: str) -> DecodeResult[Dict[str, int]]:
        self._require_no_exam()
        decoded = load_backup(text)
        if not decoded.ok:
            logger.info("JSON backup import rejected: %d issue(s)", len(decoded.issues))
            return decoded
        counts = apply_backup(decoded.value, self.repos)
        self._after_restore()
        xtrace("backup_imported", counts)
        return Decoded(counts)

    def export_progress(self) -> str:
        return dump_progress(self.stats.all(), self.results.all())

    def export_stats(self) -> str:
        return dump_stats(self.stats.all())

    def export_results(self) -> str:
        return dump_results(self.results.all())

    def import_progress(self, text: str) -> DecodeResult[Dict[str, int]]:
        self._require_no_exam()
        decoded = load_progress(text)
        if not decoded.ok:
            return decoded
        payload: BackupPayload = decoded.value
        if payload.question_stats is not None:
            self.stats.replace_all(payload.question_stats)
        if payload.exam_results is not None:
            self.results.replace_all(payload.exam_results)
        counts = payload.counts()
        xtrace("progress_imported", counts)
        return Decoded(counts)

    def clear_all_data(self) -> None:
        """Erase every stat entry and the whole exam history. Question banks stay."""
        self._require_no_exam()
        self.stats.clear_all()
        self.results.clear()
        logger.info("All stats and exam results cleared")
        xtrace("data_cleared", {})
