from __future__ import annotations

"""JSON import/export formats.

- question array: `[Question, ...]` for one subject
- progress: `{questionStats, examResults, exportDate, version}`
- stats only: `{subjectId: [QuestionStats, ...]}`; results only: `[ExamResult, ...]`
- full backup: `{subjects, questions, questionStats, examResults, exportDate, version}`
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Sequence

from storage.schema import ExamResult, Question, QuestionStats

from .payload import BackupPayload
from .validate import DecodeResult, Decoded, Invalid, ValidationIssue, decode_backup, decode_progress, decode_questions

JSON_FORMAT_VERSION = "1.0"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def dumps(doc: Any) -> str:
    return json.dumps(doc, ensure_ascii=False, indent=2)


def parse_json(text: str) -> DecodeResult[Any]:
    """Parse text; on failure the issue quotes the text around the error."""
    try:
        return Decoded(json.loads(text))
    except json.JSONDecodeError as e:
        context = text[max(0, e.pos - 20) : e.pos + 20]
        return Invalid(
            [ValidationIssue(f"line {e.lineno} column {e.colno}", f"JSON parse error: {e.msg} near ...{context}...")]
        )


# --- Question arrays ---

def dump_questions(questions: Sequence[Question]) -> str:
    return dumps([q.to_json() for q in questions])


def load_questions(text: str) -> DecodeResult[List[Question]]:
    parsed = parse_json(text)
    if not parsed.ok:
        return parsed
    return decode_questions(parsed.value)


# --- Progress (stats + history) ---

def dump_progress(stats: Dict[str, List[QuestionStats]], results: Sequence[ExamResult]) -> str:
    doc = BackupPayload(question_stats=stats, exam_results=list(results)).to_json()
    doc["exportDate"] = _now_iso()
    doc["version"] = JSON_FORMAT_VERSION
    return dumps(doc)


def dump_stats(stats: Dict[str, List[QuestionStats]]) -> str:
    """Bare `{subjectId: [QuestionStats, ...]}` object, as stored."""
    return dumps({sid: [s.to_json() for s in entries] for sid, entries in stats.items()})


def dump_results(results: Sequence[ExamResult]) -> str:
    """Bare exam history array, newest first."""
    return dumps([r.to_json() for r in results])


def load_progress(text: str) -> DecodeResult[BackupPayload]:
    parsed = parse_json(text)
    if not parsed.ok:
        return parsed
    return decode_progress(parsed.value)


# --- Full backups ---

def dump_backup(payload: BackupPayload) -> str:
    doc = payload.to_json()
    doc["exportDate"] = _now_iso()
    doc["version"] = JSON_FORMAT_VERSION
    return dumps(doc)


def load_backup(text: str) -> DecodeResult[BackupPayload]:
    parsed = parse_json(text)
    if not parsed.ok:
        return parsed
    return decode_backup(parsed.value)
