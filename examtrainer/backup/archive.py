from __future__ import annotations

"""ZIP backup archives.

Full backup layout (version 2.0):
    metadata.json          manifest (version, exportDate, counts)
    subjects.json          subject catalogue
    questions/<id>.json    one question array per subject
    stats/<id>.json        one stats array per subject
    exam-results.json      exam history
    README.txt             human-readable description

Question-only export (version 1.0):
    metadata.json                manifest (version, exportDate, subjectCount, totalQuestions)
    questions/<id>_<name>.json   one question array per subject with a custom bank
    README.txt

Subject ids are percent-encoded in entry names. Any category may be missing on
import; an archive with none of them is rejected.
"""

import io
import json
import logging
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Callable, Dict, List, Sequence, Union
from urllib.parse import quote, unquote

from storage.schema import Question, Subject

from ..errors import BackupError
from .payload import BackupPayload
from .validate import DecodeResult, Invalid, ValidationIssue, decode_backup, invalid

logger = logging.getLogger(__name__)

ARCHIVE_VERSION = "2.0"
QUESTIONS_ARCHIVE_VERSION = "1.0"
PLACEHOLDER = ".placeholder"

Target = Union[str, Path, IO[bytes]]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _entry_id(subject_id: str) -> str:
    return quote(subject_id, safe="")


def _bank_entry(subject: Subject) -> str:
    # "_" separates id and name, so it is encoded inside the id
    name = subject.name.replace("/", "-").replace("\\", "-")
    return f"{_entry_id(subject.id).replace('_', '%5F')}_{name}"


def _bank_entry_id(stem: str) -> str:
    return unquote(stem.partition("_")[0])


def _readme(payload: BackupPayload, exported_at: str) -> str:
    counts = payload.counts()
    bank_files = "\n".join(f"  - {sid}.json" for sid in map(_entry_id, payload.questions or {})) or "  (no question banks)"
    stat_files = "\n".join(f"  - {sid}.json" for sid in map(_entry_id, payload.question_stats or {})) or "  (no stats)"
    return (
        "# Exam data backup\n\n"
        f"- Exported: {exported_at}\n"
        f"- Version: {ARCHIVE_VERSION}\n"
        f"- Subjects: {counts['subjects']}\n"
        f"- Questions: {counts['questions']}\n"
        f"- Stat entries: {counts['questionStats']}\n"
        f"- Exam results: {counts['examResults']}\n\n"
        "## Layout\n\n"
        "- metadata.json: backup manifest\n"
        "- subjects.json: subject list\n"
        "- questions/: question bank per subject id\n"
        f"{bank_files}\n"
        "- stats/: answer stats per subject id\n"
        f"{stat_files}\n"
        "- exam-results.json: exam history\n\n"
        "Importing this archive replaces every category it contains.\n"
    )


def _dump(doc: Any) -> str:
    return json.dumps(doc, ensure_ascii=False, indent=2)


def export_zip(payload: BackupPayload, target: Target, compression_level: int = 6) -> Dict[str, Any]:
    """Write `payload` as a ZIP archive to a path or binary file object. Returns the manifest."""
    exported_at = _now_iso()
    doc = payload.to_json()
    metadata = {
        "version": ARCHIVE_VERSION,
        "exportDate": exported_at,
        "description": "Complete exam data backup",
        "counts": payload.counts(),
    }
    try:
        with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=compression_level) as zf:
            zf.writestr("metadata.json", _dump(metadata))
            zf.writestr("subjects.json", _dump(doc.get("subjects", [])))
            banks = doc.get("questions", {})
            for sid, questions in banks.items():
                zf.writestr(f"questions/{_entry_id(sid)}.json", _dump(questions))
            if not banks:
                zf.writestr(f"questions/{PLACEHOLDER}", "Question banks per subject go in this folder.")
            stats = doc.get("questionStats", {})
            for sid, entries in stats.items():
                zf.writestr(f"stats/{_entry_id(sid)}.json", _dump(entries))
            if not stats:
                zf.writestr(f"stats/{PLACEHOLDER}", "Answer stats per subject go in this folder.")
            zf.writestr("exam-results.json", _dump(doc.get("examResults", [])))
            zf.writestr("README.txt", _readme(payload, exported_at))
    except OSError as e:
        raise BackupError(f"Could not write backup archive: {e}") from e
    logger.info("Exported ZIP backup: %s", metadata["counts"])
    return metadata


def export_zip_bytes(payload: BackupPayload, compression_level: int = 6) -> bytes:
    buf = io.BytesIO()
    export_zip(payload, buf, compression_level)
    return buf.getvalue()


def _questions_readme(subjects: Sequence[Subject], banks: Dict[str, List[Question]], exported_at: str, total: int) -> str:
    listing = "\n".join(f"- {s.name} ({s.id}): {len(banks.get(s.id, []))} questions" for s in subjects)
    files = "\n".join(f"  - {_bank_entry(s)}.json ({len(banks[s.id])} questions)" for s in subjects if banks.get(s.id))
    return (
        "# Question bank export\n\n"
        f"- Exported: {exported_at}\n"
        f"- Version: {QUESTIONS_ARCHIVE_VERSION}\n"
        f"- Subjects: {len(subjects)}\n"
        f"- Questions: {total}\n\n"
        "## Subjects\n\n"
        f"{listing}\n\n"
        "## Layout\n\n"
        "- metadata.json: export manifest\n"
        "- questions/: one question array per subject, named <subject id>_<subject name>.json\n"
        f"{files}\n\n"
        "Each file can be uploaded on its own as a subject's question bank, or the\n"
        "whole archive can be imported; files are matched to subjects by id.\n"
    )


def export_questions_zip(
    subjects: Sequence[Subject],
    banks: Dict[str, List[Question]],
    target: Target,
    compression_level: int = 6,
) -> Dict[str, Any]:
    """Write the custom question banks of `subjects` only. Returns the manifest.

    Raises BackupError when no subject has a custom bank.
    """
    banks = {s.id: banks[s.id] for s in subjects if banks.get(s.id)}
    if not banks:
        raise BackupError("There are no question banks to export.")
    exported_at = _now_iso()
    total = sum(len(b) for b in banks.values())
    metadata = {
        "version": QUESTIONS_ARCHIVE_VERSION,
        "exportDate": exported_at,
        "description": "Question bank export",
        "subjectCount": len(subjects),
        "totalQuestions": total,
    }
    try:
        with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=compression_level) as zf:
            zf.writestr("metadata.json", _dump(metadata))
            for s in subjects:
                if s.id in banks:
                    zf.writestr(f"questions/{_bank_entry(s)}.json", _dump([q.to_json() for q in banks[s.id]]))
            zf.writestr("README.txt", _questions_readme(subjects, banks, exported_at, total))
    except OSError as e:
        raise BackupError(f"Could not write question archive: {e}") from e
    logger.info("Exported question ZIP: %d subjects, %d questions", len(banks), total)
    return metadata


def _folder(
    zf: zipfile.ZipFile,
    prefix: str,
    raw: Dict[str, Any],
    key: str,
    issues: List[ValidationIssue],
    entry_id: Callable[[str], str] = unquote,
) -> None:
    names = [n for n in zf.namelist() if n.startswith(prefix) and n != prefix]
    if not names:
        return
    # a folder holding only the placeholder still counts as present (and empty)
    folder: Dict[str, Any] = {}
    for name in names:
        rel = name[len(prefix) :]
        if name.endswith("/") or "/" in rel or not rel.endswith(".json"):
            continue
        try:
            folder[entry_id(rel[: -len(".json")])] = json.loads(zf.read(name).decode("utf-8"))
        except (ValueError, UnicodeDecodeError) as e:
            issues.append(ValidationIssue(name, f"not valid JSON: {e}"))
    raw[key] = folder


def _file(zf: zipfile.ZipFile, name: str, raw: Dict[str, Any], key: str, issues: List[ValidationIssue]) -> None:
    if name not in zf.namelist():
        return
    try:
        raw[key] = json.loads(zf.read(name).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as e:
        issues.append(ValidationIssue(name, f"not valid JSON: {e}"))


def _archive_version(zf: zipfile.ZipFile) -> str:
    try:
        meta = json.loads(zf.read("metadata.json").decode("utf-8"))
    except (KeyError, ValueError, UnicodeDecodeError):
        return ARCHIVE_VERSION
    version = meta.get("version") if isinstance(meta, dict) else None
    return str(version) if version is not None else ARCHIVE_VERSION


def read_zip(source: Target) -> DecodeResult[BackupPayload]:
    """Parse and validate a ZIP backup without applying it.

    Question-only archives (version 1.0) restore just the banks they hold.
    """
    raw: Dict[str, Any] = {}
    issues: List[ValidationIssue] = []
    try:
        with zipfile.ZipFile(source) as zf:
            if _archive_version(zf) == QUESTIONS_ARCHIVE_VERSION:
                _folder(zf, "questions/", raw, "questions", issues, _bank_entry_id)
            else:
                _file(zf, "subjects.json", raw, "subjects", issues)
                _folder(zf, "questions/", raw, "questions", issues)
                _folder(zf, "stats/", raw, "questionStats", issues)
                _file(zf, "exam-results.json", raw, "examResults", issues)
    except (zipfile.BadZipFile, OSError) as e:
        return invalid(f"not a readable ZIP archive: {e}")
    if issues:
        return Invalid(issues)
    return decode_backup(raw)
