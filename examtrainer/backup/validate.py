from __future__ import annotations

"""Decoders for imported data.

Every decoder returns a tagged result instead of raising: `Decoded(value)` on
success, `Invalid(issues)` with one entry per problem otherwise. Nothing is
applied anywhere until a caller receives a `Decoded`.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, Sequence, Tuple, TypeVar, Union

from pydantic import BaseModel, ValidationError

from storage.schema import ExamResult, Question, QuestionStats, Subject

from .payload import BackupPayload

T = TypeVar("T")


@dataclass(frozen=True)
class ValidationIssue:
    location: str
    message: str
    index: Optional[int] = None
    record_id: Any = None

    def __str__(self) -> str:
        where = self.location
        if self.record_id is not None:
            where += f" (id: {self.record_id})"
        return f"{where}: {self.message}"


@dataclass(frozen=True)
class Decoded(Generic[T]):
    value: T
    ok: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Invalid:
    issues: List[ValidationIssue]
    ok: bool = field(default=False, init=False)

    @property
    def messages(self) -> List[str]:
        return [str(i) for i in self.issues]


DecodeResult = Union[Decoded[T], Invalid]


def invalid(message: str, location: str = "$") -> Invalid:
    return Invalid([ValidationIssue(location, message)])


def _fmt_loc(base: str, loc: Tuple[Any, ...]) -> str:
    out = base
    for part in loc:
        out += f"[{part}]" if isinstance(part, int) else f".{part}"
    return out


def _issues_from(e: ValidationError, base: str, index: Optional[int], record_id: Any) -> List[ValidationIssue]:
    issues = []
    for err in e.errors():
        # model-level checks carry no field location
        loc = tuple(p for p in err.get("loc", ()) if p != "__root__")
        msg = str(err.get("msg", "invalid")).removeprefix("Value error, ")
        issues.append(ValidationIssue(_fmt_loc(base, loc), msg, index, record_id))
    return issues


def _record_id(raw: Any, key: str) -> Any:
    return raw.get(key) if isinstance(raw, dict) else None


def _decode_records(
    raw: Any,
    model: type[BaseModel],
    base: str,
    id_key: str,
    fail_fast: bool,
) -> Tuple[List[Any], List[ValidationIssue]]:
    if not isinstance(raw, list):
        return [], [ValidationIssue(base, "must be an array")]
    records: List[Any] = []
    issues: List[ValidationIssue] = []
    for i, item in enumerate(raw):
        try:
            records.append(model.model_validate(item))
        except ValidationError as e:
            issues.extend(_issues_from(e, f"{base}[{i}]", i, _record_id(item, id_key)))
            if fail_fast:
                break
    return records, issues


def _decode_mapping(
    raw: Any,
    model: type[BaseModel],
    base: str,
    id_key: str,
) -> Tuple[Dict[str, List[Any]], List[ValidationIssue]]:
    if not isinstance(raw, dict):
        return {}, [ValidationIssue(base, "must be an object keyed by subject id")]
    out: Dict[str, List[Any]] = {}
    issues: List[ValidationIssue] = []
    for subject_id, items in raw.items():
        if not str(subject_id).strip():
            issues.append(ValidationIssue(base, "subject id must not be empty"))
            continue
        records, errs = _decode_records(items, model, f'{base}["{subject_id}"]', id_key, fail_fast=False)
        out[subject_id] = records
        issues.extend(errs)
    return out, issues


def _repeated_ids(questions: Sequence[Question], base: str) -> List[ValidationIssue]:
    first: Dict[int, int] = {}
    issues: List[ValidationIssue] = []
    for i, q in enumerate(questions):
        if q.id in first:
            issues.append(ValidationIssue(f"{base}[{i}].id", f"duplicate id; already used at index {first[q.id]}", i, q.id))
        else:
            first[q.id] = i
    return issues


def decode_questions(raw: Any) -> DecodeResult[List[Question]]:
    """Validate an uploaded question array; stop at the first bad record.

    Ids must be unique within the array.
    """
    records, issues = _decode_records(raw, Question, "questions", "id", fail_fast=True)
    if issues:
        return Invalid(issues)
    repeated = _repeated_ids(records, "questions")
    if repeated:
        return Invalid(repeated[:1])
    return Decoded(records)


def decode_subjects(raw: Any) -> DecodeResult[List[Subject]]:
    records, issues = _decode_records(raw, Subject, "subjects", "id", fail_fast=False)
    return Invalid(issues) if issues else Decoded(records)


def decode_backup(raw: BackupPayload | Dict[str, Any]) -> DecodeResult[BackupPayload]:
    """Validate every category present in a backup and collect all issues."""
    if isinstance(raw, BackupPayload):
        raw = raw.to_json()
    if not isinstance(raw, dict):
        return invalid("backup must be a JSON object")

    issues: List[ValidationIssue] = []
    payload = BackupPayload()
    if raw.get("subjects") is not None:
        payload.subjects, errs = _decode_records(raw["subjects"], Subject, "subjects", "id", fail_fast=False)
        issues.extend(errs)
    if raw.get("questions") is not None:
        payload.questions, errs = _decode_mapping(raw["questions"], Question, "questions", "id")
        issues.extend(errs)
        for subject_id, bank in payload.questions.items():
            issues.extend(_repeated_ids(bank, f'questions["{subject_id}"]'))
    if raw.get("questionStats") is not None:
        payload.question_stats, errs = _decode_mapping(raw["questionStats"], QuestionStats, "questionStats", "questionId")
        issues.extend(errs)
    if raw.get("examResults") is not None:
        payload.exam_results, errs = _decode_records(raw["examResults"], ExamResult, "examResults", "id", fail_fast=False)
        issues.extend(errs)

    if payload.is_empty() and not issues:
        issues.append(ValidationIssue("$", "no subjects, questions, questionStats or examResults found"))
    return Invalid(issues) if issues else Decoded(payload)


def decode_progress(raw: Any) -> DecodeResult[BackupPayload]:
    """Validate a `{questionStats, examResults}` document; at least one is required."""
    if not isinstance(raw, dict):
        return invalid("data must be a JSON object")
    if raw.get("questionStats") is None and raw.get("examResults") is None:
        return invalid("data must contain questionStats or examResults")
    return decode_backup({"questionStats": raw.get("questionStats"), "examResults": raw.get("examResults")})


def issue_summary(issues: Sequence[ValidationIssue], limit: int = 10) -> str:
    lines = [str(i) for i in issues[:limit]]
    if len(issues) > limit:
        lines.append(f"... and {len(issues) - limit} more")
    return "\n".join(lines)
