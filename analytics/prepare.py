from __future__ import annotations

"""Build DataFrames from question stats and exam results, and export them."""

from pathlib import Path
from typing import Sequence

import pandas as pd

from storage.schema import ExamResult, Question, QuestionStats

STATS_COLUMNS = [
    "question_id",
    "chapter",
    "type",
    "correct",
    "incorrect",
    "answers",
    "acc",
    "important",
    "last_attempt",
]
RESULT_COLUMNS = ["result_id", "subject_id", "date", "score", "total", "correct", "time_spent_ms", "exam_idx"]


def stats_frame(stats: Sequence[QuestionStats], questions: Sequence[Question]) -> pd.DataFrame:
    """One row per bank question, joined with its stat entry (zeros if none).

    Stat entries for questions no longer in the bank are dropped.
    """
    by_id = {s.question_id: s for s in stats}
    rows = []
    for q in questions:
        s = by_id.get(q.id)
        correct = s.correct_count if s else 0
        incorrect = s.incorrect_count if s else 0
        rows.append(
            {
                "question_id": q.id,
                "chapter": q.chapter or "(none)",
                "type": q.type,
                "correct": correct,
                "incorrect": incorrect,
                "important": bool(s.is_important) if s else False,
                "last_attempt": s.last_attempt if s else None,
            }
        )
    df = pd.DataFrame(rows, columns=[c for c in STATS_COLUMNS if c not in ("answers", "acc")])
    df["correct"] = df["correct"].astype("int32")
    df["incorrect"] = df["incorrect"].astype("int32")
    df["answers"] = (df["correct"] + df["incorrect"]).astype("int32")
    # NaN accuracy for never-answered questions
    df["acc"] = (df["correct"] / df["answers"].where(df["answers"] > 0)).astype("float32")
    df["last_attempt"] = pd.to_datetime(pd.to_numeric(df["last_attempt"]), unit="ms", utc=True)
    for col in ("chapter", "type"):
        df[col] = df[col].astype("category")
    return df[STATS_COLUMNS]


def results_frame(results: Sequence[ExamResult]) -> pd.DataFrame:
    """Exam history in chronological order with a stable `exam_idx` per subject."""
    df = pd.DataFrame(
        [
            {
                "result_id": r.id,
                "subject_id": r.subject_id,
                "date": r.date,
                "score": r.score,
                "total": r.total_questions,
                "correct": r.correct_answers,
                "time_spent_ms": r.time_spent,
            }
            for r in results
        ],
        columns=RESULT_COLUMNS[:-1],
    )
    df = df.sort_values(["date", "result_id"], kind="stable").reset_index(drop=True)
    df["date"] = pd.to_datetime(df["date"].astype("int64"), unit="ms", utc=True)
    df["subject_id"] = df["subject_id"].astype("category")
    df["exam_idx"] = df.groupby("subject_id", observed=True).cumcount().astype("int32")
    return df


def export_ndjson(df: pd.DataFrame, out_path: Path) -> None:
    """Write one JSON object per row, ISO dates."""
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_json(out_path, orient="records", lines=True, date_format="iso")


def write_parquet(df: pd.DataFrame, out_path: Path) -> None:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_parquet(out_path, engine="pyarrow", compression="zstd", index=False)
