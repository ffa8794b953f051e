from __future__ import annotations

"""Aggregate metrics over the per-question stats frame."""

from typing import Any, Dict

import numpy as np
import pandas as pd

from .config import AnalyticsConfig


def accuracy_by_chapter(df: pd.DataFrame) -> pd.DataFrame:
    """Per chapter: question count, answers, correct, pooled accuracy.

    Returns columns: chapter, questions, answers, correct, acc (NaN when a
    chapter has no answers yet), sorted weakest first.
    """
    g = df.groupby("chapter", observed=True).agg(
        questions=("question_id", "size"),
        answers=("answers", "sum"),
        correct=("correct", "sum"),
    )
    g["acc"] = (g["correct"] / g["answers"].where(g["answers"] > 0)).astype("float32")
    return g.reset_index().sort_values(["acc", "chapter"], kind="stable", na_position="last").reset_index(drop=True)


def weakest_questions(df: pd.DataFrame, cfg: AnalyticsConfig, limit: int = 10) -> pd.DataFrame:
    """Answered questions at or below `weak_accuracy`, lowest accuracy then most misses first."""
    answered = df[df["answers"] >= cfg.min_answers]
    weak = answered[answered["acc"] <= cfg.weak_accuracy]
    return weak.sort_values(["acc", "incorrect", "question_id"], ascending=[True, False, True], kind="stable").head(limit)


def subject_summary(df: pd.DataFrame) -> Dict[str, Any]:
    answers = int(df["answers"].sum())
    correct = int(df["correct"].sum())
    return {
        "questions": int(len(df)),
        "answered": int((df["answers"] > 0).sum()),
        "answers": answers,
        "accuracy": float(np.round(correct / answers, 4)) if answers else None,
        "wrong_once": int((df["incorrect"] > 0).sum()),
        "important": int(df["important"].sum()),
    }
