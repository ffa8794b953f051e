from __future__ import annotations

"""Matplotlib plots for score trends and chapter accuracy."""

from typing import Optional

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt


def plot_score_trend(
    df: pd.DataFrame,
    *,
    subject_id: Optional[str] = None,
    value_col: str = "score",
    save_path: Optional[str | bytes | "os.PathLike[str]"] = None,
) -> bool:
    """Scores per exam, with the EWMA line when present. False if nothing to plot."""
    g = df.copy()
    if subject_id is not None:
        g = g[g["subject_id"].astype("string") == subject_id]
    if g.empty:
        return False
    g = g.sort_values("exam_idx")
    plt.figure()
    plt.plot(g["exam_idx"] + 1, g[value_col], marker="o", linestyle="", label=value_col)
    smooth_col = f"{value_col}_smooth"
    if smooth_col in g.columns:
        plt.plot(g["exam_idx"] + 1, g[smooth_col], linewidth=2, label=f"{value_col} (EWMA)")
    plt.xlabel("Exam")
    plt.ylabel("Score (%)")
    plt.ylim(0, 100)
    plt.title(f"Score trend: {subject_id}" if subject_id else "Score trend")
    plt.legend()
    if save_path:
        plt.savefig(save_path, bbox_inches="tight", dpi=150)
    plt.close()
    return True


def plot_chapter_accuracy(
    chapters: pd.DataFrame,
    *,
    title: str = "Accuracy by chapter",
    save_path: Optional[str | bytes | "os.PathLike[str]"] = None,
) -> bool:
    """Horizontal bars from `metrics.accuracy_by_chapter`; unanswered chapters are skipped."""
    g = chapters.dropna(subset=["acc"])
    if g.empty:
        return False
    y = np.arange(len(g))
    plt.figure(figsize=(6, max(2.0, 0.4 * len(g) + 1)))
    plt.barh(y, g["acc"].to_numpy() * 100)
    plt.yticks(ticks=y, labels=g["chapter"].astype(str))
    plt.xlim(0, 100)
    plt.xlabel("Accuracy (%)")
    plt.title(title)
    if save_path:
        plt.savefig(save_path, bbox_inches="tight", dpi=150)
    plt.close()
    return True
