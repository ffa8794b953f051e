from .config import AnalyticsConfig
from .metrics import accuracy_by_chapter, subject_summary, weakest_questions
from .prepare import export_ndjson, results_frame, stats_frame, write_parquet
from .smoothing import ewma_scores
from .plots import plot_chapter_accuracy, plot_score_trend

__all__ = [
    "AnalyticsConfig",
    "accuracy_by_chapter",
    "subject_summary",
    "weakest_questions",
    "export_ndjson",
    "results_frame",
    "stats_frame",
    "write_parquet",
    "ewma_scores",
    "plot_chapter_accuracy",
    "plot_score_trend",
]
