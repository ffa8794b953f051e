import tempfile
import unittest
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import pandas as pd

from analytics import (
    AnalyticsConfig,
    accuracy_by_chapter,
    ewma_scores,
    export_ndjson,
    plot_chapter_accuracy,
    plot_score_trend,
    results_frame,
    stats_frame,
    subject_summary,
    weakest_questions,
    write_parquet,
)
from storage.schema import ExamResult

from factories import single, stat


def result(rid: int, subject: str, score: int) -> ExamResult:
    return ExamResult(
        id=str(rid), date=rid, score=score, total_questions=10, correct_answers=score // 10,
        time_spent=60000, subject_id=subject, answers=[],
    )


class AnalyticsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.questions = [single(1, chapter="a"), single(2, chapter="a"), single(3, chapter="b"), single(4)]
        self.stats = [
            stat(1, correct=3, incorrect=1),
            stat(2, correct=0, incorrect=2, important=True),
            stat(3, correct=1, incorrect=1),
            stat(99, incorrect=9),
        ]
        self.df = stats_frame(self.stats, self.questions)

    def test_stats_frame(self) -> None:
        self.assertEqual(list(self.df["question_id"]), [1, 2, 3, 4])
        self.assertEqual(list(self.df["answers"]), [4, 2, 2, 0])
        self.assertAlmostEqual(float(self.df["acc"].iloc[0]), 0.75, places=5)
        self.assertTrue(pd.isna(self.df["acc"].iloc[3]))
        self.assertEqual(self.df["chapter"].iloc[3], "(none)")

    def test_accuracy_by_chapter(self) -> None:
        ch = accuracy_by_chapter(self.df)
        self.assertEqual(list(ch["chapter"].astype(str)), ["a", "b", "(none)"])
        a = ch[ch["chapter"] == "a"].iloc[0]
        self.assertEqual((int(a["questions"]), int(a["answers"]), int(a["correct"])), (2, 6, 3))

    def test_weakest_questions(self) -> None:
        weak = weakest_questions(self.df, AnalyticsConfig(weak_accuracy=0.5))
        self.assertEqual(list(weak["question_id"]), [2, 3])

    def test_subject_summary(self) -> None:
        s = subject_summary(self.df)
        self.assertEqual(s["questions"], 4)
        self.assertEqual(s["answered"], 3)
        self.assertEqual(s["important"], 1)
        self.assertAlmostEqual(s["accuracy"], 0.5)

    def test_results_and_smoothing(self) -> None:
        df = results_frame([result(3, "a", 90), result(1, "a", 50), result(2, "b", 70)])
        self.assertEqual(list(df["result_id"]), ["1", "2", "3"])
        self.assertEqual(list(df["exam_idx"]), [0, 0, 1])
        smooth = ewma_scores(df, span=2)
        a = smooth[smooth["subject_id"] == "a"]
        self.assertAlmostEqual(float(a["score_smooth"].iloc[0]), 50.0)
        self.assertTrue(50.0 < float(a["score_smooth"].iloc[1]) < 90.0)

    def test_empty_history(self) -> None:
        df = results_frame([])
        self.assertTrue(ewma_scores(df, span=3).empty)
        self.assertFalse(plot_score_trend(ewma_scores(df, span=3)))

    def test_config_from_yaml_section(self) -> None:
        cfg = AnalyticsConfig.from_config({"analytics": {"smoothing_span": 8, "unknown": 1}})
        self.assertEqual(cfg.smoothing_span, 8)

    def test_exports_and_plots(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            out = Path(tmp)
            export_ndjson(self.df, out / "rows.ndjson")
            self.assertEqual(len((out / "rows.ndjson").read_text().splitlines()), 4)
            write_parquet(self.df, out / "rows.parquet")
            back = pd.read_parquet(out / "rows.parquet")
            self.assertEqual(list(back["question_id"]), [1, 2, 3, 4])
            trend = ewma_scores(results_frame([result(1, "a", 40), result(2, "a", 80)]), span=2)
            self.assertTrue(plot_score_trend(trend, subject_id="a", save_path=out / "trend.png"))
            self.assertTrue(plot_chapter_accuracy(accuracy_by_chapter(self.df), save_path=out / "ch.png"))
            self.assertTrue((out / "trend.png").exists())
            self.assertTrue((out / "ch.png").exists())


if __name__ == "__main__":
    unittest.main()
