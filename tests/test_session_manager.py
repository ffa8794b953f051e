import io
import json
import random
import tempfile
import unittest
from pathlib import Path

from storage.schema import RESULTS_KEY, STATS_KEY, questions_key
from storage.store import JsonFileStore, MemoryStore

from examtrainer.app.exam_session import SessionState
from examtrainer.app.explain import enable as explain_enable, enabled as explain_enabled
from examtrainer.app.session_manager import SessionManager
from examtrainer.backup.merge import MergePolicy
from examtrainer.bank.editor import QuestionDraft
from examtrainer.bank.loader import DefaultQuestionSource
from examtrainer.errors import BackupError, SessionRejected
from examtrainer.policy.selection import ExamMode

from factories import FakeClock, raw_question, single


class SessionManagerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        src = Path(self.tmp.name)
        (src / "questions-network.json").write_text(
            json.dumps([raw_question(i) for i in (1, 2, 3)]), encoding="utf-8"
        )
        self.store = MemoryStore()
        self.sm = SessionManager(self.store, DefaultQuestionSource(src), clock=FakeClock(), rng=random.Random(4))

    def take_exam(self, answer: str = "A") -> None:
        self.assertTrue(self.sm.start_exam("all").started)
        session = self.sm.session
        for i in range(len(session.questions)):
            session.jump_to(i)
            session.select_answer(answer)
            session.submit()
        session.advance()

    def test_requires_subject(self) -> None:
        with self.assertRaises(SessionRejected):
            self.sm.start_exam("all")
        with self.assertRaises(SessionRejected):
            self.sm.select_subject("nope")

    def test_select_subject_loads_default_bank(self) -> None:
        loaded = self.sm.select_subject("network")
        self.assertEqual(loaded.source, "default")
        self.assertEqual(len(self.sm.bank), 3)
        self.assertEqual(self.sm.mode_counts()[ExamMode.UNATTEMPTED], 3)

    def test_full_exam_updates_stats_and_history(self) -> None:
        self.sm.select_subject("network")
        self.take_exam("A")
        self.assertIs(self.sm.session.state, SessionState.COMPLETED)
        self.assertEqual(self.sm.history()[0].score, 100)
        self.assertEqual(len(self.store.get(STATS_KEY)["network"]), 3)
        self.assertEqual(self.sm.mode_counts()[ExamMode.UNATTEMPTED], 0)

    def test_no_second_exam_while_one_runs(self) -> None:
        self.sm.select_subject("network")
        self.sm.start_exam("all")
        with self.assertRaises(SessionRejected):
            self.sm.start_exam("all")
        with self.assertRaises(SessionRejected):
            self.sm.clear_all_data()

    def test_wrong_mode_after_mistakes(self) -> None:
        self.sm.select_subject("network")
        self.take_exam("B")
        outcome = self.sm.start_exam("wrong")
        self.assertEqual(outcome.count, 3)

    def test_toggle_and_remove_stats(self) -> None:
        self.sm.select_subject("network")
        self.assertTrue(self.sm.toggle_important(2).is_important)
        self.assertEqual(self.sm.mode_counts()[ExamMode.IMPORTANT], 1)
        self.assertTrue(self.sm.remove_from_stats(2))
        self.assertEqual(self.sm.mode_counts()[ExamMode.IMPORTANT], 0)

    def test_reset_questions_restores_default_and_clears_stats(self) -> None:
        self.sm.select_subject("network")
        self.sm.import_questions(json.dumps([raw_question(10)]), "reset")
        self.sm.toggle_important(10)
        loaded = self.sm.reset_questions()
        self.assertEqual([q.id for q in loaded.questions], [1, 2, 3])
        self.assertIsNone(self.store.get(questions_key("network")))
        self.assertEqual(self.sm.stats.for_subject("network"), [])
        self.assertEqual(len(self.sm.bank), 3)

    def test_import_questions_policies(self) -> None:
        self.sm.select_subject("network")
        upload = json.dumps([raw_question(3, question="Three again?"), raw_question(4)])
        preview = self.sm.preview_import(upload).value
        self.assertEqual((preview.new_count, preview.update_count), (1, 1))
        report = self.sm.import_questions(upload, MergePolicy.UPDATE).value
        self.assertEqual([q.id for q in report.questions], [1, 2, 3, 4])
        report = self.sm.import_questions(upload, "regenerate").value
        self.assertEqual(len(report.questions), 6)
        self.assertEqual(len(self.store.get(questions_key("network"))), 6)

    def test_invalid_import_changes_nothing(self) -> None:
        self.sm.select_subject("network")
        result = self.sm.import_questions(json.dumps([raw_question(1), {"id": 2}]), "reset")
        self.assertFalse(result.ok)
        self.assertIsNone(self.store.get(questions_key("network")))
        self.assertEqual(len(self.sm.bank), 3)

    def test_export_questions(self) -> None:
        self.sm.select_subject("network")
        self.assertEqual([q["id"] for q in json.loads(self.sm.export_questions())], [1, 2, 3])

    def test_zip_backup_roundtrip_into_fresh_store(self) -> None:
        self.sm.select_subject("network")
        self.sm.import_questions(json.dumps([raw_question(7)]), "update")
        self.take_exam("A")
        buf = io.BytesIO()
        manifest = self.sm.export_zip(buf)
        self.assertEqual(manifest["counts"]["examResults"], 1)

        fresh = SessionManager(MemoryStore(), self.sm.loader.source)
        buf.seek(0)
        counts = fresh.import_zip(buf).value
        self.assertEqual(counts["questions"], 4)
        self.assertEqual(len(fresh.history()), 1)
        self.assertEqual(len(fresh.stats.for_subject("network")), 4)
        fresh.select_subject("network")
        self.assertEqual(fresh.bank.ids(), {1, 2, 3, 7})

    def test_import_zip_rejects_garbage(self) -> None:
        result = self.sm.import_zip(io.BytesIO(b"nope"))
        self.assertFalse(result.ok)

    def test_import_zip_refreshes_open_subject(self) -> None:
        self.sm.select_subject("network")
        other = SessionManager(MemoryStore(), self.sm.loader.source)
        other.select_subject("network")
        other.import_questions(json.dumps([raw_question(42)]), "reset")
        buf = io.BytesIO()
        other.export_zip(buf)
        buf.seek(0)
        self.sm.import_zip(buf)
        self.assertEqual(self.sm.bank.ids(), {42})

    def test_progress_roundtrip(self) -> None:
        self.sm.select_subject("network")
        self.take_exam("B")
        text = self.sm.export_progress()
        self.sm.clear_all_data()
        self.assertEqual(self.sm.history(), [])
        self.assertEqual(self.store.get(RESULTS_KEY), [])
        counts = self.sm.import_progress(text).value
        self.assertEqual(counts["examResults"], 1)
        self.assertEqual(self.sm.stats.get("network", 1).incorrect_count, 1)

    def test_clear_all_keeps_banks(self) -> None:
        self.sm.select_subject("network")
        self.sm.import_questions(json.dumps([raw_question(5)]), "update")
        self.sm.clear_all_data()
        self.assertEqual(len(self.store.get(questions_key("network"))), 4)

    def test_editor_passthrough(self) -> None:
        self.sm.select_subject("network")
        draft = QuestionDraft(question="New?", options=single(1).options, correct_answer=["C"], explanation="C.")
        q = self.sm.add_question(draft)
        self.assertEqual(q.id, 4)
        self.assertTrue(self.sm.delete_question(4))

    def test_back_to_subjects_discards_exam(self) -> None:
        self.sm.select_subject("network")
        self.sm.start_exam("all")
        self.sm.back_to_subjects()
        self.assertIsNone(self.sm.session)
        self.assertEqual(self.sm.history(), [])

    def test_import_with_repeated_ids_changes_nothing(self) -> None:
        self.sm.select_subject("network")
        upload = json.dumps([raw_question(5, question="First?"), raw_question(5, question="Second?")])
        result = self.sm.import_questions(upload, "reset")
        self.assertFalse(result.ok)
        self.assertEqual((result.issues[0].index, result.issues[0].record_id), (1, 5))
        self.assertEqual(self.sm.bank.ids(), {1, 2, 3})
        self.assertIsNone(self.store.get(questions_key("network")))

    def test_subject_editing(self) -> None:
        added = self.sm.add_subject("Cloud Basics", "Clouds")
        self.assertEqual(added.id, "cloud-basics")
        self.sm.select_subject("cloud-basics")
        renamed = self.sm.update_subject("cloud-basics", "Cloud 101", "Clouds", "C")
        self.assertEqual(self.sm.subject, renamed)
        self.assertTrue(self.sm.remove_subject("cloud-basics"))
        self.assertIsNone(self.sm.subject)
        self.assertFalse(self.sm.remove_subject("cloud-basics"))
        self.assertEqual([s.id for s in self.sm.subjects()][:1], ["network"])

    def test_remove_open_subject_rejected_during_exam(self) -> None:
        self.sm.select_subject("network")
        self.sm.start_exam("all")
        with self.assertRaises(SessionRejected):
            self.sm.remove_subject("network")
        self.assertIsNotNone(self.sm.catalog.get("network"))

    def test_update_question_passthrough(self) -> None:
        self.sm.select_subject("network")
        draft = QuestionDraft.from_question(self.sm.bank.get(2))
        draft.question = "Rewritten?"
        self.sm.update_question(2, draft)
        self.assertEqual(self.store.get(questions_key("network"))[1]["question"], "Rewritten?")

    def test_json_backup_roundtrip_into_fresh_store(self) -> None:
        self.sm.select_subject("network")
        self.sm.import_questions(json.dumps([raw_question(7)]), "update")
        self.take_exam("A")
        text = self.sm.export_backup()
        doc = json.loads(text)
        self.assertEqual(doc["version"], "1.0")
        self.assertIn("exportDate", doc)

        fresh = SessionManager(MemoryStore(), self.sm.loader.source)
        counts = fresh.import_backup(text).value
        self.assertEqual(counts["examResults"], 1)
        fresh.select_subject("network")
        self.assertEqual(fresh.bank.ids(), {1, 2, 3, 7})
        self.assertFalse(fresh.import_backup("{}").ok)

    def test_questions_zip_export(self) -> None:
        with self.assertRaises(BackupError):
            self.sm.export_questions_zip(io.BytesIO())
        self.sm.select_subject("network")
        self.sm.import_questions(json.dumps([raw_question(9)]), "reset")
        buf = io.BytesIO()
        meta = self.sm.export_questions_zip(buf)
        self.assertEqual(meta["totalQuestions"], 1)

        fresh = SessionManager(MemoryStore(), self.sm.loader.source)
        buf.seek(0)
        self.assertTrue(fresh.import_zip(buf).ok)
        fresh.select_subject("network")
        self.assertEqual(fresh.bank.ids(), {9})

    def test_stats_and_results_exports(self) -> None:
        self.sm.select_subject("network")
        self.take_exam("B")
        self.assertEqual(len(json.loads(self.sm.export_stats())["network"]), 3)
        self.assertEqual(json.loads(self.sm.export_results())[0]["score"], 0)

    def test_explain_traces(self) -> None:
        lines = []
        explain_enable(True, sink=lines.append)
        self.addCleanup(explain_enable, False)
        self.assertTrue(explain_enabled())
        self.sm.select_subject("network")
        self.take_exam("A")
        events = [line.split(" ")[1] for line in lines]
        self.assertIn("exam_started", events)
        self.assertIn("answer_submitted", events)
        self.assertIn("exam_finished", events)
        self.assertTrue(all(line.startswith("[EXPLAIN] ") for line in lines))


class FileStoreManagerTests(unittest.TestCase):
    def test_subject_name_with_slash_keeps_its_bank(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            data = Path(tmp) / "data"
            src = Path(tmp) / "defaults"
            src.mkdir()
            sm = SessionManager(JsonFileStore(data), DefaultQuestionSource(src), clock=FakeClock())
            subject = sm.add_subject("TCP/IP Basics", "Protocols")
            self.assertEqual(subject.id, "tcp/ip-basics")
            loaded = sm.select_subject("tcp/ip-basics")
            self.assertEqual(loaded.source, "empty")
            self.assertTrue(loaded.notice)
            draft = QuestionDraft(question="Layer of IP?", options=single(1).options, correct_answer=["C"], explanation="C.")
            sm.add_question(draft)

            reopened = SessionManager(JsonFileStore(data), DefaultQuestionSource(src))
            loaded = reopened.select_subject("tcp/ip-basics")
            self.assertEqual((loaded.source, len(loaded.questions)), ("custom", 1))
            self.assertTrue(all(p.is_file() for p in data.iterdir()))


if __name__ == "__main__":
    unittest.main()
