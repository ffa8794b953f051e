import io
import json
import tempfile
import unittest
import zipfile
from pathlib import Path

from storage.repository import Repositories
from storage.schema import RESULTS_KEY, SUBJECTS_KEY, AnswerSnapshot, ExamResult, Subject, questions_key
from storage.store import JsonFileStore, MemoryStore, StoreError

from examtrainer.backup.archive import PLACEHOLDER, export_questions_zip, export_zip, export_zip_bytes, read_zip
from examtrainer.backup.payload import BackupPayload, apply_backup
from examtrainer.errors import BackupError

from factories import fill, multiple, raw_question, single, stat


def full_payload() -> BackupPayload:
    result = ExamResult(
        id="1700000000000",
        date=1700000000000,
        score=50,
        total_questions=2,
        correct_answers=1,
        time_spent=4200,
        subject_id="network",
        answers=[
            AnswerSnapshot(
                question_id=1, question="q1", question_type="single", selected_answer=["A"],
                correct_answer=["A"], is_correct=True, explanation="e",
            ),
            AnswerSnapshot(
                question_id=2, question="q2", question_type="multiple", selected_answer=[],
                correct_answer=["A", "B"], is_correct=False, explanation="e",
            ),
        ],
    )
    return BackupPayload(
        subjects=[Subject(id="network", name="Networking", description="d", icon="N"), Subject(id="rfid", name="RFID")],
        questions={"network": [single(1), multiple(2, ["A", "B"])], "rfid": [fill(1, ["tag"])]},
        question_stats={"network": [stat(1, correct=1), stat(2, incorrect=1, important=True)]},
        exam_results=[result],
    )


def zip_of(files: dict) -> io.BytesIO:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, body in files.items():
            zf.writestr(name, body if isinstance(body, str) else json.dumps(body))
    buf.seek(0)
    return buf


class ExportTests(unittest.TestCase):
    def test_layout(self) -> None:
        data = export_zip_bytes(full_payload())
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            names = set(zf.namelist())
            meta = json.loads(zf.read("metadata.json"))
            infos = zf.infolist()
        self.assertEqual(
            names,
            {
                "metadata.json",
                "subjects.json",
                "questions/network.json",
                "questions/rfid.json",
                "stats/network.json",
                "exam-results.json",
                "README.txt",
            },
        )
        self.assertEqual(meta["version"], "2.0")
        self.assertEqual(meta["counts"]["questions"], 3)
        self.assertTrue(all(i.compress_type == zipfile.ZIP_DEFLATED for i in infos))

    def test_placeholders_for_empty_folders(self) -> None:
        data = export_zip_bytes(BackupPayload(subjects=[], questions={}, question_stats={}, exam_results=[]))
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            names = set(zf.namelist())
        self.assertIn(f"questions/{PLACEHOLDER}", names)
        self.assertIn(f"stats/{PLACEHOLDER}", names)

    def test_writes_to_path(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "backup.zip"
            export_zip(full_payload(), target)
            self.assertTrue(zipfile.is_zipfile(target))

    def test_unwritable_target_raises_backup_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(BackupError):
                export_zip(full_payload(), Path(tmp) / "missing-dir" / "backup.zip")


class ReadTests(unittest.TestCase):
    def test_roundtrip_reproduces_payload(self) -> None:
        payload = full_payload()
        result = read_zip(io.BytesIO(export_zip_bytes(payload)))
        self.assertTrue(result.ok, getattr(result, "messages", None))
        self.assertEqual(result.value, payload)

    def test_missing_categories_are_none(self) -> None:
        result = read_zip(zip_of({"exam-results.json": []}))
        self.assertTrue(result.ok)
        self.assertEqual(result.value.exam_results, [])
        self.assertIsNone(result.value.subjects)
        self.assertIsNone(result.value.questions)
        self.assertIsNone(result.value.question_stats)

    def test_placeholder_only_folder_is_present_and_empty(self) -> None:
        result = read_zip(zip_of({f"stats/{PLACEHOLDER}": "x"}))
        self.assertTrue(result.ok)
        self.assertEqual(result.value.question_stats, {})

    def test_nothing_present_rejected(self) -> None:
        result = read_zip(zip_of({"metadata.json": {"version": "2.0"}, "README.txt": "hi"}))
        self.assertFalse(result.ok)

    def test_corrupt_archive_rejected(self) -> None:
        result = read_zip(io.BytesIO(b"definitely not a zip"))
        self.assertFalse(result.ok)
        self.assertIn("ZIP", result.messages[0])

    def test_bad_json_entry_rejected(self) -> None:
        result = read_zip(zip_of({"subjects.json": "{oops"}))
        self.assertFalse(result.ok)
        self.assertIn("subjects.json", result.messages[0])

    def test_invalid_record_rejected(self) -> None:
        result = read_zip(zip_of({"questions/network.json": [{"id": 1}]}))
        self.assertFalse(result.ok)
        self.assertTrue(any("network" in m for m in result.messages))

    def test_subject_ids_with_separators_roundtrip(self) -> None:
        payload = BackupPayload(questions={"tcp/ip": [single(1)]}, question_stats={"tcp/ip": [stat(1, correct=2)]})
        data = export_zip_bytes(payload)
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            self.assertIn("questions/tcp%2Fip.json", zf.namelist())
        result = read_zip(io.BytesIO(data))
        self.assertTrue(result.ok)
        self.assertEqual(list(result.value.questions), ["tcp/ip"])
        self.assertEqual(result.value.question_stats["tcp/ip"][0].correct_count, 2)


class QuestionsArchiveTests(unittest.TestCase):
    subjects = [
        Subject(id="network", name="Networking", description="d", icon="N"),
        Subject(id="my_net", name="My/Net", description="d", icon="M"),
        Subject(id="rfid", name="RFID", description="d", icon="R"),
    ]

    def test_layout_and_manifest(self) -> None:
        buf = io.BytesIO()
        meta = export_questions_zip(self.subjects, {"network": [single(1), single(2)], "my_net": [single(3)]}, buf)
        with zipfile.ZipFile(io.BytesIO(buf.getvalue())) as zf:
            names = set(zf.namelist())
        self.assertEqual(
            names,
            {"metadata.json", "questions/network_Networking.json", "questions/my%5Fnet_My-Net.json", "README.txt"},
        )
        self.assertEqual((meta["version"], meta["subjectCount"], meta["totalQuestions"]), ("1.0", 3, 3))

    def test_read_back_restores_banks_only(self) -> None:
        buf = io.BytesIO()
        export_questions_zip(self.subjects, {"network": [single(1)], "my_net": [single(3)]}, buf)
        buf.seek(0)
        result = read_zip(buf)
        self.assertTrue(result.ok, getattr(result, "messages", None))
        self.assertEqual(sorted(result.value.questions), ["my_net", "network"])
        self.assertIsNone(result.value.subjects)
        self.assertIsNone(result.value.exam_results)

    def test_no_custom_banks_is_an_error(self) -> None:
        with self.assertRaises(BackupError):
            export_questions_zip(self.subjects, {"network": []}, io.BytesIO())


class FailingStore(MemoryStore):
    def __init__(self, fail_key: str, initial: dict) -> None:
        self.fail_key = fail_key
        super().__init__(initial)

    def set(self, key: str, value) -> None:
        if key == self.fail_key:
            raise StoreError(f"disk full writing {key}")
        super().set(key, value)


class ApplyTests(unittest.TestCase):
    def test_zip_with_unusual_subject_ids_applies_on_file_store(self) -> None:
        archive = zip_of(
            {
                "subjects.json": [{"id": "new", "name": "New", "description": "d", "icon": "x"}],
                "questions/a\\b.json": [raw_question(1)],
            }
        )
        result = read_zip(archive)
        self.assertTrue(result.ok, getattr(result, "messages", None))
        with tempfile.TemporaryDirectory() as tmp:
            repos = Repositories(JsonFileStore(Path(tmp)))
            apply_backup(result.value, repos)
            reopened = Repositories(JsonFileStore(Path(tmp)))
            self.assertEqual([q.id for q in reopened.questions("a\\b").load()], [1])
            self.assertEqual([s.id for s in reopened.subjects.load()], ["new"])

    def test_failed_write_restores_previous_values(self) -> None:
        old_subjects = [{"id": "old", "name": "Old", "description": "d", "icon": "o"}]
        store = FailingStore(questions_key("rfid"), {SUBJECTS_KEY: old_subjects})
        with self.assertRaises(BackupError):
            apply_backup(full_payload(), Repositories(store))
        self.assertEqual(store.get(SUBJECTS_KEY), old_subjects)
        self.assertIsNone(store.get(questions_key("network")))
        self.assertIsNone(store.get(RESULTS_KEY))



if __name__ == "__main__":
    unittest.main()
