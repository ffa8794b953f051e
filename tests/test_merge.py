import unittest

from examtrainer.backup.merge import (
    IdAllocator,
    MergePolicy,
    full_reset,
    merge_questions,
    preview,
    regenerate_merge,
    update_merge,
)

from factories import single


class MergeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.existing = [single(1, text="one"), single(2, text="two")]
        self.uploaded = [single(2, text="two, revised"), single(3, text="three")]

    def test_update_merge_replaces_in_place_and_appends(self) -> None:
        report = update_merge(self.existing, self.uploaded)
        self.assertEqual([q.id for q in report.questions], [1, 2, 3])
        self.assertEqual(report.questions[1].question, "two, revised")
        self.assertEqual((report.added, report.updated), (1, 1))

    def test_update_merge_first_upload_wins_for_duplicate_ids(self) -> None:
        uploaded = [single(2, text="first"), single(2, text="second")]
        report = update_merge(self.existing, uploaded)
        self.assertEqual([q.question for q in report.questions], ["one", "first"])

    def test_regenerate_merge_never_overwrites(self) -> None:
        report = regenerate_merge(self.existing, self.uploaded)
        ids = [q.id for q in report.questions]
        self.assertEqual(len(ids), 4)
        self.assertEqual(ids[:3], [1, 2, 3])
        self.assertNotIn(ids[3], {1, 2, 3})
        self.assertEqual(report.questions[1].question, "two")
        self.assertEqual(report.questions[3].question, "two, revised")
        self.assertEqual((report.added, report.regenerated), (2, 1))

    def test_regenerate_ids_are_unique(self) -> None:
        existing = [single(i) for i in (1, 2, 5)]
        uploaded = [single(i) for i in (1, 2, 5, 6)]
        report = regenerate_merge(existing, uploaded)
        ids = [q.id for q in report.questions]
        self.assertEqual(len(ids), len(set(ids)))
        self.assertEqual(len(ids), 7)

    def test_full_reset_is_upload_verbatim(self) -> None:
        report = full_reset(self.existing, self.uploaded)
        self.assertEqual(report.questions, self.uploaded)

    def test_merge_questions_dispatch(self) -> None:
        self.assertEqual(merge_questions(self.existing, self.uploaded, "reset").policy, MergePolicy.RESET)
        self.assertEqual(len(merge_questions(self.existing, self.uploaded, MergePolicy.UPDATE).questions), 3)
        with self.assertRaises(ValueError):
            merge_questions(self.existing, self.uploaded, "append")

    def test_inputs_untouched(self) -> None:
        before = list(self.existing)
        regenerate_merge(self.existing, self.uploaded)
        update_merge(self.existing, self.uploaded)
        self.assertEqual(self.existing, before)

    def test_preview(self) -> None:
        p = preview(self.existing, self.uploaded)
        self.assertEqual((p.total, p.new_count, p.update_count), (2, 1, 1))


class IdAllocatorTests(unittest.TestCase):
    def test_starts_past_max(self) -> None:
        alloc = IdAllocator([3, 10])
        self.assertEqual(alloc.next(), 11)
        self.assertEqual(alloc.next(), 12)

    def test_skips_collisions_from_start(self) -> None:
        alloc = IdAllocator([5, 6, 8], start=5)
        self.assertEqual(alloc.next(), 9)

    def test_empty(self) -> None:
        self.assertEqual(IdAllocator().next(), 1)


if __name__ == "__main__":
    unittest.main()
