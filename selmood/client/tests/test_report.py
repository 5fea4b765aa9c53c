import os
import sys
import unittest
from datetime import timezone

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from selmood.client import report


class AssembleReportTests(unittest.TestCase):
    def test_join_uses_profile_fields(self):
        users = [{"id": 1, "name": "A", "avatar": "🐶", "grade": "三年級", "gender": "女"}]
        responses = [{"id": 10, "user_id": 1, "question_id": 5, "score": 3, "timestamp": "2025-01-01T08:00:00.000Z"}]
        rows = report.assemble_report(users, responses)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["user_name"], "A")
        self.assertEqual(rows[0]["user_id"], 1)
        self.assertEqual(rows[0]["user_avatar"], "🐶")
        self.assertEqual(rows[0]["question_id"], 5)
        self.assertEqual(rows[0]["score"], 3)

    def test_dangling_user_gets_placeholder(self):
        responses = [{"id": 10, "user_id": 999, "question_id": 2, "score": 4, "timestamp": "2025-01-01T08:00:00Z"}]
        rows = report.assemble_report([{"id": 1, "name": "A"}], responses)
        self.assertEqual(rows[0]["user_name"], "Unknown")
        self.assertEqual(rows[0]["user_id"], -1)
        self.assertEqual(rows[0]["user_grade"], "")
        self.assertEqual(rows[0]["user_gender"], "")
        self.assertEqual(rows[0]["user_avatar"], "🙂")

    def test_rows_sorted_newest_first(self):
        users = [{"id": 1, "name": "A"}]
        responses = [
            {"id": 1, "user_id": 1, "question_id": 1, "score": 1, "timestamp": "2025-01-01T08:00:00Z"},
            {"id": 2, "user_id": 1, "question_id": 2, "score": 2, "timestamp": "2025-01-03T08:00:00Z"},
            {"id": 3, "user_id": 1, "question_id": 3, "score": 3, "timestamp": "2025-01-02T08:00:00Z"},
        ]
        rows = report.assemble_report(users, responses)
        self.assertEqual([row["question_id"] for row in rows], [2, 3, 1])

    def test_sort_compares_instants_not_strings(self):
        responses = [
            {"id": 1, "user_id": 1, "question_id": 1, "score": 1, "timestamp": "2025-01-01T10:00:00+02:00"},
            {"id": 2, "user_id": 1, "question_id": 2, "score": 2, "timestamp": "2025-01-01T09:00:00Z"},
        ]
        rows = report.assemble_report([], responses)
        # 10:00+02:00 is 08:00Z, so the 09:00Z row is newer.
        self.assertEqual([row["question_id"] for row in rows], [2, 1])

    def test_empty_inputs(self):
        self.assertEqual(report.assemble_report([], []), [])

    def test_deterministic(self):
        users = [{"id": 1, "name": "A"}, {"id": 2, "name": "B"}]
        responses = [
            {"id": i, "user_id": 1 + i % 3, "question_id": i, "score": 1 + i % 5, "timestamp": f"2025-01-0{1 + i}T08:00:00Z"}
            for i in range(6)
        ]
        self.assertEqual(report.assemble_report(users, responses), report.assemble_report(users, responses))


class ParseTimestampTests(unittest.TestCase):
    def test_naive_sqlite_format_is_utc(self):
        parsed = report.parse_timestamp("2025-01-01 08:00:00")
        self.assertEqual(parsed.tzinfo, timezone.utc)
        self.assertEqual(parsed.hour, 8)

    def test_unparseable_sorts_last(self):
        responses = [
            {"id": 1, "user_id": 1, "question_id": 1, "score": 1, "timestamp": "not a date"},
            {"id": 2, "user_id": 1, "question_id": 2, "score": 2, "timestamp": "2020-01-01T00:00:00Z"},
        ]
        rows = report.assemble_report([], responses)
        self.assertEqual(rows[-1]["question_id"], 1)


if __name__ == "__main__":
    unittest.main()
