import os
import sys
import unittest
from datetime import datetime

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from selmood.backend.app import main


class ApiTests(unittest.TestCase):
    def setUp(self):
        engine = create_engine(
            "sqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        main.Base.metadata.create_all(engine)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        main.app.dependency_overrides[main.get_db] = override_get_db
        self.client = TestClient(main.app)

    def tearDown(self):
        main.app.dependency_overrides.clear()

    def create_user(self, name="Amy"):
        resp = self.client.post(
            "/api/login",
            json={"name": name, "avatar": "🐱", "grade": "二年級", "gender": "女"},
        )
        self.assertEqual(resp.status_code, 200)
        return resp.json()

    def test_login_returns_profile_with_id(self):
        user = self.create_user()
        self.assertIsInstance(user["id"], int)
        self.assertEqual(user["name"], "Amy")
        self.assertEqual(user["avatar"], "🐱")

    def test_login_requires_name(self):
        resp = self.client.post("/api/login", json={"avatar": "🐱"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "Name is required")

    def test_response_saved(self):
        user = self.create_user()
        resp = self.client.post("/api/response", json={"user_id": user["id"], "question_id": 1, "score": 4})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["status"], "saved")

    def test_response_missing_field_rejected(self):
        resp = self.client.post("/api/response", json={"user_id": 1, "question_id": 1})
        self.assertEqual(resp.status_code, 400)

    def test_admin_rows_joined_and_newest_first(self):
        amy = self.create_user("Amy")
        ben = self.create_user("Ben")
        db = self.SessionLocal()
        try:
            db.add(main.Response(user_id=amy["id"], question_id=1, score=2, timestamp=datetime(2025, 1, 1, 8, 0, 0)))
            db.add(main.Response(user_id=ben["id"], question_id=2, score=5, timestamp=datetime(2025, 1, 2, 8, 0, 0)))
            # Inner join: a response for an unknown user is not reported.
            db.add(main.Response(user_id=999, question_id=3, score=1, timestamp=datetime(2025, 1, 3, 8, 0, 0)))
            db.commit()
        finally:
            db.close()

        resp = self.client.get("/api/admin/responses")
        self.assertEqual(resp.status_code, 200)
        rows = resp.json()
        self.assertEqual([row["user_name"] for row in rows], ["Ben", "Amy"])
        self.assertEqual(rows[0]["timestamp"], "2025-01-02 08:00:00")
        self.assertEqual(rows[1]["user_grade"], "二年級")
        self.assertEqual(
            set(rows[0].keys()),
            {"user_id", "user_name", "user_avatar", "user_grade", "user_gender", "question_id", "score", "timestamp"},
        )


if __name__ == "__main__":
    unittest.main()
