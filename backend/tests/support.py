"""Shared fixtures: an app wired to an in-memory mongomock database."""

from __future__ import annotations

import copy
import sys
import unittest
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import mongomock

from backend.app import create_app
from backend.src.db import MongoStore

LESSONS = [
    {"id": 1, "subject": "Math", "location": "London", "price": 100, "spaces": 5},
    {"id": 2, "subject": "English", "location": "Oxford", "price": 80, "spaces": 0},
    {"id": 3, "subject": "Music", "location": "Bristol", "price": 20, "spaces": 4},
    {"id": 4, "subject": "Spanish 20", "location": "Leeds", "price": 60, "spaces": 2},
    {"id": 5, "subject": "Art", "location": "York", "price": 70, "spaces": 3},
]


class AppTestCase(unittest.TestCase):
    """Base case with ``self.client`` talking to a seeded mongomock database."""

    static_dir: Path | None = None

    def setUp(self) -> None:
        self.database = mongomock.MongoClient()["AfterSchoolClassApp"]
        self.database["lesson"].insert_many(copy.deepcopy(LESSONS))

        self.store = MongoStore()
        self.store.bind(self.database)

        self.app = create_app(store=self.store, static_dir=self.static_dir)
        self.app.config["TESTING"] = True
        self.client = self.app.test_client()

    def lesson(self, lesson_id: int):
        return self.database["lesson"].find_one({"id": lesson_id})
