"""Shared base classes for the test suite."""

from __future__ import annotations

import datetime
import unittest
from typing import Any
from unittest.mock import MagicMock, patch

from mockfirestore import MockFirestore

from matchday import create_app
from tests.mock_utils import MockTransaction, patch_mockfirestore

NOW = datetime.datetime(2026, 3, 1, 12, 0, tzinfo=datetime.timezone.utc)


def make_participant(uid: str, name: str | None = None) -> dict[str, Any]:
    return {"id": uid, "displayName": name or uid.title(), "photoURL": None}


class FirestoreTestCase(unittest.TestCase):
    """Runs services against an in-memory Firestore."""

    def setUp(self) -> None:
        """Set up the in-memory database and transaction patches."""
        patch_mockfirestore()
        self.db = MockFirestore()
        self.transactions: list[MockTransaction] = []

        def new_transaction(max_attempts: int = 5) -> MockTransaction:
            transaction = MockTransaction(max_attempts=max_attempts)
            self.transactions.append(transaction)
            return transaction

        self.db.transaction = MagicMock(side_effect=new_transaction)

        # Run transactional functions directly, as the real decorator would
        # on an uncontended first attempt.
        patcher = patch(
            "firebase_admin.firestore.transactional", side_effect=lambda f: f
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self) -> None:
        """Reset the in-memory database."""
        self.db.reset()

    def doc(self, *path: str) -> dict[str, Any]:
        """Read a stored document as a dict, e.g. ``doc("tournaments", tid)``."""
        ref: Any = self.db
        for i, part in enumerate(path):
            ref = ref.collection(part) if i % 2 == 0 else ref.document(part)
        snapshot = ref.get()
        return snapshot.to_dict() if snapshot.exists else None


class ApiTestCase(FirestoreTestCase):
    """Drives the HTTP API with a logged-in session."""

    user_id = "user1"
    display_name = "User One"

    def setUp(self) -> None:
        """Set up a test client wired to the in-memory database."""
        super().setUp()
        self.mock_firestore_service = MagicMock()
        self.mock_firestore_service.client.return_value = self.db

        patchers = {
            "init_app": patch("firebase_admin.initialize_app"),
            "firestore_challenges": patch(
                "matchday.challenge.routes.firestore",
                new=self.mock_firestore_service,
            ),
            "firestore_tournaments": patch(
                "matchday.tournament.routes.firestore",
                new=self.mock_firestore_service,
            ),
            "verify_id_token": patch("firebase_admin.auth.verify_id_token"),
        }
        self.mocks = {name: p.start() for name, p in patchers.items()}
        for p in patchers.values():
            self.addCleanup(p.stop)

        self.app = create_app({"TESTING": True, "WTF_CSRF_ENABLED": False})
        self.client = self.app.test_client()

    def login(self, uid: str | None = None, name: str | None = None) -> None:
        """Set a logged-in user in the session."""
        with self.client.session_transaction() as sess:
            sess["user_id"] = uid or self.user_id
            sess["display_name"] = name or self.display_name
            sess["photo_url"] = None
