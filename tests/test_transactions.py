"""Tests for the transaction runner."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

from google.api_core import exceptions as google_exceptions

from matchday.challenge.services import ChallengeService
from matchday.core.transactions import run_transaction
from matchday.errors import ConflictError
from matchday.match import KNOCKOUT_MATCH_LAYOUT, MatchService
from tests.helpers import FirestoreTestCase, make_participant
from tests.mock_utils import contended_transactional


class RunTransactionTestCase(unittest.TestCase):
    """Test case for run_transaction."""

    def setUp(self) -> None:
        patcher = patch(
            "firebase_admin.firestore.transactional", side_effect=lambda f: f
        )
        patcher.start()
        self.addCleanup(patcher.stop)
        self.db = MagicMock()

    def test_passes_transaction_and_arguments(self) -> None:
        func = MagicMock(return_value="done")
        result = run_transaction(self.db, func, "a", max_attempts=3, flag=True)
        self.assertEqual(result, "done")
        self.db.transaction.assert_called_once_with(max_attempts=3)
        func.assert_called_once_with(self.db.transaction.return_value, "a", flag=True)

    def test_aborted_becomes_conflict(self) -> None:
        func = MagicMock(side_effect=google_exceptions.Aborted("contention"))
        with self.assertRaises(ConflictError):
            run_transaction(self.db, func)

    def test_exhausted_retries_become_conflict(self) -> None:
        func = MagicMock(
            side_effect=ValueError("Failed to commit transaction in 5 attempts.")
        )
        with self.assertRaises(ConflictError):
            run_transaction(self.db, func)

    def test_other_value_errors_propagate(self) -> None:
        func = MagicMock(side_effect=ValueError("bad input"))
        with self.assertRaises(ValueError):
            run_transaction(self.db, func)



class ContendedTransactionTestCase(FirestoreTestCase):
    """Test case for transaction functions re-run after a concurrent write."""

    def contend(self, concurrent_write):
        patcher = patch(
            "firebase_admin.firestore.transactional",
            side_effect=contended_transactional(concurrent_write),
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_score_retry_sees_the_other_side(self) -> None:
        match_ref = self.db.collection("matches").document("r1-m1")
        match_ref.set({
            "player1Id": "alice",
            "player1Name": "Alice",
            "player1Score": None,
            "player2Id": "bob",
            "player2Name": "Bob",
            "player2Score": None,
            "status": "pending",
            "winnerId": None,
            "wentToPenalties": False,
        })
        bob_scores = MagicMock(
            side_effect=lambda: match_ref.update({
                "player2Score": 9,
                "player2RoundRef": "round-bob",
                "status": "in_progress",
            })
        )
        self.contend(bob_scores)

        outcome = MatchService.submit_score(
            self.db, match_ref, KNOCKOUT_MATCH_LAYOUT, "alice", 12, "round-alice"
        )
        bob_scores.assert_called_once_with()
        self.assertTrue(outcome.completed)
        self.assertEqual(outcome.winner_id, "alice")
        stored = self.doc("matches", "r1-m1")
        self.assertEqual(stored["status"], "completed")
        self.assertEqual(stored["player1Score"], 12)
        self.assertEqual(stored["player2Score"], 9)

    def test_claim_retry_loses_to_the_earlier_claimant(self) -> None:
        alice = make_participant("alice", "Alice")
        link = ChallengeService.create_challenge_link(alice, db=self.db)
        ref = self.db.collection("challenges").document(link["id"])
        carol_claims = MagicMock(
            side_effect=lambda: ref.update({
                "opponentId": "carol",
                "participantIds": ["alice", "carol"],
                "status": "accepted",
            })
        )
        self.contend(carol_claims)

        with self.assertRaises(ConflictError):
            ChallengeService.claim_challenge_by_code(
                link["inviteCode"], make_participant("bob", "Bob"), db=self.db
            )
        carol_claims.assert_called_once_with()
        stored = self.doc("challenges", link["id"])
        self.assertEqual(stored["opponentId"], "carol")
        self.assertEqual(stored["participantIds"], ["alice", "carol"])

if __name__ == "__main__":
    unittest.main()
