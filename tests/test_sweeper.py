"""Tests for deadline sweeps and tournament reconciliation."""

from __future__ import annotations

import datetime
import unittest
from unittest.mock import patch

from matchday import create_app
from matchday.challenge.services import ChallengeService
from matchday.errors import NotFoundError
from matchday.sweeper import SweeperService
from matchday.tournament.services import TournamentService
from matchday.utils import utcnow
from tests.helpers import FirestoreTestCase, make_participant

ALICE = make_participant("alice", "Alice")
BOB = make_participant("bob", "Bob")


def later(days: int = 30) -> datetime.datetime:
    return utcnow() + datetime.timedelta(days=days)


class ChallengeSweepTestCase(FirestoreTestCase):
    """Test case for expiring overdue challenges."""

    def test_pending_challenge_expires(self) -> None:
        challenge = ChallengeService.create_challenge(ALICE, BOB, db=self.db)
        report = SweeperService.sweep(now=later(), db=self.db)
        stored = self.doc("challenges", challenge["id"])
        self.assertEqual(stored["status"], "expired")
        self.assertIsNone(stored["winnerId"])
        self.assertEqual(report["challengesExpired"], 1)
        self.assertEqual(report["challengesForfeited"], 0)

    def test_lone_submission_wins_by_forfeit(self) -> None:
        challenge = ChallengeService.create_challenge(ALICE, BOB, db=self.db)
        ChallengeService.accept_challenge(challenge["id"], "bob", db=self.db)
        ChallengeService.submit_challenge_score(
            challenge["id"], "alice", 7, "round-a", db=self.db
        )

        report = SweeperService.sweep(now=later(), db=self.db)
        stored = self.doc("challenges", challenge["id"])
        self.assertEqual(stored["status"], "completed")
        self.assertEqual(stored["winnerId"], "alice")
        self.assertEqual(stored["forfeitedBy"], "bob")
        self.assertEqual(report["challengesForfeited"], 1)

    def test_future_deadline_is_untouched(self) -> None:
        challenge = ChallengeService.create_challenge(ALICE, BOB, db=self.db)
        report = SweeperService.sweep(now=utcnow(), db=self.db)
        self.assertEqual(self.doc("challenges", challenge["id"])["status"], "pending")
        self.assertEqual(sum(report.values()), 0)

    def test_sweep_is_repeatable(self) -> None:
        ChallengeService.create_challenge(ALICE, BOB, db=self.db)
        SweeperService.sweep(now=later(), db=self.db)
        report = SweeperService.sweep(now=later(), db=self.db)
        self.assertEqual(sum(report.values()), 0)


class TournamentSweepTestCase(FirestoreTestCase):
    """Test case for expiring tournament matches and applying their effects."""

    def build(self, tournament_type, players):
        tournament = TournamentService.create_tournament(
            make_participant("p1"), "Cup", tournament_type, 4, db=self.db
        )
        for i in range(2, players + 1):
            TournamentService.join_tournament(
                tournament["id"], make_participant(f"p{i}"), db=self.db
            )
        TournamentService.start_tournament(tournament["id"], "p1", db=self.db)
        return tournament["id"]

    def test_knockout_forfeit_and_void_crown_the_only_player_left(self) -> None:
        tid = self.build("knockout", 4)
        first = TournamentService.get_tournament_match(tid, "r1-m1", db=self.db)
        TournamentService.submit_tournament_match_score(
            tid, "r1-m1", first["player1Id"], 4, "round-1", db=self.db
        )

        report = SweeperService.sweep(now=later(), db=self.db)
        self.assertEqual(report["matchesForfeited"], 1)
        self.assertEqual(report["matchesExpired"], 1)
        self.assertEqual(report["effectsApplied"], 2)

        forfeited = self.doc("tournaments", tid, "matches", "r1-m1")
        self.assertEqual(forfeited["status"], "forfeit")
        self.assertEqual(forfeited["forfeitedBy"], first["player2Id"])
        self.assertEqual(self.doc("tournaments", tid, "matches", "r1-m2")["status"], "expired")

        tournament = self.doc("tournaments", tid)
        self.assertEqual(tournament["status"], "completed")
        self.assertEqual(tournament["winnerId"], first["player1Id"])
        self.assertIsNone(self.doc("tournaments", tid, "matches", "r2-m1"))

    def test_expired_league_fixtures_complete_the_league(self) -> None:
        tid = self.build("league", 3)
        report = SweeperService.sweep(now=later(), db=self.db)
        self.assertEqual(report["matchesExpired"], 3)
        self.assertEqual(report["effectsApplied"], 3)

        tournament = self.doc("tournaments", tid)
        self.assertEqual(tournament["status"], "completed")
        self.assertIsNone(tournament["winnerId"])
        self.assertTrue(
            all(row["played"] == 0 for row in tournament["standings"].values())
        )

    def test_reconcile_applies_missed_effects_once(self) -> None:
        tid = self.build("knockout", 4)
        match_ref = (
            self.db.collection("tournaments").document(tid)
            .collection("matches").document("r1-m1")
        )
        match = match_ref.get().to_dict()
        match_ref.update({
            "status": "completed",
            "player1Score": 3,
            "player2Score": 1,
            "winnerId": match["player1Id"],
        })

        self.assertEqual(SweeperService.reconcile_tournament(tid, db=self.db), 1)
        slot = self.doc("tournaments", tid)["bracket"]["rounds"][1]["matches"][0]
        self.assertEqual(slot["player1Id"], match["player1Id"])
        self.assertEqual(SweeperService.reconcile_tournament(tid, db=self.db), 0)

    def test_reconcile_missing_tournament(self) -> None:
        with self.assertRaises(NotFoundError):
            SweeperService.reconcile_tournament("nope", db=self.db)


class SweeperCommandTestCase(unittest.TestCase):
    """Test case for the maintenance CLI commands."""

    def setUp(self) -> None:
        self.app = create_app({"TESTING": True, "TRANSACTION_MAX_ATTEMPTS": 3})
        self.runner = self.app.test_cli_runner()

    @patch("matchday.sweeper.commands.SweeperService")
    def test_sweep_command(self, mock_service) -> None:
        mock_service.sweep.return_value = {
            "challengesExpired": 2,
            "matchesForfeited": 1,
        }
        result = self.runner.invoke(args=["sweep"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("challengesExpired: 2", result.output)
        self.assertIn("matchesForfeited: 1", result.output)
        mock_service.sweep.assert_called_once_with(max_attempts=3)

    @patch("matchday.sweeper.commands.SweeperService")
    def test_reconcile_command(self, mock_service) -> None:
        mock_service.reconcile_tournament.return_value = 2
        result = self.runner.invoke(args=["reconcile-tournament", "t1"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("2 effect(s) applied to t1.", result.output)

    @patch("matchday.sweeper.commands.SweeperService")
    def test_reconcile_unknown_tournament(self, mock_service) -> None:
        mock_service.reconcile_tournament.side_effect = NotFoundError(
            "Tournament not found."
        )
        result = self.runner.invoke(args=["reconcile-tournament", "nope"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Tournament not found.", result.output)


if __name__ == "__main__":
    unittest.main()
