"""Tests for league standings aggregation."""

from __future__ import annotations

import unittest

from matchday.tournament.generator import TournamentGenerator, league_match_id
from matchday.tournament.standings import (
    StandingsService,
    apply_match_to_standings,
    league_winner,
    rank_standings,
)
from tests.helpers import NOW, FirestoreTestCase, make_participant


def fixture(p1, p2, s1, s2, status="completed", winner=None):
    return {
        "player1Id": p1,
        "player2Id": p2,
        "player1Score": s1,
        "player2Score": s2,
        "status": status,
        "winnerId": winner,
    }


class StandingRowTestCase(unittest.TestCase):
    """Test case for folding single results into rows."""

    def test_win_and_loss(self) -> None:
        standings = {}
        apply_match_to_standings(standings, fixture("a", "b", 3, 1, winner="a"))
        self.assertEqual(
            standings["a"],
            {
                "played": 1,
                "won": 1,
                "drawn": 0,
                "lost": 0,
                "scored": 3,
                "conceded": 1,
                "goalDifference": 2,
                "points": 3,
            },
        )
        self.assertEqual(standings["b"]["lost"], 1)
        self.assertEqual(standings["b"]["goalDifference"], -2)
        self.assertEqual(standings["b"]["points"], 0)

    def test_draw(self) -> None:
        standings = {}
        apply_match_to_standings(standings, fixture("a", "b", 2, 2))
        self.assertEqual(standings["a"]["drawn"], 1)
        self.assertEqual(standings["a"]["points"], 1)
        self.assertEqual(standings["b"]["points"], 1)

    def test_forfeit_credits_the_submitter(self) -> None:
        standings = {}
        apply_match_to_standings(
            standings, fixture("a", "b", None, 6, status="forfeit", winner="b")
        )
        self.assertEqual(standings["b"]["won"], 1)
        self.assertEqual(standings["b"]["scored"], 6)
        self.assertEqual(standings["a"]["conceded"], 6)
        self.assertEqual(standings["a"]["scored"], 0)

    def test_forfeit_with_a_nil_score_is_still_a_win(self) -> None:
        standings = {}
        apply_match_to_standings(
            standings, fixture("a", "b", 0, None, status="forfeit", winner="a")
        )
        self.assertEqual(standings["a"]["won"], 1)
        self.assertEqual(standings["a"]["drawn"], 0)
        self.assertEqual(standings["a"]["points"], 3)
        self.assertEqual(standings["b"]["lost"], 1)
        self.assertEqual(standings["b"]["points"], 0)
        self.assertEqual(standings["a"]["goalDifference"], 0)

    def test_expired_fixture_changes_nothing(self) -> None:
        standings = {}
        self.assertFalse(
            apply_match_to_standings(
                standings, fixture("a", "b", None, None, status="expired")
            )
        )
        self.assertEqual(standings, {})

    def test_points_and_goal_difference_balance(self) -> None:
        results = [
            fixture("a", "b", 3, 1),
            fixture("a", "c", 2, 2),
            fixture("b", "c", 0, 4),
            fixture("a", "d", 1, 0),
            fixture("b", "d", 5, 5),
            fixture("c", "d", 2, 3),
        ]
        standings = {}
        for result in results:
            apply_match_to_standings(standings, result)

        decisive = sum(1 for r in results if r["player1Score"] != r["player2Score"])
        drawn = len(results) - decisive
        self.assertEqual(
            sum(row["points"] for row in standings.values()), 3 * decisive + 2 * drawn
        )
        self.assertEqual(sum(row["goalDifference"] for row in standings.values()), 0)
        for row in standings.values():
            self.assertEqual(row["goalDifference"], row["scored"] - row["conceded"])
            self.assertEqual(row["played"], row["won"] + row["drawn"] + row["lost"])


class RankingTestCase(unittest.TestCase):
    """Test case for ordering rows and picking a winner."""

    def row(self, points, gd, scored):
        return {
            "played": 2,
            "won": 0,
            "drawn": 0,
            "lost": 0,
            "scored": scored,
            "conceded": scored - gd,
            "goalDifference": gd,
            "points": points,
        }

    def test_points_then_goal_difference_then_scored(self) -> None:
        standings = {
            "a": self.row(4, 1, 5),
            "b": self.row(4, 3, 6),
            "c": self.row(4, 3, 8),
            "d": self.row(6, 0, 2),
        }
        ranked = rank_standings(
            standings, participants=[make_participant("c", "Cee")]
        )
        self.assertEqual([r["id"] for r in ranked], ["d", "c", "b", "a"])
        self.assertEqual(ranked[1]["displayName"], "Cee")

    def test_head_to_head_breaks_a_full_tie(self) -> None:
        standings = {"a": self.row(3, 0, 4), "b": self.row(3, 0, 4)}
        matches = [fixture("a", "b", 1, 2)]
        ranked = rank_standings(standings, matches=matches)
        self.assertEqual([r["id"] for r in ranked], ["b", "a"])
        self.assertEqual(league_winner(standings, matches), "b")

    def test_nil_forfeit_counts_in_head_to_head(self) -> None:
        standings = {"a": self.row(3, 0, 4), "b": self.row(3, 0, 4)}
        matches = [fixture("a", "b", None, 0, status="forfeit", winner="b")]
        self.assertEqual(league_winner(standings, matches), "b")

    def test_unbroken_tie_shares_the_title(self) -> None:
        standings = {"a": self.row(3, 0, 4), "b": self.row(3, 0, 4)}
        self.assertIsNone(league_winner(standings, [fixture("a", "b", 2, 2)]))

    def test_clear_leader_wins(self) -> None:
        standings = {"a": self.row(6, 0, 4), "b": self.row(3, 0, 4)}
        self.assertEqual(league_winner(standings, []), "a")


class StandingsServiceTestCase(FirestoreTestCase):
    """Test case for exactly-once application and league completion."""

    def setUp(self) -> None:
        super().setUp()
        self.participants = [
            make_participant("a", "Ann"),
            make_participant("b", "Ben"),
            make_participant("c", "Cat"),
        ]
        self.fixtures = TournamentGenerator.generate_league_fixtures(
            self.participants, "t1", NOW, NOW
        )
        self.tournament_ref = self.db.collection("tournaments").document("t1")
        self.tournament_ref.set({
            "type": "league",
            "status": "active",
            "participantIds": ["a", "b", "c"],
            "participants": self.participants,
            "standings": TournamentGenerator.initial_standings(self.participants),
            "standingsApplied": [],
        })
        for match_id, match in self.fixtures.items():
            self.tournament_ref.collection("matches").document(match_id).set(match)

    def play(self, position, s1, s2, status="completed"):
        match_id = league_match_id(position)
        match = dict(self.fixtures[match_id])
        winner = None
        if s1 is not None and s2 is not None and s1 != s2:
            winner = match["player1Id"] if s1 > s2 else match["player2Id"]
        match.update({
            "player1Score": s1,
            "player2Score": s2,
            "status": status,
            "winnerId": winner,
        })
        self.tournament_ref.collection("matches").document(match_id).set(match)
        return StandingsService.apply(self.db, "t1", match_id, match, now=NOW)

    def test_applies_each_match_once(self) -> None:
        self.assertTrue(self.play(0, 3, 1))
        self.assertFalse(
            StandingsService.apply(
                self.db,
                "t1",
                "l-m1",
                {**self.fixtures["l-m1"], "status": "completed",
                 "player1Score": 3, "player2Score": 1},
                now=NOW,
            )
        )
        tournament = self.doc("tournaments", "t1")
        self.assertEqual(tournament["standings"]["a"]["played"], 1)
        self.assertEqual(tournament["standingsApplied"], ["l-m1"])
        self.assertEqual(tournament["status"], "active")

    def test_league_completes_with_a_winner(self) -> None:
        # Fixtures are a-b, a-c, b-c.
        self.play(0, 3, 1)
        self.play(1, 2, 0)
        self.play(2, 1, 1)
        tournament = self.doc("tournaments", "t1")
        self.assertEqual(tournament["status"], "completed")
        self.assertEqual(tournament["winnerId"], "a")
        self.assertEqual(tournament["winnerName"], "Ann")
        self.assertEqual(tournament["standings"]["a"]["points"], 6)

    def test_expired_fixture_still_counts_toward_completion(self) -> None:
        self.play(0, 3, 1)
        self.play(1, None, None, status="expired")
        self.play(2, 1, 3)
        tournament = self.doc("tournaments", "t1")
        self.assertEqual(tournament["status"], "completed")
        self.assertEqual(tournament["standings"]["c"]["played"], 1)
        # a and c both have 3 points, +2 goal difference and 3 goals;
        # they never met, so the title is shared.
        self.assertIsNone(tournament["winnerId"])


if __name__ == "__main__":
    unittest.main()
