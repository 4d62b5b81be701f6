"""Fixture and bracket generation for tournaments."""

from __future__ import annotations

import math
import random
from typing import TYPE_CHECKING, Any, Sequence, TypeVar

from matchday.core.constants import (
    KNOCKOUT_SIZES,
    LEAGUE_MIN_PLAYERS,
    MATCH_PENDING,
)
from matchday.errors import ValidationError

from .models import BracketRound, BracketSlot, KnockoutBracket, StandingRow

if TYPE_CHECKING:
    import datetime

    from .models import TournamentParticipant

T = TypeVar("T")


def knockout_match_id(round_number: int, position: int) -> str:
    """Document ID of a knockout match, e.g. ``r2-m1``."""
    return f"r{round_number}-m{position + 1}"


def league_match_id(position: int) -> str:
    """Document ID of a league fixture, e.g. ``l-m3``."""
    return f"l-m{position + 1}"


def empty_standing_row() -> StandingRow:
    return StandingRow(
        played=0,
        won=0,
        drawn=0,
        lost=0,
        scored=0,
        conceded=0,
        goalDifference=0,
        points=0,
    )


class TournamentGenerator:
    """Utility class for generating tournament fixtures."""

    @staticmethod
    def shuffle(items: Sequence[T], rng: random.Random | None = None) -> list[T]:
        """Return a Fisher-Yates shuffled copy of `items`."""
        rng = rng or random.Random()
        shuffled = list(items)
        for i in range(len(shuffled) - 1, 0, -1):
            j = rng.randint(0, i)
            shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
        return shuffled

    @staticmethod
    def round_name(total_players: int, round_number: int) -> str:
        """Name a knockout round by its distance from the final."""
        total_rounds = int(math.log2(total_players))
        from_end = total_rounds - round_number + 1
        names = {
            1: "Final",
            2: "Semi-Finals",
            3: "Quarter-Finals",
            4: "Round of 16",
            5: "Round of 32",
        }
        return names.get(from_end, f"Round {round_number}")

    @staticmethod
    def build_match(  # noqa: PLR0913
        tournament_id: str,
        round_number: int,
        position: int,
        player1: dict[str, Any],
        player2: dict[str, Any],
        deadline: datetime.datetime,
        now: datetime.datetime,
    ) -> dict[str, Any]:
        """Build a pending match document between two players."""
        return {
            "tournamentId": tournament_id,
            "round": round_number,
            "position": position,
            "player1Id": player1.get("id"),
            "player1Name": player1.get("displayName"),
            "player1Score": None,
            "player1RoundRef": None,
            "player1CompletedAt": None,
            "player2Id": player2.get("id"),
            "player2Name": player2.get("displayName"),
            "player2Score": None,
            "player2RoundRef": None,
            "player2CompletedAt": None,
            "status": MATCH_PENDING,
            "winnerId": None,
            "winnerName": None,
            "forfeitedBy": None,
            "wentToPenalties": False,
            "player1PenaltyScore": None,
            "player2PenaltyScore": None,
            "penaltyResult": None,
            "deadline": deadline,
            "createdAt": now,
            "completedAt": None,
        }

    @staticmethod
    def generate_knockout_bracket(
        participants: Sequence[TournamentParticipant],
        tournament_id: str,
        deadline: datetime.datetime,
        now: datetime.datetime,
        rng: random.Random | None = None,
    ) -> tuple[KnockoutBracket, dict[str, dict[str, Any]]]:
        """Seed a single-elimination bracket.

        Returns the bracket and the round-1 match documents keyed by ID.
        Later rounds exist only as empty slots until both feeders finish.
        """
        count = len(participants)
        if count not in KNOCKOUT_SIZES:
            raise ValidationError(
                f"Knockout tournaments need {', '.join(map(str, KNOCKOUT_SIZES))} players."
            )

        shuffled = TournamentGenerator.shuffle(participants, rng)
        total_rounds = int(math.log2(count))
        matches: dict[str, dict[str, Any]] = {}
        first_round: list[BracketSlot] = []

        for position in range(count // 2):
            player1 = shuffled[2 * position]
            player2 = shuffled[2 * position + 1]
            match_id = knockout_match_id(1, position)
            matches[match_id] = TournamentGenerator.build_match(
                tournament_id,
                1,
                position,
                dict(player1),
                dict(player2),
                deadline,
                now,
            )
            first_round.append(
                BracketSlot(
                    id=match_id,
                    position=position,
                    player1Id=player1.get("id"),
                    player1Name=player1.get("displayName"),
                    player2Id=player2.get("id"),
                    player2Name=player2.get("displayName"),
                    winnerId=None,
                    status=MATCH_PENDING,
                    deadline=deadline,
                )
            )

        rounds = [
            BracketRound(
                roundNumber=1,
                roundName=TournamentGenerator.round_name(count, 1),
                matches=first_round,
            )
        ]
        for round_number in range(2, total_rounds + 1):
            slots = [
                BracketSlot(
                    id=knockout_match_id(round_number, position),
                    position=position,
                    player1Id=None,
                    player1Name=None,
                    player2Id=None,
                    player2Name=None,
                    winnerId=None,
                    status=MATCH_PENDING,
                    deadline=None,
                )
                for position in range(count // 2**round_number)
            ]
            rounds.append(
                BracketRound(
                    roundNumber=round_number,
                    roundName=TournamentGenerator.round_name(count, round_number),
                    matches=slots,
                )
            )

        return KnockoutBracket(rounds=rounds), matches

    @staticmethod
    def generate_league_fixtures(
        participants: Sequence[TournamentParticipant],
        tournament_id: str,
        deadline: datetime.datetime,
        now: datetime.datetime,
    ) -> dict[str, dict[str, Any]]:
        """Pair every participant with every other exactly once."""
        if len(participants) < LEAGUE_MIN_PLAYERS:
            raise ValidationError(
                f"Leagues need at least {LEAGUE_MIN_PLAYERS} players."
            )

        fixtures: dict[str, dict[str, Any]] = {}
        for i, player1 in enumerate(participants):
            for player2 in participants[i + 1 :]:
                position = len(fixtures)
                fixtures[league_match_id(position)] = TournamentGenerator.build_match(
                    tournament_id,
                    1,
                    position,
                    dict(player1),
                    dict(player2),
                    deadline,
                    now,
                )
        return fixtures

    @staticmethod
    def initial_standings(
        participants: Sequence[TournamentParticipant],
    ) -> dict[str, StandingRow]:
        return {p["id"]: empty_standing_row() for p in participants}
