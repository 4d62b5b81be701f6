"""Data models for the tournament blueprint."""

from __future__ import annotations

from typing import Any, Optional, TypedDict

from matchday.core.types import FirestoreDocument
from matchday.match.models import PenaltyResult


class TournamentParticipant(TypedDict, total=False):
    """A player registered for a tournament."""

    id: str
    displayName: str
    photoURL: Optional[str]
    joinedAt: Any


class BracketSlot(TypedDict, total=False):
    """One match position inside a knockout bracket."""

    id: str
    position: int
    player1Id: Optional[str]
    player1Name: Optional[str]
    player2Id: Optional[str]
    player2Name: Optional[str]
    winnerId: Optional[str]
    status: str
    deadline: Any


class BracketRound(TypedDict):
    """A round of a knockout bracket."""

    roundNumber: int
    roundName: str
    matches: list[BracketSlot]


class KnockoutBracket(TypedDict):
    """The full knockout tree, round 1 first."""

    rounds: list[BracketRound]


class StandingRow(TypedDict):
    """A participant's league record."""

    played: int
    won: int
    drawn: int
    lost: int
    scored: int
    conceded: int
    goalDifference: int
    points: int


class RankedStanding(StandingRow, total=False):
    """A standing row with its owner, as returned by rank_standings."""

    id: str
    displayName: str


class Tournament(FirestoreDocument, total=False):
    """A tournament document in Firestore."""

    name: str
    description: Optional[str]
    creatorId: str
    creatorName: str
    type: str
    maxPlayers: int
    isPublic: bool
    matchDeadlineHours: float
    participantIds: list[str]
    participants: list[TournamentParticipant]
    status: str
    currentRound: int
    bracket: Optional[KnockoutBracket]
    standings: Optional[dict[str, StandingRow]]
    standingsApplied: list[str]
    winnerId: Optional[str]
    winnerName: Optional[str]
    inviteCode: Optional[str]
    startedAt: Any
    completedAt: Any


class TournamentMatch(FirestoreDocument, total=False):
    """A match document in ``tournaments/{id}/matches``."""

    tournamentId: str
    round: int
    position: int
    player1Id: Optional[str]
    player1Name: Optional[str]
    player1Score: Optional[int]
    player1RoundRef: Optional[str]
    player1CompletedAt: Any
    player2Id: Optional[str]
    player2Name: Optional[str]
    player2Score: Optional[int]
    player2RoundRef: Optional[str]
    player2CompletedAt: Any
    status: str
    winnerId: Optional[str]
    winnerName: Optional[str]
    forfeitedBy: Optional[str]
    wentToPenalties: bool
    player1PenaltyScore: Optional[int]
    player2PenaltyScore: Optional[int]
    penaltyRound: int
    penaltyResult: Optional[PenaltyResult]
    deadline: Any
    completedAt: Any
