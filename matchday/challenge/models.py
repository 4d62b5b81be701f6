"""Data models for the challenge blueprint."""

from __future__ import annotations

from typing import Any, Optional, TypedDict

from matchday.core.types import FirestoreDocument
from matchday.match.models import PenaltyResult


class ChallengeStats(TypedDict):
    """Aggregated challenge record for one participant."""

    sent: int
    received: int
    won: int
    lost: int
    tied: int
    pending: int


class Challenge(FirestoreDocument, total=False):
    """A challenge document in Firestore."""

    challengerId: str
    challengerName: str
    challengerPhotoURL: Optional[str]
    opponentId: Optional[str]
    opponentName: Optional[str]
    opponentPhotoURL: Optional[str]
    participantIds: list[str]
    inviteCode: Optional[str]

    challengerScore: Optional[int]
    challengerRoundRef: Optional[str]
    challengerCompletedAt: Any
    opponentScore: Optional[int]
    opponentRoundRef: Optional[str]
    opponentCompletedAt: Any

    status: str
    winnerId: Optional[str]
    winnerName: Optional[str]
    forfeitedBy: Optional[str]

    wentToPenalties: bool
    challengerPenaltyScore: Optional[int]
    opponentPenaltyScore: Optional[int]
    penaltyRound: int
    penaltyHistory: list[dict[str, int]]
    penaltyResult: Optional[PenaltyResult]

    acceptedAt: Any
    deadline: Any
    completedAt: Any
