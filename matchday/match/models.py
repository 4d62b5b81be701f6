"""Data models for match resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, TypedDict

from matchday.core.constants import (
    CHALLENGE_ACCEPTED,
    CHALLENGE_COMPLETED,
    CHALLENGE_EXPIRED,
    CHALLENGE_IN_PROGRESS,
    CHALLENGE_OPEN_STATUSES,
    MATCH_COMPLETED,
    MATCH_EXPIRED,
    MATCH_FORFEIT,
    MATCH_IN_PROGRESS,
    MATCH_OPEN_STATUSES,
    MATCH_PENALTY,
    MATCH_PENDING,
)


class PenaltyResult(TypedDict, total=False):
    """Outcome of a penalty shootout, keyed by side (e.g. ``challengerScore``)."""

    challengerScore: int
    opponentScore: int
    player1Score: int
    player2Score: int
    totalRounds: int
    winnerId: str


@dataclass(frozen=True)
class MatchLayout:
    """Describes how a match document names and moves its two sides.

    Side fields are stored flat as ``<side><Field>``, e.g. ``challengerScore``
    or ``player2RoundRef``.
    """

    sides: tuple[str, str]
    scoring_statuses: tuple[str, ...]
    startable_statuses: tuple[str, ...]
    open_statuses: tuple[str, ...]
    in_progress_status: str
    tie_status: str
    completed_status: str
    forfeit_status: str
    expired_status: str
    ties_are_draws: bool = False

    def field(self, side: str, name: str) -> str:
        """Return the stored field name for `name` on `side`."""
        return f"{side}{name}"

    def other(self, side: str) -> str:
        """Return the opposite side."""
        return self.sides[1] if side == self.sides[0] else self.sides[0]

    def side_of(self, data: dict[str, Any], participant_id: str) -> Optional[str]:
        """Return which side `participant_id` plays on, if any."""
        for side in self.sides:
            if participant_id and data.get(self.field(side, "Id")) == participant_id:
                return side
        return None

    def is_terminal(self, status: str | None) -> bool:
        """Whether `status` is a final state for this kind of match."""
        return status not in self.open_statuses


CHALLENGE_LAYOUT = MatchLayout(
    sides=("challenger", "opponent"),
    scoring_statuses=(CHALLENGE_ACCEPTED, CHALLENGE_IN_PROGRESS),
    startable_statuses=(CHALLENGE_ACCEPTED,),
    open_statuses=CHALLENGE_OPEN_STATUSES,
    in_progress_status=CHALLENGE_IN_PROGRESS,
    tie_status=CHALLENGE_IN_PROGRESS,
    completed_status=CHALLENGE_COMPLETED,
    forfeit_status=CHALLENGE_COMPLETED,
    expired_status=CHALLENGE_EXPIRED,
)

KNOCKOUT_MATCH_LAYOUT = MatchLayout(
    sides=("player1", "player2"),
    scoring_statuses=(MATCH_PENDING, MATCH_IN_PROGRESS),
    startable_statuses=(MATCH_PENDING,),
    open_statuses=MATCH_OPEN_STATUSES,
    in_progress_status=MATCH_IN_PROGRESS,
    tie_status=MATCH_PENALTY,
    completed_status=MATCH_COMPLETED,
    forfeit_status=MATCH_FORFEIT,
    expired_status=MATCH_EXPIRED,
)

# League fixtures never go to penalties: a level score completes the match as
# a draw worth a point each, since a shootout result has no place in the
# standings table and would leave the fixture unscored there.
LEAGUE_MATCH_LAYOUT = MatchLayout(
    sides=("player1", "player2"),
    scoring_statuses=(MATCH_PENDING, MATCH_IN_PROGRESS),
    startable_statuses=(MATCH_PENDING,),
    open_statuses=MATCH_OPEN_STATUSES,
    in_progress_status=MATCH_IN_PROGRESS,
    tie_status=MATCH_PENALTY,
    completed_status=MATCH_COMPLETED,
    forfeit_status=MATCH_FORFEIT,
    expired_status=MATCH_EXPIRED,
    ties_are_draws=True,
)


@dataclass
class MatchOutcome:
    """Result of a resolution transaction, returned for downstream effects."""

    match_id: str
    data: dict[str, Any] = field(default_factory=dict)
    changed: bool = True

    @property
    def no_op(self) -> bool:
        return not self.changed

    @property
    def status(self) -> str | None:
        return self.data.get("status")

    @property
    def winner_id(self) -> str | None:
        return self.data.get("winnerId")

    @property
    def went_to_penalties(self) -> bool:
        return bool(self.data.get("wentToPenalties"))

    @property
    def completed(self) -> bool:
        """Whether the match reached a state that downstream effects act on."""
        return self.status in (MATCH_COMPLETED, MATCH_FORFEIT, MATCH_EXPIRED)
