"""Service layer for resolving match results.

Challenges and tournament matches share one resolution algorithm. Every
per-side write is guarded by "already non-null means no-op", so a retried
call can never double count a score. Each public entry point runs inside a
single Firestore transaction; effects on other documents (bracket,
standings) are left to the caller.
"""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, Any

from matchday.core.constants import (
    PENALTY_FIRST_RECORDED,
    PENALTY_ROUNDS,
    PENALTY_SUDDEN_DEATH,
    PENALTY_TIE_POLICIES,
    TRANSACTION_MAX_ATTEMPTS,
)
from matchday.core.transactions import run_transaction
from matchday.errors import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from matchday.utils import utcnow

from .models import MatchLayout, MatchOutcome

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction

logger = logging.getLogger(__name__)


def validate_score(value: Any, label: str = "Score") -> int:
    """Return `value` if it is a non-negative integer score."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label} must be a whole number.")
    if value < 0:
        raise ValidationError(f"{label} cannot be negative.")
    return value


class MatchService:
    """Atomic score and penalty submission for any two-sided match."""

    @staticmethod
    def _read(
        transaction: Transaction, match_ref: DocumentReference
    ) -> dict[str, Any]:
        snapshot = match_ref.get(transaction=transaction)
        if not snapshot.exists:
            raise NotFoundError("Match not found.")
        return snapshot.to_dict() or {}

    @staticmethod
    def _side_or_raise(
        layout: MatchLayout, data: dict[str, Any], participant_id: str
    ) -> str:
        side = layout.side_of(data, participant_id)
        if side is None:
            raise UnauthorizedError("You are not playing in this match.")
        return side

    @staticmethod
    def _winner_fields(
        layout: MatchLayout, data: dict[str, Any], side: str
    ) -> dict[str, Any]:
        return {
            "winnerId": data.get(layout.field(side, "Id")),
            "winnerName": data.get(layout.field(side, "Name")),
        }

    @staticmethod
    def _decide(
        layout: MatchLayout,
        data: dict[str, Any],
        scores: dict[str, int],
        now: datetime.datetime,
    ) -> dict[str, Any]:
        """Compute the outcome once both sides have a score."""
        first, second = layout.sides
        if scores[first] != scores[second]:
            winner = first if scores[first] > scores[second] else second
            return {
                "status": layout.completed_status,
                **MatchService._winner_fields(layout, data, winner),
                "completedAt": now,
            }
        if layout.ties_are_draws:
            return {
                "status": layout.completed_status,
                "winnerId": None,
                "winnerName": None,
                "completedAt": now,
            }
        return {"status": layout.tie_status, "wentToPenalties": True}

    @staticmethod
    def _apply_score(  # noqa: PLR0913
        transaction: Transaction,
        match_ref: DocumentReference,
        layout: MatchLayout,
        participant_id: str,
        score: int,
        round_ref: str,
        now: datetime.datetime,
    ) -> MatchOutcome:
        data = MatchService._read(transaction, match_ref)
        side = MatchService._side_or_raise(layout, data, participant_id)
        score_field = layout.field(side, "Score")

        if data.get(score_field) is not None:
            return MatchOutcome(match_ref.id, data, changed=False)

        status = data.get("status")
        if status not in layout.scoring_statuses:
            if layout.is_terminal(status):
                raise ConflictError("This match is already over.")
            raise ConflictError("This match is not accepting scores yet.")

        updates: dict[str, Any] = {
            score_field: score,
            layout.field(side, "RoundRef"): round_ref,
            layout.field(side, "CompletedAt"): now,
        }
        if status in layout.startable_statuses:
            updates["status"] = layout.in_progress_status

        other_score = data.get(layout.field(layout.other(side), "Score"))
        if other_score is not None:
            scores = {side: score, layout.other(side): other_score}
            updates.update(MatchService._decide(layout, data, scores, now))

        transaction.update(match_ref, updates)
        data.update(updates)
        return MatchOutcome(match_ref.id, data)

    @staticmethod
    def _apply_penalty(  # noqa: PLR0913
        transaction: Transaction,
        match_ref: DocumentReference,
        layout: MatchLayout,
        participant_id: str,
        penalty_score: int,
        tie_policy: str,
        now: datetime.datetime,
        penalty_round: int | None = None,
    ) -> MatchOutcome:
        data = MatchService._read(transaction, match_ref)
        side = MatchService._side_or_raise(layout, data, participant_id)
        other = layout.other(side)
        penalty_field = layout.field(side, "PenaltyScore")
        other_field = layout.field(other, "PenaltyScore")

        if not data.get("wentToPenalties"):
            raise ConflictError("This match did not go to penalties.")
        current_round = int(data.get("penaltyRound") or 1)
        if penalty_round is not None:
            # Sudden death clears both fields each round, so a replayed call
            # is recognised by the round it was made for.
            if penalty_round < current_round:
                return MatchOutcome(match_ref.id, data, changed=False)
            if penalty_round > current_round:
                raise ConflictError("That shootout round has not started yet.")
        if data.get(penalty_field) is not None:
            return MatchOutcome(match_ref.id, data, changed=False)
        if data.get("status") != layout.tie_status:
            raise ConflictError("This shootout is already over.")

        updates: dict[str, Any] = {penalty_field: penalty_score}
        other_penalty = data.get(other_field)

        if other_penalty is not None:
            if penalty_score != other_penalty:
                winner = side if penalty_score > other_penalty else other
            elif tie_policy == PENALTY_SUDDEN_DEATH:
                winner = None
                updates = {
                    penalty_field: None,
                    other_field: None,
                    "penaltyRound": current_round + 1,
                    "penaltyHistory": [
                        *(data.get("penaltyHistory") or []),
                        {penalty_field: penalty_score, other_field: other_penalty},
                    ],
                }
            else:
                # Still level: the side whose score was already stored wins.
                winner = other

            if winner is not None:
                first, second = layout.sides
                final = {side: penalty_score, other: other_penalty}
                winner_fields = MatchService._winner_fields(layout, data, winner)
                updates.update({
                    "status": layout.completed_status,
                    **winner_fields,
                    "penaltyResult": {
                        layout.field(first, "Score"): final[first],
                        layout.field(second, "Score"): final[second],
                        "totalRounds": PENALTY_ROUNDS + current_round - 1,
                        "winnerId": winner_fields["winnerId"],
                    },
                    "completedAt": now,
                })

        transaction.update(match_ref, updates)
        data.update(updates)
        return MatchOutcome(match_ref.id, data)

    @staticmethod
    def _apply_expiry(
        transaction: Transaction,
        match_ref: DocumentReference,
        layout: MatchLayout,
        now: datetime.datetime,
    ) -> MatchOutcome:
        snapshot = match_ref.get(transaction=transaction)
        if not snapshot.exists:
            return MatchOutcome(match_ref.id, {}, changed=False)
        data = snapshot.to_dict() or {}
        deadline = data.get("deadline")
        if layout.is_terminal(data.get("status")) or deadline is None or deadline > now:
            return MatchOutcome(match_ref.id, data, changed=False)

        field_name = "PenaltyScore" if data.get("wentToPenalties") else "Score"
        submitted = [
            side
            for side in layout.sides
            if data.get(layout.field(side, field_name)) is not None
        ]

        if len(submitted) == 1:
            winner = submitted[0]
            updates: dict[str, Any] = {
                "status": layout.forfeit_status,
                **MatchService._winner_fields(layout, data, winner),
                "forfeitedBy": data.get(layout.field(layout.other(winner), "Id")),
                "completedAt": now,
            }
        else:
            updates = {
                "status": layout.expired_status,
                "winnerId": None,
                "winnerName": None,
                "completedAt": now,
            }

        transaction.update(match_ref, updates)
        data.update(updates)
        return MatchOutcome(match_ref.id, data)

    @staticmethod
    def submit_score(  # noqa: PLR0913
        db: Client,
        match_ref: DocumentReference,
        layout: MatchLayout,
        participant_id: str,
        score: Any,
        round_ref: Any,
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
    ) -> MatchOutcome:
        """Record one side's score and settle the match if both are in."""
        score = validate_score(score)
        if not isinstance(round_ref, str) or not round_ref:
            raise ValidationError("A round reference is required.")

        outcome = run_transaction(
            db,
            MatchService._apply_score,
            match_ref,
            layout,
            participant_id,
            score,
            round_ref,
            utcnow(),
            max_attempts=max_attempts,
        )
        if outcome.changed:
            logger.info(
                f"Score {score} recorded for {participant_id} on {match_ref.id} "
                f"(status={outcome.status})"
            )
        return outcome

    @staticmethod
    def submit_penalty_score(  # noqa: PLR0913
        db: Client,
        match_ref: DocumentReference,
        layout: MatchLayout,
        participant_id: str,
        penalty_score: Any,
        tie_policy: str = PENALTY_FIRST_RECORDED,
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
        penalty_round: int | None = None,
    ) -> MatchOutcome:
        """Record one side's penalty shootout score.

        `penalty_round` is the shootout round the caller saw. Under sudden
        death it makes a retried submission a no-op instead of an entry for
        the next round.
        """
        penalty_score = validate_score(penalty_score, "Penalty score")
        if penalty_round is not None:
            penalty_round = validate_score(penalty_round, "Penalty round")
        if tie_policy not in PENALTY_TIE_POLICIES:
            raise ValueError(f"Unknown penalty tie policy: {tie_policy}")

        outcome = run_transaction(
            db,
            MatchService._apply_penalty,
            match_ref,
            layout,
            participant_id,
            penalty_score,
            tie_policy,
            utcnow(),
            penalty_round,
            max_attempts=max_attempts,
        )
        if outcome.changed:
            logger.info(
                f"Penalty score {penalty_score} recorded for {participant_id} "
                f"on {match_ref.id} (status={outcome.status})"
            )
        return outcome

    @staticmethod
    def expire_if_overdue(
        db: Client,
        match_ref: DocumentReference,
        layout: MatchLayout,
        now: datetime.datetime | None = None,
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
    ) -> MatchOutcome:
        """Expire or forfeit a match whose deadline has passed."""
        outcome = run_transaction(
            db,
            MatchService._apply_expiry,
            match_ref,
            layout,
            now or utcnow(),
            max_attempts=max_attempts,
        )
        if outcome.changed:
            logger.info(
                f"Match {match_ref.id} passed its deadline: status={outcome.status} "
                f"winner={outcome.winner_id}"
            )
        return outcome
