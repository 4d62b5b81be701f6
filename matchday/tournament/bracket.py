"""Knockout bracket advancement.

Runs after a knockout match reaches a terminal status, in its own
transaction over the tournament document. A slot that already holds a
terminal status is never written again, so replaying the same outcome is a
no-op.
"""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, Any

from matchday.core.constants import (
    KNOCKOUT,
    MATCH_EXPIRED,
    MATCH_FORFEIT,
    MATCH_TERMINAL_STATUSES,
    MATCHES_SUBCOLLECTION,
    TOURNAMENT_ACTIVE,
    TOURNAMENT_COMPLETED,
    TOURNAMENTS_COLLECTION,
    TRANSACTION_MAX_ATTEMPTS,
)
from matchday.core.transactions import run_transaction
from matchday.utils import deadline_from_now, utcnow

from .generator import TournamentGenerator, knockout_match_id

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction

    from .models import BracketSlot, KnockoutBracket

logger = logging.getLogger(__name__)


def _is_decided(slot: BracketSlot) -> bool:
    return slot.get("status") in MATCH_TERMINAL_STATUSES


def _slot_player(slot: BracketSlot, side: str) -> dict[str, Any]:
    return {"id": slot.get(f"{side}Id"), "displayName": slot.get(f"{side}Name")}


def _winner_name(slot: BracketSlot) -> str | None:
    winner_id = slot.get("winnerId")
    for side in ("player1", "player2"):
        if winner_id and slot.get(f"{side}Id") == winner_id:
            return slot.get(f"{side}Name")
    return None


def current_round(bracket: KnockoutBracket) -> int:
    """First round with an undecided slot, or the final once all are decided."""
    rounds = bracket["rounds"]
    for bracket_round in rounds:
        if not all(_is_decided(slot) for slot in bracket_round["matches"]):
            return bracket_round["roundNumber"]
    return rounds[-1]["roundNumber"]


class BracketService:
    """Moves knockout winners through the bracket."""

    @staticmethod
    def _propagate(
        bracket: KnockoutBracket, round_number: int, position: int
    ) -> tuple[BracketSlot | None, list[tuple[int, int]]]:
        """Carry the decided slot at (round, position) as far as it goes.

        Returns the decided final slot (when the tournament is over) and the
        next-round slots that now have two real players.
        """
        rounds = bracket["rounds"]
        ready: list[tuple[int, int]] = []

        while True:
            slot = rounds[round_number - 1]["matches"][position]
            if round_number == len(rounds):
                return slot, ready

            next_position = position // 2
            next_slot = rounds[round_number]["matches"][next_position]
            side = "player1" if position % 2 == 0 else "player2"
            if slot.get("winnerId"):
                next_slot[f"{side}Id"] = slot.get("winnerId")  # type: ignore[literal-required]
                next_slot[f"{side}Name"] = _winner_name(slot)  # type: ignore[literal-required]

            feeders = rounds[round_number - 1]["matches"][
                2 * next_position : 2 * next_position + 2
            ]
            if not all(_is_decided(feeder) for feeder in feeders):
                return None, ready

            present = [feeder for feeder in feeders if feeder.get("winnerId")]
            if len(present) == 2:
                ready.append((round_number + 1, next_position))
                return None, ready

            if len(present) == 1:
                next_slot["status"] = MATCH_FORFEIT
                next_slot["winnerId"] = present[0].get("winnerId")
            else:
                next_slot["status"] = MATCH_EXPIRED
                next_slot["winnerId"] = None
            round_number, position = round_number + 1, next_position

    @staticmethod
    def _advance_in_transaction(
        transaction: Transaction,
        tournament_ref: DocumentReference,
        match: dict[str, Any],
        now: datetime.datetime,
    ) -> bool:
        snapshot = tournament_ref.get(transaction=transaction)
        if not snapshot.exists:
            return False
        tournament = snapshot.to_dict() or {}
        bracket = tournament.get("bracket")
        if (
            tournament.get("type") != KNOCKOUT
            or tournament.get("status") != TOURNAMENT_ACTIVE
            or not bracket
        ):
            return False

        round_number = int(match["round"])
        position = int(match["position"])
        slot = bracket["rounds"][round_number - 1]["matches"][position]
        if _is_decided(slot):
            return False

        slot["status"] = match.get("status")
        slot["winnerId"] = match.get("winnerId")
        final_slot, ready = BracketService._propagate(bracket, round_number, position)

        deadline = deadline_from_now(float(tournament.get("matchDeadlineHours") or 0), now)
        to_create: list[tuple[DocumentReference, dict[str, Any]]] = []
        matches_ref = tournament_ref.collection(MATCHES_SUBCOLLECTION)
        for next_round, next_position in ready:
            next_slot = bracket["rounds"][next_round - 1]["matches"][next_position]
            next_slot["deadline"] = deadline
            match_ref = matches_ref.document(knockout_match_id(next_round, next_position))
            if match_ref.get(transaction=transaction).exists:
                continue
            to_create.append((
                match_ref,
                TournamentGenerator.build_match(
                    tournament_ref.id,
                    next_round,
                    next_position,
                    _slot_player(next_slot, "player1"),
                    _slot_player(next_slot, "player2"),
                    deadline,
                    now,
                ),
            ))

        updates: dict[str, Any] = {
            "bracket": bracket,
            "currentRound": max(
                int(tournament.get("currentRound") or 1), current_round(bracket)
            ),
        }
        if final_slot is not None:
            updates.update({
                "status": TOURNAMENT_COMPLETED,
                "winnerId": final_slot.get("winnerId"),
                "winnerName": _winner_name(final_slot),
                "completedAt": now,
            })

        transaction.update(tournament_ref, updates)
        for match_ref, match_data in to_create:
            transaction.set(match_ref, match_data)
        return True

    @staticmethod
    def advance(
        db: Client,
        tournament_id: str,
        match: dict[str, Any],
        now: datetime.datetime | None = None,
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
    ) -> bool:
        """Record a terminal knockout match in the bracket and move its winner on.

        Returns False when the outcome was already recorded.
        """
        if match.get("status") not in MATCH_TERMINAL_STATUSES:
            return False
        tournament_ref = db.collection(TOURNAMENTS_COLLECTION).document(tournament_id)
        changed = run_transaction(
            db,
            BracketService._advance_in_transaction,
            tournament_ref,
            match,
            now or utcnow(),
            max_attempts=max_attempts,
        )
        if changed:
            logger.info(
                f"Bracket of {tournament_id} advanced from round {match.get('round')} "
                f"position {match.get('position')} (winner={match.get('winnerId')})"
            )
        return changed
