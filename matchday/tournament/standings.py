"""League standings aggregation and ranking."""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, Any, Iterable, Sequence, cast

from matchday.core.constants import (
    LEAGUE,
    MATCH_COMPLETED,
    MATCH_FORFEIT,
    MATCH_TERMINAL_STATUSES,
    MATCHES_SUBCOLLECTION,
    POINTS_DRAW,
    POINTS_LOSS,
    POINTS_WIN,
    TOURNAMENT_ACTIVE,
    TOURNAMENT_COMPLETED,
    TOURNAMENTS_COLLECTION,
    TRANSACTION_MAX_ATTEMPTS,
)
from matchday.core.transactions import run_transaction
from matchday.utils import utcnow

from .generator import empty_standing_row
from .models import RankedStanding, StandingRow

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction

logger = logging.getLogger(__name__)


def _record(row: StandingRow, scored: int, conceded: int, outcome: str) -> None:
    row["played"] += 1
    row["scored"] += scored
    row["conceded"] += conceded
    row["goalDifference"] = row["scored"] - row["conceded"]
    if outcome == "won":
        row["won"] += 1
        row["points"] += POINTS_WIN
    elif outcome == "drawn":
        row["drawn"] += 1
        row["points"] += POINTS_DRAW
    else:
        row["lost"] += 1
        row["points"] += POINTS_LOSS


def match_result(match: dict[str, Any]) -> tuple[int, int, str | None] | None:
    """Goals credited to (player1, player2) and the winner's id.

    Returns None if the match counts for nothing. A forfeit is a win for the
    side that submitted, by its own score to nil, whatever that score was.
    The winner is None for a draw.
    """
    status = match.get("status")
    p1_id, p2_id = match.get("player1Id"), match.get("player2Id")
    p1_score = match.get("player1Score")
    p2_score = match.get("player2Score")
    if status == MATCH_COMPLETED and p1_score is not None and p2_score is not None:
        p1_goals, p2_goals = int(p1_score), int(p2_score)
        if p1_goals == p2_goals:
            return p1_goals, p2_goals, None
        return p1_goals, p2_goals, p1_id if p1_goals > p2_goals else p2_id
    winner_id = match.get("winnerId")
    if status == MATCH_FORFEIT and winner_id and winner_id in (p1_id, p2_id):
        if winner_id == p1_id:
            return int(p1_score or 0), 0, winner_id
        return 0, int(p2_score or 0), winner_id
    return None


def _outcome_for(player_id: str, winner_id: str | None) -> str:
    if winner_id is None:
        return "drawn"
    return "won" if winner_id == player_id else "lost"


def apply_match_to_standings(
    standings: dict[str, StandingRow], match: dict[str, Any]
) -> bool:
    """Add one terminal fixture to `standings` in place."""
    result = match_result(match)
    if result is None:
        return False
    p1_goals, p2_goals, winner_id = result
    p1_id, p2_id = match["player1Id"], match["player2Id"]
    p1_row = standings.setdefault(p1_id, empty_standing_row())
    p2_row = standings.setdefault(p2_id, empty_standing_row())
    _record(p1_row, p1_goals, p2_goals, _outcome_for(p1_id, winner_id))
    _record(p2_row, p2_goals, p1_goals, _outcome_for(p2_id, winner_id))
    return True


def _head_to_head_points(
    tied_ids: set[str], matches: Iterable[dict[str, Any]]
) -> dict[str, int]:
    points = {pid: 0 for pid in tied_ids}
    for match in matches:
        p1, p2 = match.get("player1Id"), match.get("player2Id")
        if p1 not in tied_ids or p2 not in tied_ids:
            continue
        result = match_result(match)
        if result is None:
            continue
        winner_id = result[2]
        if winner_id is None:
            points[p1] += POINTS_DRAW
            points[p2] += POINTS_DRAW
        else:
            points[winner_id] += POINTS_WIN
    return points


def _overall_key(row: RankedStanding) -> tuple[int, int, int]:
    return (row["points"], row["goalDifference"], row["scored"])


def rank_standings(
    standings: dict[str, StandingRow],
    participants: Sequence[dict[str, Any]] = (),
    matches: Iterable[dict[str, Any]] = (),
) -> list[RankedStanding]:
    """Order league rows by points, goal difference, goals scored, then head-to-head.

    Head-to-head only counts the fixtures played among each group of rows
    that are level on the first three keys.
    """
    names = {p.get("id"): p.get("displayName") for p in participants}
    rows = [
        cast(RankedStanding, {**row, "id": pid, "displayName": names.get(pid)})
        for pid, row in standings.items()
    ]
    rows.sort(key=_overall_key, reverse=True)
    matches = list(matches)

    ranked: list[RankedStanding] = []
    i = 0
    while i < len(rows):
        j = i + 1
        while j < len(rows) and _overall_key(rows[j]) == _overall_key(rows[i]):
            j += 1
        group = rows[i:j]
        if len(group) > 1:
            h2h = _head_to_head_points({row["id"] for row in group}, matches)
            group.sort(key=lambda row: h2h[row["id"]], reverse=True)
        ranked.extend(group)
        i = j
    return ranked


def league_winner(
    standings: dict[str, StandingRow], matches: Iterable[dict[str, Any]]
) -> str | None:
    """The outright league winner, or None when the top is still shared."""
    matches = list(matches)
    ranked = rank_standings(standings, matches=matches)
    if not ranked:
        return None
    leaders = [row for row in ranked if _overall_key(row) == _overall_key(ranked[0])]
    if len(leaders) == 1:
        return ranked[0]["id"]
    h2h = _head_to_head_points({row["id"] for row in leaders}, matches)
    best = max(h2h.values())
    top = [pid for pid, points in h2h.items() if points == best]
    return top[0] if len(top) == 1 else None


class StandingsService:
    """Applies league fixture results to the tournament's standings."""

    @staticmethod
    def _apply_in_transaction(
        transaction: Transaction,
        tournament_ref: DocumentReference,
        match_id: str,
        match: dict[str, Any],
        now: datetime.datetime,
    ) -> bool:
        snapshot = tournament_ref.get(transaction=transaction)
        if not snapshot.exists:
            return False
        tournament = snapshot.to_dict() or {}
        applied = list(tournament.get("standingsApplied") or [])
        if (
            tournament.get("type") != LEAGUE
            or tournament.get("status") != TOURNAMENT_ACTIVE
            or match_id in applied
        ):
            return False

        standings = dict(tournament.get("standings") or {})
        apply_match_to_standings(standings, match)
        applied.append(match_id)

        player_count = len(tournament.get("participantIds") or [])
        updates: dict[str, Any] = {
            "standings": standings,
            "standingsApplied": applied,
        }
        if len(applied) >= player_count * (player_count - 1) // 2:
            fixtures = {
                snap.id: snap.to_dict() or {}
                for snap in tournament_ref.collection(MATCHES_SUBCOLLECTION).stream(
                    transaction=transaction
                )
            }
            fixtures[match_id] = match
            winner_id = league_winner(standings, fixtures.values())
            names = {
                p.get("id"): p.get("displayName")
                for p in tournament.get("participants") or []
            }
            updates.update({
                "status": TOURNAMENT_COMPLETED,
                "winnerId": winner_id,
                "winnerName": names.get(winner_id) if winner_id else None,
                "completedAt": now,
            })

        transaction.update(tournament_ref, updates)
        return True

    @staticmethod
    def apply(
        db: Client,
        tournament_id: str,
        match_id: str,
        match: dict[str, Any],
        now: datetime.datetime | None = None,
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
    ) -> bool:
        """Fold a terminal league fixture into the standings exactly once."""
        if match.get("status") not in MATCH_TERMINAL_STATUSES:
            return False
        tournament_ref = db.collection(TOURNAMENTS_COLLECTION).document(tournament_id)
        changed = run_transaction(
            db,
            StandingsService._apply_in_transaction,
            tournament_ref,
            match_id,
            match,
            now or utcnow(),
            max_attempts=max_attempts,
        )
        if changed:
            logger.info(f"Standings of {tournament_id} updated with {match_id}")
        return changed
