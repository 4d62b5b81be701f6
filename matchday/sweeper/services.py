"""Service layer for deadline expiry and effect reconciliation.

Everything here is safe to re-run on any cadence: expiry re-checks status
and deadline inside its transaction, and bracket and standings effects are
idempotent per match.
"""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, TypedDict

from firebase_admin import firestore

from matchday.core.constants import (
    CHALLENGE_OPEN_STATUSES,
    CHALLENGES_COLLECTION,
    MATCH_OPEN_STATUSES,
    MATCH_TERMINAL_STATUSES,
    MATCHES_SUBCOLLECTION,
    TOURNAMENT_ACTIVE,
    TOURNAMENTS_COLLECTION,
    TRANSACTION_MAX_ATTEMPTS,
)
from matchday.errors import AppError, NotFoundError
from matchday.match import CHALLENGE_LAYOUT, MatchService
from matchday.tournament.services import TournamentService, layout_for
from matchday.utils import is_overdue, utcnow

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)


class SweepReport(TypedDict):
    """Counts of what one sweep changed."""

    challengesExpired: int
    challengesForfeited: int
    matchesExpired: int
    matchesForfeited: int
    effectsApplied: int


class SweeperService:
    """Expires overdue challenges and tournament matches."""

    @staticmethod
    def sweep_challenges(
        db: Client,
        now: datetime.datetime,
        report: SweepReport,
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
    ) -> None:
        docs = (
            db.collection(CHALLENGES_COLLECTION)
            .where(
                filter=firestore.FieldFilter(
                    "status", "in", list(CHALLENGE_OPEN_STATUSES)
                )
            )
            .stream()
        )
        for doc in docs:
            if not is_overdue(doc.to_dict() or {}, now):
                continue
            try:
                outcome = MatchService.expire_if_overdue(
                    db, doc.reference, CHALLENGE_LAYOUT, now, max_attempts=max_attempts
                )
            except AppError as e:
                logger.warning(f"Could not expire challenge {doc.id}: {e.message}")
                continue
            if not outcome.changed:
                continue
            if outcome.data.get("forfeitedBy"):
                report["challengesForfeited"] += 1
            else:
                report["challengesExpired"] += 1

    @staticmethod
    def sweep_tournament_matches(
        db: Client,
        now: datetime.datetime,
        report: SweepReport,
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
    ) -> None:
        tournaments = (
            db.collection(TOURNAMENTS_COLLECTION)
            .where(filter=firestore.FieldFilter("status", "==", TOURNAMENT_ACTIVE))
            .stream()
        )
        for tournament_doc in tournaments:
            tournament = tournament_doc.to_dict() or {}
            layout = layout_for(tournament.get("type"))
            matches = (
                tournament_doc.reference.collection(MATCHES_SUBCOLLECTION)
                .where(
                    filter=firestore.FieldFilter(
                        "status", "in", list(MATCH_OPEN_STATUSES)
                    )
                )
                .stream()
            )
            for match_doc in matches:
                if not is_overdue(match_doc.to_dict() or {}, now):
                    continue
                try:
                    outcome = MatchService.expire_if_overdue(
                        db, match_doc.reference, layout, now, max_attempts=max_attempts
                    )
                except AppError as e:
                    logger.warning(
                        f"Could not expire match {match_doc.id} of "
                        f"{tournament_doc.id}: {e.message}"
                    )
                    continue
                if not outcome.changed:
                    continue
                if outcome.data.get("forfeitedBy"):
                    report["matchesForfeited"] += 1
                else:
                    report["matchesExpired"] += 1
                if TournamentService.apply_match_effects(
                    db,
                    tournament_doc.id,
                    tournament.get("type"),
                    match_doc.id,
                    outcome.data,
                    max_attempts=max_attempts,
                ):
                    report["effectsApplied"] += 1

    @staticmethod
    def sweep(
        now: datetime.datetime | None = None,
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
        db: Client | None = None,
    ) -> SweepReport:
        """Resolve every open challenge and tournament match past its deadline."""
        if db is None:
            db = firestore.client()
        now = now or utcnow()
        report = SweepReport(
            challengesExpired=0,
            challengesForfeited=0,
            matchesExpired=0,
            matchesForfeited=0,
            effectsApplied=0,
        )
        SweeperService.sweep_challenges(db, now, report, max_attempts)
        SweeperService.sweep_tournament_matches(db, now, report, max_attempts)
        logger.info(f"Sweep finished: {report}")
        return report

    @staticmethod
    def reconcile_tournament(
        tournament_id: str,
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
        db: Client | None = None,
    ) -> int:
        """Re-apply bracket or standings effects for every finished match.

        Returns how many matches changed the tournament document.
        """
        if db is None:
            db = firestore.client()
        tournament_ref = db.collection(TOURNAMENTS_COLLECTION).document(tournament_id)
        snapshot = tournament_ref.get()
        if not snapshot.exists:
            raise NotFoundError("Tournament not found.")
        tournament = snapshot.to_dict() or {}

        matches = [
            (doc.id, doc.to_dict() or {})
            for doc in tournament_ref.collection(MATCHES_SUBCOLLECTION).stream()
        ]
        matches.sort(key=lambda m: (m[1].get("round", 0), m[1].get("position", 0)))

        applied = 0
        for match_id, match in matches:
            if match.get("status") not in MATCH_TERMINAL_STATUSES:
                continue
            if TournamentService.apply_match_effects(
                db,
                tournament_id,
                tournament.get("type"),
                match_id,
                match,
                max_attempts=max_attempts,
            ):
                applied += 1
        logger.info(f"Reconciled tournament {tournament_id}: {applied} effect(s) applied")
        return applied
