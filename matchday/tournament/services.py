"""Service layer for tournament business logic."""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Any, Callable, cast

from firebase_admin import firestore

from matchday.core.constants import (
    DEFAULT_MATCH_DEADLINE_HOURS,
    KNOCKOUT,
    KNOCKOUT_SIZES,
    LEAGUE,
    LEAGUE_MIN_PLAYERS,
    MATCHES_SUBCOLLECTION,
    PENALTY_FIRST_RECORDED,
    PUBLIC_TOURNAMENT_LIMIT,
    TOURNAMENT_ACTIVE,
    TOURNAMENT_CANCELLED,
    TOURNAMENT_CODE_PREFIX,
    TOURNAMENT_PENDING,
    TOURNAMENTS_COLLECTION,
    TRANSACTION_MAX_ATTEMPTS,
)
from matchday.core.transactions import run_transaction
from matchday.errors import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from matchday.match import (
    KNOCKOUT_MATCH_LAYOUT,
    LEAGUE_MATCH_LAYOUT,
    MatchLayout,
    MatchOutcome,
    MatchService,
)
from matchday.utils import (
    deadline_from_now,
    generate_entity_id,
    generate_unique_invite_code,
    normalize_invite_code,
    snapshot_to_dict,
    utcnow,
)

from .bracket import BracketService
from .generator import TournamentGenerator
from .models import Tournament, TournamentMatch
from .standings import StandingsService

if TYPE_CHECKING:
    import datetime

    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction

    from matchday.core.types import Participant

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 80


def layout_for(tournament_type: str | None) -> MatchLayout:
    """Resolution rules for matches of the given tournament type."""
    return LEAGUE_MATCH_LAYOUT if tournament_type == LEAGUE else KNOCKOUT_MATCH_LAYOUT


class TournamentService:
    """Handles business logic and data access for tournaments."""

    @staticmethod
    def _ref(db: Client, tournament_id: str) -> DocumentReference:
        return db.collection(TOURNAMENTS_COLLECTION).document(tournament_id)

    @staticmethod
    def _read(transaction: Transaction, ref: DocumentReference) -> dict[str, Any]:
        snapshot = ref.get(transaction=transaction)
        if not snapshot.exists:
            raise NotFoundError("Tournament not found.")
        return cast(dict[str, Any], snapshot.to_dict() or {})

    @staticmethod
    def _require_creator(data: dict[str, Any], user_uid: str, action: str) -> None:
        if data.get("creatorId") != user_uid:
            raise UnauthorizedError(f"Only the organiser can {action} this tournament.")

    @staticmethod
    def create_tournament(  # noqa: PLR0913
        creator: Participant,
        name: str,
        tournament_type: str,
        max_players: int,
        is_public: bool = True,
        match_deadline_hours: float = DEFAULT_MATCH_DEADLINE_HOURS,
        description: str | None = None,
        db: Client | None = None,
    ) -> Tournament:
        """Create a tournament with the creator as its first participant."""
        if db is None:
            db = firestore.client()

        name = (name or "").strip()
        if not name:
            raise ValidationError("Tournament name is required.")
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError("Tournament name is too long.")
        if tournament_type == KNOCKOUT:
            if max_players not in KNOCKOUT_SIZES:
                raise ValidationError(
                    "Knockout tournaments take 4, 8, 16 or 32 players."
                )
        elif tournament_type == LEAGUE:
            if max_players < LEAGUE_MIN_PLAYERS:
                raise ValidationError(
                    f"Leagues need room for at least {LEAGUE_MIN_PLAYERS} players."
                )
        else:
            raise ValidationError("Tournament type must be knockout or league.")
        if match_deadline_hours <= 0:
            raise ValidationError("Match deadline must be a positive number of hours.")

        now = utcnow()
        tournament_id = generate_entity_id()
        invite_code = None
        if not is_public:
            invite_code = generate_unique_invite_code(
                db, TOURNAMENTS_COLLECTION, TOURNAMENT_CODE_PREFIX
            )

        payload: dict[str, Any] = {
            "name": name,
            "description": description or None,
            "creatorId": creator["id"],
            "creatorName": creator.get("displayName"),
            "type": tournament_type,
            "maxPlayers": max_players,
            "isPublic": is_public,
            "matchDeadlineHours": match_deadline_hours,
            "participantIds": [creator["id"]],
            "participants": [
                {
                    "id": creator["id"],
                    "displayName": creator.get("displayName"),
                    "photoURL": creator.get("photoURL"),
                    "joinedAt": now,
                }
            ],
            "status": TOURNAMENT_PENDING,
            "currentRound": 0,
            "bracket": None,
            "standings": None,
            "standingsApplied": [],
            "winnerId": None,
            "winnerName": None,
            "inviteCode": invite_code,
            "createdAt": now,
            "startedAt": None,
            "completedAt": None,
        }
        TournamentService._ref(db, tournament_id).set(payload)
        logger.info(f"Tournament {tournament_id} ({tournament_type}) created by {creator['id']}")
        return cast(Tournament, {**payload, "id": tournament_id})

    @staticmethod
    def _join_in_transaction(
        transaction: Transaction,
        ref: DocumentReference,
        participant: Participant,
        now: datetime.datetime,
    ) -> dict[str, Any]:
        data = TournamentService._read(transaction, ref)
        if data.get("status") != TOURNAMENT_PENDING:
            raise ConflictError("This tournament is no longer open for entries.")
        participant_ids = list(data.get("participantIds") or [])
        if participant["id"] in participant_ids:
            raise ConflictError("You have already joined this tournament.")
        if len(participant_ids) >= int(data.get("maxPlayers") or 0):
            raise ConflictError("This tournament is full.")

        updates = {
            "participantIds": [*participant_ids, participant["id"]],
            "participants": [
                *(data.get("participants") or []),
                {
                    "id": participant["id"],
                    "displayName": participant.get("displayName"),
                    "photoURL": participant.get("photoURL"),
                    "joinedAt": now,
                },
            ],
        }
        transaction.update(ref, updates)
        data.update(updates)
        return data

    @staticmethod
    def join_tournament(
        tournament_id: str, participant: Participant, db: Client | None = None
    ) -> Tournament:
        """Add a participant to a pending tournament."""
        if db is None:
            db = firestore.client()
        data = run_transaction(
            db,
            TournamentService._join_in_transaction,
            TournamentService._ref(db, tournament_id),
            participant,
            utcnow(),
        )
        logger.info(f"{participant['id']} joined tournament {tournament_id}")
        return cast(Tournament, {**data, "id": tournament_id})

    @staticmethod
    def find_tournament_by_code(
        code: str, db: Client | None = None
    ) -> Tournament | None:
        """Look up a pending tournament by its invite code."""
        if db is None:
            db = firestore.client()
        normalized = normalize_invite_code(code, TOURNAMENT_CODE_PREFIX)
        docs = (
            db.collection(TOURNAMENTS_COLLECTION)
            .where(filter=firestore.FieldFilter("inviteCode", "==", normalized))
            .where(filter=firestore.FieldFilter("status", "==", TOURNAMENT_PENDING))
            .limit(1)
            .stream()
        )
        for doc in docs:
            return cast(Tournament, snapshot_to_dict(doc))
        return None

    @staticmethod
    def join_tournament_by_code(
        code: str, participant: Participant, db: Client | None = None
    ) -> Tournament:
        if db is None:
            db = firestore.client()
        tournament = TournamentService.find_tournament_by_code(code, db=db)
        if not tournament:
            raise NotFoundError("Invalid tournament code.")
        return TournamentService.join_tournament(tournament["id"], participant, db=db)

    @staticmethod
    def _leave_in_transaction(
        transaction: Transaction, ref: DocumentReference, user_uid: str
    ) -> None:
        data = TournamentService._read(transaction, ref)
        if data.get("status") != TOURNAMENT_PENDING:
            raise ConflictError("You can only leave a tournament before it starts.")
        if data.get("creatorId") == user_uid:
            raise ConflictError("The organiser cannot leave their own tournament.")
        participant_ids = list(data.get("participantIds") or [])
        if user_uid not in participant_ids:
            raise NotFoundError("You are not in this tournament.")

        transaction.update(
            ref,
            {
                "participantIds": [pid for pid in participant_ids if pid != user_uid],
                "participants": [
                    p for p in data.get("participants") or [] if p.get("id") != user_uid
                ],
            },
        )

    @staticmethod
    def leave_tournament(
        tournament_id: str, user_uid: str, db: Client | None = None
    ) -> None:
        """Withdraw a participant from a pending tournament."""
        if db is None:
            db = firestore.client()
        run_transaction(
            db,
            TournamentService._leave_in_transaction,
            TournamentService._ref(db, tournament_id),
            user_uid,
        )
        logger.info(f"{user_uid} left tournament {tournament_id}")

    @staticmethod
    def _start_in_transaction(
        transaction: Transaction,
        ref: DocumentReference,
        user_uid: str,
        now: datetime.datetime,
        rng: random.Random | None,
    ) -> dict[str, Any]:
        data = TournamentService._read(transaction, ref)
        TournamentService._require_creator(data, user_uid, "start")
        if data.get("status") != TOURNAMENT_PENDING:
            raise ConflictError("This tournament has already started.")

        participants = list(data.get("participants") or [])
        deadline = deadline_from_now(
            float(data.get("matchDeadlineHours") or DEFAULT_MATCH_DEADLINE_HOURS), now
        )
        updates: dict[str, Any] = {
            "status": TOURNAMENT_ACTIVE,
            "currentRound": 1,
            "startedAt": now,
        }
        if data.get("type") == KNOCKOUT:
            bracket, matches = TournamentGenerator.generate_knockout_bracket(
                participants, ref.id, deadline, now, rng=rng
            )
            updates["bracket"] = bracket
        else:
            matches = TournamentGenerator.generate_league_fixtures(
                participants, ref.id, deadline, now
            )
            updates["standings"] = TournamentGenerator.initial_standings(participants)
            updates["standingsApplied"] = []

        transaction.update(ref, updates)
        matches_ref = ref.collection(MATCHES_SUBCOLLECTION)
        for match_id, match_data in matches.items():
            transaction.set(matches_ref.document(match_id), match_data)
        data.update(updates)
        return data

    @staticmethod
    def start_tournament(
        tournament_id: str,
        user_uid: str,
        rng: random.Random | None = None,
        db: Client | None = None,
    ) -> Tournament:
        """Seed the fixtures and open round one. Organiser only."""
        if db is None:
            db = firestore.client()
        data = run_transaction(
            db,
            TournamentService._start_in_transaction,
            TournamentService._ref(db, tournament_id),
            user_uid,
            utcnow(),
            rng,
        )
        logger.info(
            f"Tournament {tournament_id} started with "
            f"{len(data.get('participantIds') or [])} players"
        )
        return cast(Tournament, {**data, "id": tournament_id})

    @staticmethod
    def _cancel_in_transaction(
        transaction: Transaction,
        ref: DocumentReference,
        user_uid: str,
        now: datetime.datetime,
    ) -> dict[str, Any]:
        data = TournamentService._read(transaction, ref)
        TournamentService._require_creator(data, user_uid, "cancel")
        if data.get("status") not in (TOURNAMENT_PENDING, TOURNAMENT_ACTIVE):
            raise ConflictError("This tournament is already over.")
        updates = {"status": TOURNAMENT_CANCELLED, "completedAt": now}
        transaction.update(ref, updates)
        data.update(updates)
        return data

    @staticmethod
    def cancel_tournament(
        tournament_id: str, user_uid: str, db: Client | None = None
    ) -> Tournament:
        if db is None:
            db = firestore.client()
        data = run_transaction(
            db,
            TournamentService._cancel_in_transaction,
            TournamentService._ref(db, tournament_id),
            user_uid,
            utcnow(),
        )
        logger.info(f"Tournament {tournament_id} cancelled by {user_uid}")
        return cast(Tournament, {**data, "id": tournament_id})

    @staticmethod
    def _delete_in_transaction(
        transaction: Transaction, ref: DocumentReference, user_uid: str
    ) -> None:
        data = TournamentService._read(transaction, ref)
        TournamentService._require_creator(data, user_uid, "delete")
        if data.get("status") != TOURNAMENT_PENDING:
            raise ConflictError("Only tournaments that have not started can be deleted.")
        transaction.delete(ref)

    @staticmethod
    def delete_tournament(
        tournament_id: str, user_uid: str, db: Client | None = None
    ) -> None:
        """Delete a tournament that has not started."""
        if db is None:
            db = firestore.client()
        run_transaction(
            db,
            TournamentService._delete_in_transaction,
            TournamentService._ref(db, tournament_id),
            user_uid,
        )
        logger.info(f"Tournament {tournament_id} deleted by {user_uid}")

    @staticmethod
    def apply_match_effects(
        db: Client,
        tournament_id: str,
        tournament_type: str | None,
        match_id: str,
        match: dict[str, Any],
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
    ) -> bool:
        """Feed a terminal match into the bracket or the league table.

        A failure here is logged and left for reconciliation; the match
        result itself is already committed.
        """
        try:
            if tournament_type == KNOCKOUT:
                return BracketService.advance(
                    db, tournament_id, match, max_attempts=max_attempts
                )
            if tournament_type == LEAGUE:
                return StandingsService.apply(
                    db, tournament_id, match_id, match, max_attempts=max_attempts
                )
        except Exception:
            logger.exception(
                f"Failed to apply match {match_id} to tournament {tournament_id}"
            )
        return False

    @staticmethod
    def _active_tournament(db: Client, tournament_id: str) -> dict[str, Any]:
        snapshot = TournamentService._ref(db, tournament_id).get()
        if not snapshot.exists:
            raise NotFoundError("Tournament not found.")
        data = snapshot.to_dict() or {}
        if data.get("status") != TOURNAMENT_ACTIVE:
            raise ConflictError("This tournament is not in progress.")
        return data

    @staticmethod
    def _after_resolution(
        db: Client,
        tournament_id: str,
        tournament: dict[str, Any],
        outcome: MatchOutcome,
        max_attempts: int,
    ) -> None:
        if outcome.completed:
            TournamentService.apply_match_effects(
                db,
                tournament_id,
                tournament.get("type"),
                outcome.match_id,
                outcome.data,
                max_attempts=max_attempts,
            )

    @staticmethod
    def submit_tournament_match_score(  # noqa: PLR0913
        tournament_id: str,
        match_id: str,
        user_uid: str,
        score: Any,
        round_ref: Any,
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
        db: Client | None = None,
    ) -> TournamentMatch:
        """Record a round score for a tournament match and run its effects."""
        if db is None:
            db = firestore.client()
        tournament = TournamentService._active_tournament(db, tournament_id)
        match_ref = (
            TournamentService._ref(db, tournament_id)
            .collection(MATCHES_SUBCOLLECTION)
            .document(match_id)
        )
        outcome = MatchService.submit_score(
            db,
            match_ref,
            layout_for(tournament.get("type")),
            user_uid,
            score,
            round_ref,
            max_attempts=max_attempts,
        )
        TournamentService._after_resolution(
            db, tournament_id, tournament, outcome, max_attempts
        )
        return cast(TournamentMatch, {**outcome.data, "id": match_id})

    @staticmethod
    def submit_tournament_penalty_score(  # noqa: PLR0913
        tournament_id: str,
        match_id: str,
        user_uid: str,
        penalty_score: Any,
        tie_policy: str = PENALTY_FIRST_RECORDED,
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
        penalty_round: int | None = None,
        db: Client | None = None,
    ) -> TournamentMatch:
        """Record a penalty shootout score for a drawn knockout match."""
        if db is None:
            db = firestore.client()
        tournament = TournamentService._active_tournament(db, tournament_id)
        match_ref = (
            TournamentService._ref(db, tournament_id)
            .collection(MATCHES_SUBCOLLECTION)
            .document(match_id)
        )
        outcome = MatchService.submit_penalty_score(
            db,
            match_ref,
            layout_for(tournament.get("type")),
            user_uid,
            penalty_score,
            tie_policy=tie_policy,
            max_attempts=max_attempts,
            penalty_round=penalty_round,
        )
        TournamentService._after_resolution(
            db, tournament_id, tournament, outcome, max_attempts
        )
        return cast(TournamentMatch, {**outcome.data, "id": match_id})

    @staticmethod
    def get_tournament(tournament_id: str, db: Client | None = None) -> Tournament:
        """Fetch a single tournament by its ID."""
        if db is None:
            db = firestore.client()
        snapshot = TournamentService._ref(db, tournament_id).get()
        if not snapshot.exists:
            raise NotFoundError("Tournament not found.")
        return cast(Tournament, snapshot_to_dict(snapshot))

    @staticmethod
    def get_tournament_matches(
        tournament_id: str, db: Client | None = None
    ) -> list[TournamentMatch]:
        """Fetch every match of a tournament in bracket order."""
        if db is None:
            db = firestore.client()
        docs = (
            TournamentService._ref(db, tournament_id)
            .collection(MATCHES_SUBCOLLECTION)
            .stream()
        )
        matches = [cast(TournamentMatch, snapshot_to_dict(doc)) for doc in docs]
        matches.sort(key=lambda m: (m.get("round", 0), m.get("position", 0)))
        return matches

    @staticmethod
    def get_tournament_match(
        tournament_id: str, match_id: str, db: Client | None = None
    ) -> TournamentMatch:
        if db is None:
            db = firestore.client()
        snapshot = (
            TournamentService._ref(db, tournament_id)
            .collection(MATCHES_SUBCOLLECTION)
            .document(match_id)
            .get()
        )
        if not snapshot.exists:
            raise NotFoundError("Match not found.")
        return cast(TournamentMatch, snapshot_to_dict(snapshot))

    @staticmethod
    def list_public_tournaments(
        limit: int = PUBLIC_TOURNAMENT_LIMIT, db: Client | None = None
    ) -> list[Tournament]:
        """Public tournaments still taking entries, newest first."""
        if db is None:
            db = firestore.client()
        docs = (
            db.collection(TOURNAMENTS_COLLECTION)
            .where(filter=firestore.FieldFilter("isPublic", "==", True))
            .where(filter=firestore.FieldFilter("status", "==", TOURNAMENT_PENDING))
            .stream()
        )
        tournaments = [cast(Tournament, snapshot_to_dict(doc)) for doc in docs]
        tournaments.sort(key=lambda t: t.get("createdAt") or 0, reverse=True)
        return tournaments[:limit]

    @staticmethod
    def list_user_tournaments(
        user_uid: str, db: Client | None = None
    ) -> list[Tournament]:
        """Tournaments the user has joined, newest first."""
        if db is None:
            db = firestore.client()
        docs = (
            db.collection(TOURNAMENTS_COLLECTION)
            .where(
                filter=firestore.FieldFilter(
                    "participantIds", "array_contains", user_uid
                )
            )
            .stream()
        )
        tournaments = [cast(Tournament, snapshot_to_dict(doc)) for doc in docs]
        tournaments.sort(key=lambda t: t.get("createdAt") or 0, reverse=True)
        return tournaments

    @staticmethod
    def subscribe_to_tournament(
        tournament_id: str,
        callback: Callable[[Tournament | None], None],
        db: Client | None = None,
    ) -> Callable[[], None]:
        """Push every change of one tournament to `callback`.

        Returns a function that stops the subscription.
        """
        if db is None:
            db = firestore.client()

        def on_snapshot(doc_snapshots: list[Any], changes: Any, read_time: Any) -> None:
            for snapshot in doc_snapshots:
                if snapshot.exists:
                    callback(cast(Tournament, snapshot_to_dict(snapshot)))
                else:
                    callback(None)

        watch = TournamentService._ref(db, tournament_id).on_snapshot(on_snapshot)
        return cast(Callable[[], None], watch.unsubscribe)

    @staticmethod
    def subscribe_to_tournament_matches(
        tournament_id: str,
        callback: Callable[[list[TournamentMatch]], None],
        db: Client | None = None,
    ) -> Callable[[], None]:
        if db is None:
            db = firestore.client()
        matches_ref = TournamentService._ref(db, tournament_id).collection(
            MATCHES_SUBCOLLECTION
        )

        def on_snapshot(docs: list[Any], changes: Any, read_time: Any) -> None:
            matches = [cast(TournamentMatch, snapshot_to_dict(doc)) for doc in docs]
            matches.sort(key=lambda m: (m.get("round", 0), m.get("position", 0)))
            callback(matches)

        watch = matches_ref.on_snapshot(on_snapshot)
        return cast(Callable[[], None], watch.unsubscribe)
