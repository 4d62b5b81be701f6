"""Service layer for challenge business logic."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, cast

from firebase_admin import firestore

from matchday.core.constants import (
    CHALLENGE_ACCEPTED,
    CHALLENGE_CODE_PREFIX,
    CHALLENGE_COMPLETED,
    CHALLENGE_DEADLINE_HOURS,
    CHALLENGE_DECLINED,
    CHALLENGE_LINK_DEADLINE_HOURS,
    CHALLENGE_PENDING,
    CHALLENGES_COLLECTION,
    PENALTY_FIRST_RECORDED,
    TRANSACTION_MAX_ATTEMPTS,
)
from matchday.core.transactions import run_transaction
from matchday.errors import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from matchday.match import CHALLENGE_LAYOUT, MatchService
from matchday.utils import (
    deadline_from_now,
    generate_entity_id,
    generate_unique_invite_code,
    is_overdue,
    normalize_invite_code,
    snapshot_to_dict,
    utcnow,
)

from .models import Challenge, ChallengeStats

if TYPE_CHECKING:
    import datetime

    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction

    from matchday.core.types import Participant

logger = logging.getLogger(__name__)


class ChallengeService:
    """Handles business logic and data access for challenges."""

    @staticmethod
    def _ref(db: Client, challenge_id: str) -> DocumentReference:
        return db.collection(CHALLENGES_COLLECTION).document(challenge_id)

    @staticmethod
    def _read(transaction: Transaction, ref: DocumentReference) -> dict[str, Any]:
        snapshot = ref.get(transaction=transaction)
        if not snapshot.exists:
            raise NotFoundError("Challenge not found.")
        return cast(dict[str, Any], snapshot.to_dict() or {})

    @staticmethod
    def _new_challenge(
        challenger: Participant,
        opponent: Participant | None,
        deadline: datetime.datetime,
        now: datetime.datetime,
        invite_code: str | None = None,
    ) -> dict[str, Any]:
        """Build a fresh pending challenge document."""
        participant_ids = [challenger["id"]]
        if opponent:
            participant_ids.append(opponent["id"])
        return {
            "challengerId": challenger["id"],
            "challengerName": challenger.get("displayName"),
            "challengerPhotoURL": challenger.get("photoURL"),
            "opponentId": opponent["id"] if opponent else None,
            "opponentName": opponent.get("displayName") if opponent else None,
            "opponentPhotoURL": opponent.get("photoURL") if opponent else None,
            "participantIds": participant_ids,
            "inviteCode": invite_code,
            "challengerScore": None,
            "challengerRoundRef": None,
            "challengerCompletedAt": None,
            "opponentScore": None,
            "opponentRoundRef": None,
            "opponentCompletedAt": None,
            "status": CHALLENGE_PENDING,
            "winnerId": None,
            "winnerName": None,
            "forfeitedBy": None,
            "wentToPenalties": False,
            "challengerPenaltyScore": None,
            "opponentPenaltyScore": None,
            "penaltyResult": None,
            "createdAt": now,
            "acceptedAt": None,
            "deadline": deadline,
            "completedAt": None,
        }

    @staticmethod
    def create_challenge(
        challenger: Participant,
        opponent: Participant,
        deadline_hours: float = CHALLENGE_DEADLINE_HOURS,
        db: Client | None = None,
    ) -> Challenge:
        """Create a direct challenge against a known opponent."""
        if db is None:
            db = firestore.client()
        if not opponent or not opponent.get("id"):
            raise ValidationError("An opponent is required.")
        if opponent["id"] == challenger["id"]:
            raise ValidationError("You can't challenge yourself.")

        now = utcnow()
        challenge_id = generate_entity_id()
        payload = ChallengeService._new_challenge(
            challenger, opponent, deadline_from_now(deadline_hours, now), now
        )
        ChallengeService._ref(db, challenge_id).set(payload)
        logger.info(
            f"Challenge {challenge_id} created: {challenger['id']} vs {opponent['id']}"
        )
        return cast(Challenge, {**payload, "id": challenge_id})

    @staticmethod
    def create_challenge_link(
        challenger: Participant,
        deadline_hours: float = CHALLENGE_LINK_DEADLINE_HOURS,
        db: Client | None = None,
    ) -> Challenge:
        """Create an open challenge that anyone holding the code can claim."""
        if db is None:
            db = firestore.client()

        now = utcnow()
        challenge_id = generate_entity_id()
        invite_code = generate_unique_invite_code(
            db, CHALLENGES_COLLECTION, CHALLENGE_CODE_PREFIX
        )
        payload = ChallengeService._new_challenge(
            challenger,
            None,
            deadline_from_now(deadline_hours, now),
            now,
            invite_code=invite_code,
        )
        ChallengeService._ref(db, challenge_id).set(payload)
        logger.info(f"Challenge link {invite_code} created by {challenger['id']}")
        return cast(Challenge, {**payload, "id": challenge_id})

    @staticmethod
    def find_challenge_by_code(code: str, db: Client | None = None) -> Challenge | None:
        """Look up a challenge by its invite code."""
        if db is None:
            db = firestore.client()
        normalized = normalize_invite_code(code, CHALLENGE_CODE_PREFIX)
        docs = (
            db.collection(CHALLENGES_COLLECTION)
            .where(filter=firestore.FieldFilter("inviteCode", "==", normalized))
            .limit(1)
            .stream()
        )
        for doc in docs:
            return cast(Challenge, snapshot_to_dict(doc))
        return None

    @staticmethod
    def _claim_in_transaction(
        transaction: Transaction,
        ref: DocumentReference,
        claimant: Participant,
        deadline: datetime.datetime,
        now: datetime.datetime,
    ) -> dict[str, Any]:
        data = ChallengeService._read(transaction, ref)
        if data.get("challengerId") == claimant["id"]:
            raise ValidationError("You can't accept your own challenge.")
        if data.get("status") != CHALLENGE_PENDING:
            raise ConflictError("This challenge is no longer available.")
        if data.get("opponentId") is not None:
            raise ConflictError("This challenge has already been accepted.")
        if is_overdue(data, now):
            raise ConflictError("This challenge has expired.")

        updates = {
            "opponentId": claimant["id"],
            "opponentName": claimant.get("displayName"),
            "opponentPhotoURL": claimant.get("photoURL"),
            "participantIds": [data.get("challengerId"), claimant["id"]],
            "status": CHALLENGE_ACCEPTED,
            "acceptedAt": now,
            "deadline": deadline,
        }
        transaction.update(ref, updates)
        data.update(updates)
        return data

    @staticmethod
    def claim_challenge_by_code(
        code: str,
        claimant: Participant,
        deadline_hours: float = CHALLENGE_DEADLINE_HOURS,
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
        db: Client | None = None,
    ) -> Challenge:
        """Become the opponent of a link challenge. Only one claimant can win."""
        if db is None:
            db = firestore.client()
        challenge = ChallengeService.find_challenge_by_code(code, db=db)
        if not challenge:
            raise NotFoundError("Invalid challenge code.")

        now = utcnow()
        ref = ChallengeService._ref(db, challenge["id"])
        data = run_transaction(
            db,
            ChallengeService._claim_in_transaction,
            ref,
            claimant,
            deadline_from_now(deadline_hours, now),
            now,
            max_attempts=max_attempts,
        )
        logger.info(f"Challenge {challenge['id']} claimed by {claimant['id']}")
        return cast(Challenge, {**data, "id": challenge["id"]})

    @staticmethod
    def _respond_in_transaction(
        transaction: Transaction,
        ref: DocumentReference,
        user_uid: str,
        updates: dict[str, Any],
        now: datetime.datetime | None = None,
    ) -> dict[str, Any]:
        data = ChallengeService._read(transaction, ref)
        if data.get("opponentId") != user_uid:
            raise UnauthorizedError("Only the challenged player can respond.")
        if data.get("status") != CHALLENGE_PENDING:
            raise ConflictError("This challenge is no longer pending.")
        # Declining is always allowed; accepting needs time left to play.
        if now is not None and is_overdue(data, now):
            raise ConflictError("This challenge has expired.")
        transaction.update(ref, updates)
        data.update(updates)
        return data

    @staticmethod
    def accept_challenge(
        challenge_id: str,
        user_uid: str,
        deadline_hours: float = CHALLENGE_DEADLINE_HOURS,
        db: Client | None = None,
    ) -> Challenge:
        """Accept a direct challenge; the deadline restarts from now."""
        if db is None:
            db = firestore.client()
        now = utcnow()
        updates = {
            "status": CHALLENGE_ACCEPTED,
            "acceptedAt": now,
            "deadline": deadline_from_now(deadline_hours, now),
        }
        data = run_transaction(
            db,
            ChallengeService._respond_in_transaction,
            ChallengeService._ref(db, challenge_id),
            user_uid,
            updates,
            now,
        )
        return cast(Challenge, {**data, "id": challenge_id})

    @staticmethod
    def decline_challenge(
        challenge_id: str, user_uid: str, db: Client | None = None
    ) -> Challenge:
        """Decline a direct challenge."""
        if db is None:
            db = firestore.client()
        updates = {"status": CHALLENGE_DECLINED, "completedAt": utcnow()}
        data = run_transaction(
            db,
            ChallengeService._respond_in_transaction,
            ChallengeService._ref(db, challenge_id),
            user_uid,
            updates,
        )
        return cast(Challenge, {**data, "id": challenge_id})

    @staticmethod
    def _cancel_in_transaction(
        transaction: Transaction, ref: DocumentReference, user_uid: str
    ) -> None:
        data = ChallengeService._read(transaction, ref)
        if data.get("challengerId") != user_uid:
            raise UnauthorizedError("Only the challenger can cancel a challenge.")
        if data.get("status") != CHALLENGE_PENDING:
            raise ConflictError("Only pending challenges can be cancelled.")
        transaction.delete(ref)

    @staticmethod
    def cancel_challenge(
        challenge_id: str, user_uid: str, db: Client | None = None
    ) -> None:
        """Delete a challenge nobody has accepted yet."""
        if db is None:
            db = firestore.client()
        run_transaction(
            db,
            ChallengeService._cancel_in_transaction,
            ChallengeService._ref(db, challenge_id),
            user_uid,
        )
        logger.info(f"Challenge {challenge_id} cancelled by {user_uid}")

    @staticmethod
    def submit_challenge_score(  # noqa: PLR0913
        challenge_id: str,
        user_uid: str,
        score: Any,
        round_ref: Any,
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
        db: Client | None = None,
    ) -> Challenge:
        """Record a participant's round score."""
        if db is None:
            db = firestore.client()
        outcome = MatchService.submit_score(
            db,
            ChallengeService._ref(db, challenge_id),
            CHALLENGE_LAYOUT,
            user_uid,
            score,
            round_ref,
            max_attempts=max_attempts,
        )
        if outcome.changed and outcome.status == CHALLENGE_COMPLETED:
            logger.info(f"Challenge {challenge_id} won by {outcome.winner_id}")
        return cast(Challenge, {**outcome.data, "id": challenge_id})

    @staticmethod
    def submit_penalty_score(  # noqa: PLR0913
        challenge_id: str,
        user_uid: str,
        penalty_score: Any,
        tie_policy: str = PENALTY_FIRST_RECORDED,
        max_attempts: int = TRANSACTION_MAX_ATTEMPTS,
        penalty_round: int | None = None,
        db: Client | None = None,
    ) -> Challenge:
        """Record a participant's penalty shootout score."""
        if db is None:
            db = firestore.client()
        outcome = MatchService.submit_penalty_score(
            db,
            ChallengeService._ref(db, challenge_id),
            CHALLENGE_LAYOUT,
            user_uid,
            penalty_score,
            tie_policy=tie_policy,
            max_attempts=max_attempts,
            penalty_round=penalty_round,
        )
        return cast(Challenge, {**outcome.data, "id": challenge_id})

    @staticmethod
    def get_challenge(challenge_id: str, db: Client | None = None) -> Challenge:
        """Fetch a single challenge by its ID."""
        if db is None:
            db = firestore.client()
        snapshot = ChallengeService._ref(db, challenge_id).get()
        if not snapshot.exists:
            raise NotFoundError("Challenge not found.")
        return cast(Challenge, snapshot_to_dict(snapshot))

    @staticmethod
    def list_user_challenges(
        user_uid: str,
        statuses: list[str] | None = None,
        db: Client | None = None,
    ) -> list[Challenge]:
        """Fetch every challenge a user takes part in, newest first."""
        if db is None:
            db = firestore.client()
        docs = (
            db.collection(CHALLENGES_COLLECTION)
            .where(
                filter=firestore.FieldFilter(
                    "participantIds", "array_contains", user_uid
                )
            )
            .stream()
        )
        challenges = [cast(Challenge, snapshot_to_dict(doc)) for doc in docs]
        if statuses:
            challenges = [c for c in challenges if c.get("status") in statuses]
        challenges.sort(key=lambda c: c.get("createdAt") or 0, reverse=True)
        return challenges

    @staticmethod
    def get_user_challenge_stats(
        user_uid: str, db: Client | None = None
    ) -> ChallengeStats:
        """Summarise a user's challenge record."""
        stats = ChallengeStats(sent=0, received=0, won=0, lost=0, tied=0, pending=0)
        for challenge in ChallengeService.list_user_challenges(user_uid, db=db):
            if challenge.get("challengerId") == user_uid:
                stats["sent"] += 1
            else:
                stats["received"] += 1

            if challenge.get("wentToPenalties"):
                stats["tied"] += 1

            status = challenge.get("status")
            winner_id = challenge.get("winnerId")
            if status == CHALLENGE_PENDING:
                stats["pending"] += 1
            elif status == CHALLENGE_COMPLETED and winner_id:
                if winner_id == user_uid:
                    stats["won"] += 1
                else:
                    stats["lost"] += 1
        return stats

    @staticmethod
    def subscribe_to_challenge(
        challenge_id: str,
        callback: Callable[[Challenge | None], None],
        db: Client | None = None,
    ) -> Callable[[], None]:
        """Push every change of one challenge to `callback`.

        Returns a function that stops the subscription.
        """
        if db is None:
            db = firestore.client()

        def on_snapshot(doc_snapshots: list[Any], changes: Any, read_time: Any) -> None:
            for snapshot in doc_snapshots:
                if snapshot.exists:
                    callback(cast(Challenge, snapshot_to_dict(snapshot)))
                else:
                    callback(None)

        watch = ChallengeService._ref(db, challenge_id).on_snapshot(on_snapshot)
        return cast(Callable[[], None], watch.unsubscribe)

    @staticmethod
    def subscribe_to_user_challenges(
        user_uid: str,
        callback: Callable[[list[Challenge]], None],
        db: Client | None = None,
    ) -> Callable[[], None]:
        """Push a user's full challenge list to `callback` whenever it changes."""
        if db is None:
            db = firestore.client()
        query = db.collection(CHALLENGES_COLLECTION).where(
            filter=firestore.FieldFilter("participantIds", "array_contains", user_uid)
        )

        def on_snapshot(docs: list[Any], changes: Any, read_time: Any) -> None:
            challenges = [cast(Challenge, snapshot_to_dict(doc)) for doc in docs]
            challenges.sort(key=lambda c: c.get("createdAt") or 0, reverse=True)
            callback(challenges)

        watch = query.on_snapshot(on_snapshot)
        return cast(Callable[[], None], watch.unsubscribe)
