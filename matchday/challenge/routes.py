from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from flask import current_app, jsonify, request, session

from matchday.auth.decorators import current_participant, login_required
from matchday.core.types import Participant

from . import bp
from .forms import ChallengeForm, ClaimForm, PenaltyForm, ScoreForm
from .services import ChallengeService


def _success(data: Any, status_code: int = 200) -> Any:
    return jsonify({"status": "success", "data": data}), status_code


@bp.route("/", methods=["POST"])
@login_required
def create_challenge() -> Any:
    """Challenge a known opponent."""
    form = ChallengeForm()
    form.validate_or_raise()
    opponent = Participant(
        id=form.opponentId.data,
        displayName=form.opponentName.data or "Player",
        photoURL=form.opponentPhotoURL.data or None,
    )
    challenge = ChallengeService.create_challenge(
        current_participant(),
        opponent,
        deadline_hours=current_app.config["CHALLENGE_DEADLINE_HOURS"],
        db=firestore.client(),
    )
    return _success(challenge, 201)


@bp.route("/link", methods=["POST"])
@login_required
def create_challenge_link() -> Any:
    """Create a challenge that anyone with the invite code can claim."""
    challenge = ChallengeService.create_challenge_link(
        current_participant(),
        deadline_hours=current_app.config["CHALLENGE_LINK_DEADLINE_HOURS"],
        db=firestore.client(),
    )
    return _success(challenge, 201)


@bp.route("/claim", methods=["POST"])
@login_required
def claim_challenge() -> Any:
    form = ClaimForm()
    form.validate_or_raise()
    challenge = ChallengeService.claim_challenge_by_code(
        form.code.data,
        current_participant(),
        deadline_hours=current_app.config["CHALLENGE_DEADLINE_HOURS"],
        max_attempts=current_app.config["TRANSACTION_MAX_ATTEMPTS"],
        db=firestore.client(),
    )
    return _success(challenge)


@bp.route("/<string:challenge_id>/accept", methods=["POST"])
@login_required
def accept_challenge(challenge_id: str) -> Any:
    challenge = ChallengeService.accept_challenge(
        challenge_id,
        session["user_id"],
        deadline_hours=current_app.config["CHALLENGE_DEADLINE_HOURS"],
        db=firestore.client(),
    )
    return _success(challenge)


@bp.route("/<string:challenge_id>/decline", methods=["POST"])
@login_required
def decline_challenge(challenge_id: str) -> Any:
    challenge = ChallengeService.decline_challenge(
        challenge_id, session["user_id"], db=firestore.client()
    )
    return _success(challenge)


@bp.route("/<string:challenge_id>", methods=["DELETE"])
@login_required
def cancel_challenge(challenge_id: str) -> Any:
    """Withdraw a challenge that has not been accepted."""
    ChallengeService.cancel_challenge(
        challenge_id, session["user_id"], db=firestore.client()
    )
    return jsonify({"status": "success", "message": "Challenge cancelled."})


@bp.route("/<string:challenge_id>/score", methods=["POST"])
@login_required
def submit_score(challenge_id: str) -> Any:
    """Report the score of a finished round."""
    form = ScoreForm()
    form.validate_or_raise()
    challenge = ChallengeService.submit_challenge_score(
        challenge_id,
        session["user_id"],
        form.score.data,
        form.roundRef.data,
        max_attempts=current_app.config["TRANSACTION_MAX_ATTEMPTS"],
        db=firestore.client(),
    )
    return _success(challenge)


@bp.route("/<string:challenge_id>/penalty", methods=["POST"])
@login_required
def submit_penalty(challenge_id: str) -> Any:
    form = PenaltyForm()
    form.validate_or_raise()
    tie_policy = current_app.config["PENALTY_TIE_POLICY"]
    challenge = ChallengeService.submit_penalty_score(
        challenge_id,
        session["user_id"],
        form.penaltyScore.data,
        tie_policy=tie_policy,
        max_attempts=current_app.config["TRANSACTION_MAX_ATTEMPTS"],
        penalty_round=form.penalty_round_for(tie_policy),
        db=firestore.client(),
    )
    return _success(challenge)


@bp.route("/", methods=["GET"])
@login_required
def list_challenges() -> Any:
    """List the current user's challenges, optionally filtered by status."""
    statuses = request.args.getlist("status") or None
    challenges = ChallengeService.list_user_challenges(
        session["user_id"], statuses=statuses, db=firestore.client()
    )
    return _success(challenges)


@bp.route("/stats", methods=["GET"])
@login_required
def challenge_stats() -> Any:
    stats = ChallengeService.get_user_challenge_stats(
        session["user_id"], db=firestore.client()
    )
    return _success(stats)


@bp.route("/<string:challenge_id>", methods=["GET"])
@login_required
def get_challenge(challenge_id: str) -> Any:
    challenge = ChallengeService.get_challenge(challenge_id, db=firestore.client())
    return _success(challenge)
