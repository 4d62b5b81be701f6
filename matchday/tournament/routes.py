from __future__ import annotations

from typing import Any

from firebase_admin import firestore
from flask import current_app, jsonify, session

from matchday.auth.decorators import current_participant, login_required
from matchday.challenge.forms import PenaltyForm, ScoreForm

from . import bp
from .forms import JoinByCodeForm, TournamentForm
from .services import TournamentService


def _success(data: Any, status_code: int = 200) -> Any:
    return jsonify({"status": "success", "data": data}), status_code


@bp.route("/", methods=["POST"])
@login_required
def create_tournament() -> Any:
    """Create a knockout or league tournament."""
    form = TournamentForm()
    form.validate_or_raise()
    is_public = form.isPublic.data if form.isPublic.raw_data else True
    deadline_hours = (
        form.matchDeadlineHours.data
        or current_app.config["DEFAULT_MATCH_DEADLINE_HOURS"]
    )
    tournament = TournamentService.create_tournament(
        current_participant(),
        form.name.data,
        form.type.data,
        form.maxPlayers.data,
        is_public=is_public,
        match_deadline_hours=deadline_hours,
        description=form.description.data,
        db=firestore.client(),
    )
    return _success(tournament, 201)


@bp.route("/public", methods=["GET"])
@login_required
def list_public_tournaments() -> Any:
    tournaments = TournamentService.list_public_tournaments(
        limit=current_app.config["PUBLIC_TOURNAMENT_LIMIT"], db=firestore.client()
    )
    return _success(tournaments)


@bp.route("/", methods=["GET"])
@login_required
def list_my_tournaments() -> Any:
    """Tournaments the current user has joined."""
    tournaments = TournamentService.list_user_tournaments(
        session["user_id"], db=firestore.client()
    )
    return _success(tournaments)


@bp.route("/<string:tournament_id>", methods=["GET"])
@login_required
def view_tournament(tournament_id: str) -> Any:
    tournament = TournamentService.get_tournament(tournament_id, db=firestore.client())
    return _success(tournament)


@bp.route("/<string:tournament_id>/matches", methods=["GET"])
@login_required
def list_tournament_matches(tournament_id: str) -> Any:
    matches = TournamentService.get_tournament_matches(
        tournament_id, db=firestore.client()
    )
    return _success(matches)


@bp.route("/<string:tournament_id>/join", methods=["POST"])
@login_required
def join_tournament(tournament_id: str) -> Any:
    tournament = TournamentService.join_tournament(
        tournament_id, current_participant(), db=firestore.client()
    )
    return _success(tournament)


@bp.route("/join", methods=["POST"])
@login_required
def join_tournament_by_code() -> Any:
    """Join a private tournament with its invite code."""
    form = JoinByCodeForm()
    form.validate_or_raise()
    tournament = TournamentService.join_tournament_by_code(
        form.code.data, current_participant(), db=firestore.client()
    )
    return _success(tournament)


@bp.route("/<string:tournament_id>/leave", methods=["POST"])
@login_required
def leave_tournament(tournament_id: str) -> Any:
    TournamentService.leave_tournament(
        tournament_id, session["user_id"], db=firestore.client()
    )
    return jsonify({"status": "success", "message": "You left the tournament."})


@bp.route("/<string:tournament_id>/start", methods=["POST"])
@login_required
def start_tournament(tournament_id: str) -> Any:
    tournament = TournamentService.start_tournament(
        tournament_id, session["user_id"], db=firestore.client()
    )
    return _success(tournament)


@bp.route("/<string:tournament_id>/cancel", methods=["POST"])
@login_required
def cancel_tournament(tournament_id: str) -> Any:
    tournament = TournamentService.cancel_tournament(
        tournament_id, session["user_id"], db=firestore.client()
    )
    return _success(tournament)


@bp.route("/<string:tournament_id>", methods=["DELETE"])
@login_required
def delete_tournament(tournament_id: str) -> Any:
    TournamentService.delete_tournament(
        tournament_id, session["user_id"], db=firestore.client()
    )
    return jsonify({"status": "success", "message": "Tournament deleted."})


@bp.route("/<string:tournament_id>/matches/<string:match_id>/score", methods=["POST"])
@login_required
def submit_match_score(tournament_id: str, match_id: str) -> Any:
    """Report the score of a finished round in a tournament match."""
    form = ScoreForm()
    form.validate_or_raise()
    match = TournamentService.submit_tournament_match_score(
        tournament_id,
        match_id,
        session["user_id"],
        form.score.data,
        form.roundRef.data,
        max_attempts=current_app.config["TRANSACTION_MAX_ATTEMPTS"],
        db=firestore.client(),
    )
    return _success(match)


@bp.route(
    "/<string:tournament_id>/matches/<string:match_id>/penalty", methods=["POST"]
)
@login_required
def submit_match_penalty(tournament_id: str, match_id: str) -> Any:
    form = PenaltyForm()
    form.validate_or_raise()
    tie_policy = current_app.config["PENALTY_TIE_POLICY"]
    match = TournamentService.submit_tournament_penalty_score(
        tournament_id,
        match_id,
        session["user_id"],
        form.penaltyScore.data,
        tie_policy=tie_policy,
        max_attempts=current_app.config["TRANSACTION_MAX_ATTEMPTS"],
        penalty_round=form.penalty_round_for(tie_policy),
        db=firestore.client(),
    )
    return _success(match)
