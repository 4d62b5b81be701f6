"""Decorators for the auth blueprint."""

from functools import wraps

from flask import jsonify, session

from matchday.core.types import Participant


def login_required(f):
    """Reject the request with a 401 JSON body if the user is not logged in.

    Usage:
    @login_required
    def protected_view():
        ...
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if "user_id" not in session:
            return (
                jsonify({"status": "error", "message": "Authentication required."}),
                401,
            )
        return f(*args, **kwargs)

    return decorated_function


def current_participant() -> Participant:
    """Build the participant profile of the logged in user from the session."""
    return Participant(
        id=session["user_id"],
        displayName=session.get("display_name") or "Player",
        photoURL=session.get("photo_url"),
    )
