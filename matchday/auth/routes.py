"""Routes for the auth blueprint."""

from firebase_admin import auth, exceptions
from flask import current_app, jsonify, request, session
from flask_wtf.csrf import generate_csrf

from matchday.extensions import csrf

from . import bp


@bp.route("/session_login", methods=["POST"])
@csrf.exempt
def session_login():
    """
    Called by the client after a successful Firebase sign-in.
    It receives the ID token, verifies it, and creates a server-side session.
    """
    id_token = (request.get_json(silent=True) or {}).get("idToken")
    if not id_token:
        return jsonify({"status": "error", "message": "idToken is required."}), 400
    try:
        decoded_token = auth.verify_id_token(id_token)
    except (ValueError, exceptions.FirebaseError) as e:
        current_app.logger.error(f"Error during session login: {e}")
        return jsonify({"status": "error", "message": "Invalid token."}), 401

    uid = decoded_token["uid"]
    session.clear()
    session["user_id"] = uid
    session["display_name"] = decoded_token.get("name") or decoded_token.get("email")
    session["photo_url"] = decoded_token.get("picture")
    current_app.logger.info(f"Session started for {uid}")
    return jsonify({"status": "success", "data": {"uid": uid}})


@bp.route("/logout", methods=["POST"])
def logout():
    """Clear the server-side session. Firebase sign-out happens on the client."""
    session.clear()
    return jsonify({"status": "success"})


@bp.route("/csrf_token", methods=["GET"])
def csrf_token():
    """Hand the client a token to send back in the X-CSRFToken header."""
    return jsonify({"status": "success", "data": {"csrfToken": generate_csrf()}})
