"""Initialize the Flask app and its extensions."""

import json
import os

import firebase_admin
from firebase_admin import credentials
from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix

from .core.constants import (
    CHALLENGE_DEADLINE_HOURS,
    CHALLENGE_LINK_DEADLINE_HOURS,
    DEFAULT_MATCH_DEADLINE_HOURS,
    PENALTY_FIRST_RECORDED,
    PENALTY_TIE_POLICIES,
    PUBLIC_TOURNAMENT_LIMIT,
    TRANSACTION_MAX_ATTEMPTS,
)
from .extensions import csrf


def _init_firebase(app):
    """Initialize the Firebase Admin SDK from env, a local file, or defaults."""
    cred = None
    project_id = None

    # First, try to load from environment variable (for production)
    cred_json = os.environ.get("FIREBASE_CREDENTIALS_JSON")
    if cred_json:
        try:
            cred_info = json.loads(cred_json)
            project_id = cred_info.get("project_id")
            cred = credentials.Certificate(cred_info)
        except (json.JSONDecodeError, ValueError) as e:
            app.logger.error(f"Error parsing FIREBASE_CREDENTIALS_JSON: {e}")

    # If env var fails or is not present, try loading from file (for local dev)
    if not cred:
        cred_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)), "firebase_credentials.json"
        )
        if os.path.exists(cred_path):
            try:
                with open(cred_path, "r") as f:
                    cred_info = json.load(f)
                project_id = cred_info.get("project_id")
                cred = credentials.Certificate(cred_path)
            except (json.JSONDecodeError, ValueError) as e:
                app.logger.error(f"Error loading credentials from file: {e}")

    # If both methods fail, fallback to default credentials
    if not cred:
        cred = credentials.ApplicationDefault()
        project_id = os.environ.get("FIREBASE_PROJECT_ID")

    if not firebase_admin._apps:
        options = {"projectId": project_id} if project_id else None
        try:
            firebase_admin.initialize_app(cred, options)
        except ValueError:
            # This can happen if the app is already initialized, which is fine.
            app.logger.info("Firebase app already initialized.")


def create_app(test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__)

    # Load configuration
    app.config.from_mapping(
        SECRET_KEY=os.environ.get("SECRET_KEY") or "dev",
        CHALLENGE_DEADLINE_HOURS=float(
            os.environ.get("CHALLENGE_DEADLINE_HOURS") or CHALLENGE_DEADLINE_HOURS
        ),
        CHALLENGE_LINK_DEADLINE_HOURS=float(
            os.environ.get("CHALLENGE_LINK_DEADLINE_HOURS")
            or CHALLENGE_LINK_DEADLINE_HOURS
        ),
        DEFAULT_MATCH_DEADLINE_HOURS=float(
            os.environ.get("DEFAULT_MATCH_DEADLINE_HOURS")
            or DEFAULT_MATCH_DEADLINE_HOURS
        ),
        PENALTY_TIE_POLICY=os.environ.get("PENALTY_TIE_POLICY")
        or PENALTY_FIRST_RECORDED,
        TRANSACTION_MAX_ATTEMPTS=int(
            os.environ.get("TRANSACTION_MAX_ATTEMPTS") or TRANSACTION_MAX_ATTEMPTS
        ),
        PUBLIC_TOURNAMENT_LIMIT=int(
            os.environ.get("PUBLIC_TOURNAMENT_LIMIT") or PUBLIC_TOURNAMENT_LIMIT
        ),
    )

    if test_config:
        app.config.update(test_config)

    if app.config["PENALTY_TIE_POLICY"] not in PENALTY_TIE_POLICIES:
        raise ValueError(
            f"PENALTY_TIE_POLICY must be one of {', '.join(PENALTY_TIE_POLICIES)}"
        )

    # Initialize Firebase Admin SDK only if not in testing mode
    if not app.config.get("TESTING"):
        _init_firebase(app)

    # Initialize extensions
    csrf.init_app(app)

    # Register blueprints
    from . import auth as auth_bp

    app.register_blueprint(auth_bp.bp)

    from . import challenge as challenge_bp

    app.register_blueprint(challenge_bp.bp)

    from . import tournament as tournament_bp

    app.register_blueprint(tournament_bp.bp)

    from . import error_handlers

    app.register_blueprint(error_handlers.error_handlers_bp)

    from .sweeper import commands

    commands.init_app(app)

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    return app
