"""Publishing service for daily SSP exchange rates."""

from __future__ import annotations

import logging
import secrets

from flask import Flask, jsonify
from supabase import Client

from ssp_fx.config import Settings
from ssp_fx.errors import FxApiError
from ssp_fx.services import RatesService, SupabaseConfigurationError

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None, supabase_client: Client | None = None
) -> Flask:
    """Application factory to create Flask app instances."""
    settings = settings or Settings.from_env()

    logger.setLevel(settings.log_level)

    app = Flask(__name__)
    if settings.secret_key:
        app.secret_key = settings.secret_key
    else:
        logger.warning("FLASK_SECRET_KEY not set; admin sessions end on restart.")
        app.secret_key = secrets.token_hex(32)

    from .api.admin import ADMIN_SESSION_LIFETIME, admin_bp
    from .api.routes import api_bp

    app.permanent_session_lifetime = ADMIN_SESSION_LIFETIME
    app.config["SESSION_COOKIE_SAMESITE"] = "Strict"
    app.extensions["ssp_fx"] = RatesService(settings, client=supabase_client)

    app.register_blueprint(api_bp, url_prefix="/api/v1")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")

    @app.errorhandler(FxApiError)
    def handle_api_error(exc: FxApiError):
        return jsonify(exc.to_dict()), exc.status

    @app.errorhandler(SupabaseConfigurationError)
    def handle_configuration_error(exc: SupabaseConfigurationError):
        return (
            jsonify({"error": {"code": "NOT_CONFIGURED", "message": str(exc)}}),
            503,
        )

    return app
