"""Error handling middleware."""

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from hylo.core.errors import ConfigurationError, HyloError, RoutingError, ValidationError

logger = logging.getLogger(__name__)


def status_for(error: HyloError) -> int:
    """HTTP status for a domain error."""
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, RoutingError):
        return 503
    if isinstance(error, ConfigurationError):
        return 500
    return 502


def register_error_handlers(app):
    """Register error handlers with Flask app."""

    @app.errorhandler(HyloError)
    def handle_hylo_error(e):
        status = status_for(e)
        if status >= 500:
            logger.error("%s: %s", e.error_code, e.message)
        return jsonify(e.to_dict()), status

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Not found", "message": str(e)}), 404

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({"error": e.name, "message": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        app.logger.error(f"Unhandled exception: {e}")
        return jsonify({"error": "Internal server error", "message": str(e)}), 500
