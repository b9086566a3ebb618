"""
Flask API for Hylo - SSE routing endpoint plus provider status.
"""

import logging
from typing import Optional

from flask import Flask
from flask_cors import CORS

from hylo.api.middleware.errors import register_error_handlers
from hylo.api.routes import SERVICE_KEY, health, llm, providers
from hylo.services.routing_service import RoutingService, build_service

logger = logging.getLogger(__name__)


def create_app(service: Optional[RoutingService] = None, config=None) -> Flask:
    """Build the Flask app.

    Args:
        service: Routing service to serve (built from config when omitted)
        config: AppConfig (defaults to AppConfig.from_env())

    Raises:
        ConfigurationError: If the service has to be built and config is invalid
    """
    from hylo.config import AppConfig

    config = config or AppConfig.from_env()
    if service is None:
        service = build_service(config)

    app = Flask(__name__)
    app.extensions[SERVICE_KEY] = service
    CORS(app, origins=config.server.cors_origins)

    app.register_blueprint(llm.bp, url_prefix="/api/llm")
    app.register_blueprint(providers.bp, url_prefix="/api/providers")
    app.register_blueprint(health.bp, url_prefix="/api")
    register_error_handlers(app)

    logger.info("Serving %d providers", len(service.registry))
    return app


if __name__ == "__main__":
    from hylo.config import AppConfig

    app_config = AppConfig.from_env()
    create_app(config=app_config).run(
        debug=app_config.server.debug,
        host=app_config.server.host,
        port=app_config.server.port,
        threaded=True,
    )
