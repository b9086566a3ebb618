"""API route blueprints."""

from flask import current_app

from hylo.services.routing_service import RoutingService

SERVICE_KEY = "hylo.routing_service"


def get_service() -> RoutingService:
    """Routing service bound to the current app."""
    return current_app.extensions[SERVICE_KEY]
