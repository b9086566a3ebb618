"""Application services wiring the routing components together."""

from .routing_service import RoutingService, build_service

__all__ = ["RoutingService", "build_service"]
