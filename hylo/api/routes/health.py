"""Liveness API route."""

from flask import Blueprint, jsonify

from hylo import __version__
from hylo.providers.base import ProviderStatus

from . import get_service

bp = Blueprint("health", __name__)


@bp.route("/health", methods=["GET"])
def health():
    """Overall status: healthy, degraded (some providers down) or down (none usable)."""
    service = get_service()
    registry = service.registry
    statuses = {
        name.value: (handle.get_status().value if registry.get_profile(name).is_enabled else "disabled")
        for name, handle in registry.all().items()
    }
    enabled = [s for s in statuses.values() if s != "disabled"]
    active = [s for s in enabled if s == ProviderStatus.ACTIVE.value]
    usable = [s for s in enabled if s != ProviderStatus.UNAVAILABLE.value]

    if not usable:
        overall, code = "down", 503
    elif len(active) == len(enabled):
        overall, code = "healthy", 200
    else:
        overall, code = "degraded", 200

    body = {"status": overall, "version": __version__, "providers": statuses}
    recent = getattr(service.recorder, "recent", None)
    if callable(recent):
        body["recent_requests"] = [trace.summary() for trace in recent(limit=10)]
    return jsonify(body), code
