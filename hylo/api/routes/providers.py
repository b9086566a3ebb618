"""Provider status API routes."""

from flask import Blueprint, jsonify

from hylo.api.async_bridge import run_async

from . import get_service

bp = Blueprint("providers", __name__)


@bp.route("/status", methods=["GET"])
def provider_status():
    """
    Health, profile and metrics for every registered provider.

    Returns:
        {
            "providers": {"groq": {"profile": {...}, "health": {...}, "metrics": {...}, "circuit": {...}}},
            "health_cache": {"ttl_seconds": 30, "hit_rate": 0.5},
            "requests": {"total": 10, "success_rate": 0.9, ...}
        }
    """
    service = get_service()
    registry = service.registry
    health_cache = service.engine.evaluator.health_cache
    snapshots = run_async(health_cache.snapshot_many(registry.all().items()))
    circuits = service.executor.circuit_breakers

    providers = {}
    for name, snapshot in snapshots.items():
        handle = registry.get(name)
        providers[name.value] = {
            "profile": registry.get_profile(name).to_dict(),
            "health": snapshot.to_dict(),
            "metrics": handle.get_metrics().to_dict(),
            "circuit": circuits.get_circuit(name.value).to_dict(),
        }

    body = {
        "providers": providers,
        "health_cache": {
            "ttl_seconds": health_cache.ttl_seconds,
            "hit_rate": health_cache.hit_rate,
        },
    }
    stats = getattr(service.recorder, "stats", None)
    if callable(stats):
        body["requests"] = stats()
    return jsonify(body)
