"""Hylo routing package exports.

Keep package import lightweight by lazily importing heavy modules.
"""

from typing import TYPE_CHECKING, Any

__version__ = "1.4.0"

if TYPE_CHECKING:
    from .config import AppConfig

__all__ = ["AppConfig", "build_registry", "create_provider"]


def __getattr__(name: str) -> Any:
    """Lazily resolve top-level exports."""
    if name == "AppConfig":
        from .config import AppConfig

        return AppConfig

    if name == "build_registry":
        from .providers.registry import build_registry

        return build_registry

    if name == "create_provider":
        from .providers import create_provider

        return create_provider

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
