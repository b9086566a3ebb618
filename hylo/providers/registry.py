"""Provider registry: the single registration surface for routed providers.

Registration is rare (process start) and copies the current table under a
lock before swapping it in; lookups read whichever immutable snapshot is
current and never take the lock, so readers never block each other.
"""

import logging
import threading
from dataclasses import replace
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional, Tuple, Union

from hylo.core import constants
from hylo.core.errors import InvalidConfigError
from .base import LLMProvider, ProviderName, ProviderProfile

logger = logging.getLogger(__name__)

_Entry = Tuple[ProviderProfile, LLMProvider]


def _as_name(name: Union[str, ProviderName]) -> Optional[ProviderName]:
    if isinstance(name, ProviderName):
        return name
    try:
        return ProviderName(name)
    except ValueError:
        return None


class ProviderRegistry:
    """Holds provider handles and their routing profiles."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: Mapping[ProviderName, _Entry] = MappingProxyType({})

    def register(self, profile: ProviderProfile, handle: LLMProvider) -> None:
        """Register (or replace) a provider.

        Args:
            profile: Routing profile; its name is the registry key
            handle: Capability implementation for that provider

        Raises:
            InvalidConfigError: If the handle's own profile names a different provider
        """
        handle_profile = getattr(handle, "profile", None)
        if handle_profile is not None and handle_profile.name != profile.name:
            raise InvalidConfigError(
                "profile.name", profile.name.value,
                f"handle is bound to {handle_profile.name.value}",
            )
        with self._lock:
            entries = dict(self._entries)
            if profile.name in entries:
                logger.warning("Replacing registered provider %s", profile.name.value)
            entries[profile.name] = (profile, handle)
            self._entries = MappingProxyType(entries)
        logger.info(
            "Registered provider %s (preferred=%s, enabled=%s)",
            profile.name.value, profile.preferred_complexity.value, profile.is_enabled,
        )

    def get(self, name: Union[str, ProviderName]) -> Optional[LLMProvider]:
        key = _as_name(name)
        entry = self._entries.get(key) if key else None
        return entry[1] if entry else None

    def get_profile(self, name: Union[str, ProviderName]) -> Optional[ProviderProfile]:
        key = _as_name(name)
        entry = self._entries.get(key) if key else None
        return entry[0] if entry else None

    def get_healthy(self) -> Dict[ProviderName, LLMProvider]:
        """Return enabled providers in registration order.

        Availability and capacity are not checked here; the candidate
        evaluator filters those per request.
        """
        return {
            name: handle
            for name, (profile, handle) in self._entries.items()
            if profile.is_enabled
        }

    def all(self) -> Dict[ProviderName, LLMProvider]:
        return {name: handle for name, (_, handle) in self._entries.items()}

    def profiles(self) -> Dict[ProviderName, ProviderProfile]:
        return {name: profile for name, (profile, _) in self._entries.items()}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        key = _as_name(name) if isinstance(name, (str, ProviderName)) else None
        return key is not None and key in self._entries

    def __iter__(self) -> Iterator[ProviderName]:
        return iter(list(self._entries))


def token_cost(name: Union[str, ProviderName]) -> float:
    """USD per token for a provider, 0.0 when unknown."""
    key = _as_name(name)
    return constants.PROVIDER_TOKEN_COSTS.get(key.value, 0.0) if key else 0.0


def build_registry(config=None) -> ProviderRegistry:
    """Construct every vendor adapter from configuration.

    Args:
        config: AppConfig (defaults to AppConfig.from_env())

    Returns:
        Registry holding all three providers; disabled ones are registered
        with ``is_enabled=False``.

    Raises:
        MissingConfigError: If an enabled provider has no API key
    """
    from hylo.config import AppConfig
    from hylo.providers import create_provider
    from hylo.providers import cerebras_provider, gemini_provider, groq_provider

    config = config or AppConfig.from_env()
    defaults = {
        ProviderName.GROQ: groq_provider.DEFAULT_PROFILE,
        ProviderName.GEMINI: gemini_provider.DEFAULT_PROFILE,
        ProviderName.CEREBRAS: cerebras_provider.DEFAULT_PROFILE,
    }

    registry = ProviderRegistry()
    for name, default in defaults.items():
        provider_config = config.provider(name)
        overrides = {"is_enabled": provider_config.enabled}
        if provider_config.model:
            overrides["model"] = provider_config.model
        if provider_config.timeout_ms:
            overrides["timeout_ms"] = provider_config.timeout_ms
        if provider_config.max_concurrent_requests:
            overrides["max_concurrent_requests"] = provider_config.max_concurrent_requests
        profile = replace(default, **overrides)

        kwargs = {"api_key": provider_config.api_key, "profile": profile}
        if provider_config.base_url and name != ProviderName.GEMINI:
            kwargs["base_url"] = provider_config.base_url
        registry.register(profile, create_provider(name, **kwargs))

    return registry
