"""Provider registry — resolves a provider name to its adapter instance.

The registry is built once at process start with explicitly constructed
adapters, so tests can substitute doubles by building their own registry.

Usage:
    registry = build_provider_registry(settings, http_client)
    adapter = registry.resolve("luma")
"""

from __future__ import annotations

import logging

import httpx

from reelforge.config import Settings
from reelforge.errors import UnknownProvider
from reelforge.services.providers import (
    LumaAdapter,
    ProviderAdapter,
    ReplicateAdapter,
    RunwayAdapter,
)

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """In-memory name → adapter mapping."""

    def __init__(self, adapters: list[ProviderAdapter] | None = None) -> None:
        self._adapters: dict[str, ProviderAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: ProviderAdapter) -> None:
        if adapter.name in self._adapters:
            raise ValueError(f"Provider already registered: {adapter.name}")
        self._adapters[adapter.name] = adapter

    def resolve(self, name: str) -> ProviderAdapter:
        try:
            return self._adapters[name]
        except KeyError:
            raise UnknownProvider(name) from None

    def names(self) -> list[str]:
        return sorted(self._adapters)

    def __contains__(self, name: object) -> bool:
        return name in self._adapters


def build_provider_registry(
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> ProviderRegistry:
    """Construct the fixed set of three adapters from settings."""
    common = {"timeout": settings.PROVIDER_TIMEOUT, "http_client": http_client}

    registry = ProviderRegistry([
        LumaAdapter(
            api_key=settings.LUMA_API_KEY,
            base_url=settings.LUMA_ENDPOINT,
            **common,
        ),
        RunwayAdapter(
            api_key=settings.RUNWAY_API_KEY,
            base_url=settings.RUNWAY_ENDPOINT,
            api_version=settings.RUNWAY_API_VERSION,
            **common,
        ),
        ReplicateAdapter(
            api_key=settings.REPLICATE_API_TOKEN,
            base_url=settings.REPLICATE_ENDPOINT,
            model_version=settings.REPLICATE_SVD_VERSION,
            **common,
        ),
    ])

    for name in registry.names():
        if not getattr(registry.resolve(name), "api_key", ""):
            logger.warning("No API key configured for provider %s, calls will fail", name)

    logger.info("Provider registry initialized: %s", ", ".join(registry.names()))
    return registry
