"""Map config `sdk` names to provider classes and build the configured provider."""

import logging

from config.config_loader import AppConfig
from philagora.providers.anthropic import AnthropicProvider
from philagora.providers.base import AIProvider, ProviderError
from philagora.providers.gemini import GeminiProvider
from philagora.providers.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


def build_provider(config: AppConfig, name: str | None = None) -> AIProvider | None:
    """Instantiate the named (default: configured) provider.

    Returns None when the credential is missing or the sdk is unknown; the
    generation client then reports a configuration failure per attempt.
    """
    name = name or config.provider
    model_cfg = config.models.get(name)
    if model_cfg is None:
        logger.warning("Provider '%s' not configured", name)
        return None
    cls = PROVIDER_CLASSES.get(model_cfg.sdk)
    if cls is None:
        logger.warning("Provider '%s' uses unknown sdk '%s'", name, model_cfg.sdk)
        return None
    try:
        return cls(model_cfg)
    except ProviderError as exc:
        logger.warning("Provider '%s' unavailable: %s", name, exc)
        return None


def build_all_providers(config: AppConfig) -> dict[str, AIProvider]:
    """Build every provider that has a credential. Keyed by config name."""
    providers: dict[str, AIProvider] = {}
    for name in sorted(config.available_providers):
        provider = build_provider(config, name)
        if provider is not None:
            providers[name] = provider
    return providers
