"""Catalogue of selectable models and the factory that builds clients for them."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

from .config import ChatLLMConfig
from .errors import ConfigurationError, UnknownModelError
from .llm_client import ChatLLMClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelInfo:
    key: str
    name: str
    provider: str
    cost: str
    tier: str
    icon: str
    description: str

    @property
    def display_name(self) -> str:
        badge = "(Free)" if self.tier == "free" else "(Pro)"
        return f"{self.icon} {self.name} {badge}"

    def to_dict(self) -> Dict[str, str]:
        payload = asdict(self)
        payload["displayName"] = self.display_name
        return payload


@dataclass(frozen=True)
class ProviderSettings:
    endpoint: str
    api_key_env: str


PROVIDERS: Dict[str, ProviderSettings] = {
    "google": ProviderSettings(
        endpoint="https://generativelanguage.googleapis.com/v1beta/openai/chat/completions",
        api_key_env="GOOGLE_API_KEY",
    ),
    "openai": ProviderSettings(
        endpoint="https://api.openai.com/v1/chat/completions",
        api_key_env="OPENAI_API_KEY",
    ),
    "mistral": ProviderSettings(
        endpoint="https://api.mistral.ai/v1/chat/completions",
        api_key_env="MISTRAL_API_KEY",
    ),
}

AI_MODELS: Dict[str, ModelInfo] = {
    "gemini-2.5-flash": ModelInfo(
        key="gemini-2.5-flash",
        name="Gemini 2.5 Flash",
        provider="google",
        cost="Free",
        tier="free",
        icon="🔥",
        description="Fast and efficient for most tasks",
    ),
    "o3-mini": ModelInfo(
        key="o3-mini",
        name="OpenAI o3-mini",
        provider="openai",
        cost="$2.75/1M",
        tier="pro",
        icon="🧠",
        description="Advanced reasoning for complex analysis",
    ),
    "mistral-medium-2505": ModelInfo(
        key="mistral-medium-2505",
        name="Mistral Medium 2505",
        provider="mistral",
        cost="$2.40/1M",
        tier="pro",
        icon="⚡",
        description="Enterprise-grade performance",
    ),
}

DEFAULT_MODEL = "gemini-2.5-flash"

# Reasoning models reject the temperature parameter.
NO_TEMPERATURE_MODELS = frozenset({"o3-mini"})


def get_model_display_name(model_key: str) -> str:
    model = AI_MODELS.get(model_key)
    if not model:
        return "Unknown Model"
    return model.display_name


def list_models() -> List[ModelInfo]:
    return list(AI_MODELS.values())


def create_model(
    model_key: str,
    *,
    request_timeout: int = 60,
    stream_idle_timeout: Optional[float] = None,
    model_kwargs: Optional[Dict[str, object]] = None,
) -> ChatLLMClient:
    """Build a chat client for ``model_key`` using the provider's credential."""
    model = AI_MODELS.get(model_key)
    if not model:
        raise UnknownModelError(f"Unknown model: {model_key}")

    provider = PROVIDERS.get(model.provider)
    if not provider:
        raise ConfigurationError(f"Unsupported provider: {model.provider}")

    api_key = os.environ.get(provider.api_key_env)
    if not api_key:
        raise ConfigurationError(f"{provider.api_key_env} is not set for model {model_key}")

    config = ChatLLMConfig(
        endpoint=provider.endpoint,
        model=model_key,
        api_key=api_key,
        temperature=None if model_key in NO_TEMPERATURE_MODELS else 0.7,
        request_timeout=request_timeout,
        stream_idle_timeout=stream_idle_timeout,
    )
    logger.debug("Created %s client for model %s", model.provider, model_key)
    return ChatLLMClient(config, model_kwargs=model_kwargs)
