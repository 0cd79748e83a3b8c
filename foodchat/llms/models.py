from __future__ import annotations

from fastapi import Depends
from pydantic_ai.models import Model
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

from foodchat.config import Config, get_config
from foodchat.errors import ConfigurationError


def init_model(config: Config) -> Model:
    """Build the chat model; raises ConfigurationError when no API key is configured."""
    provider = OpenAIProvider(api_key=config.require_openai_api_key(), base_url=config.openai_base_url)
    return OpenAIChatModel(config.model_name, provider=provider)


def init_model_settings(config: Config) -> ModelSettings:
    return ModelSettings(temperature=config.temperature, max_tokens=config.max_tokens)


def get_default_model(config: Config = Depends(get_config)) -> Model | None:
    # Missing credentials surface on the first chat turn, not here
    try:
        return init_model(config)
    except ConfigurationError:
        return None
