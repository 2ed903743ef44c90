"""LLM module - OpenAI client and settings."""

from llm.client.openai_client import (
    LLMError,
    OpenAIClient,
    PermanentLLMError,
    ProviderFn,
    StructuredCompletion,
    TransientLLMError,
)
from llm.settings import LLMSettings, get_llm_settings

__all__ = [
    "LLMError",
    "OpenAIClient",
    "PermanentLLMError",
    "ProviderFn",
    "StructuredCompletion",
    "TransientLLMError",
    "LLMSettings",
    "get_llm_settings",
]
