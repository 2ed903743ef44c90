"""LLM client module."""

from llm.client.openai_client import (
    LLMError,
    OpenAIClient,
    PermanentLLMError,
    ProviderFn,
    StructuredCompletion,
    TransientLLMError,
)

__all__ = [
    "LLMError",
    "OpenAIClient",
    "PermanentLLMError",
    "ProviderFn",
    "StructuredCompletion",
    "TransientLLMError",
]
