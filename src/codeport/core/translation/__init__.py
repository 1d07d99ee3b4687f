"""Translation engine for Codeport."""

from typing import Optional

from codeport.core.translation.interface import (
    ModelInterface,
    ServiceFailure,
    TranslationError,
    TranslationRequest,
    TranslationResult,
)
from codeport.core.translation.litellm import LiteLLMTranslator, classify_exception
from codeport.core.translation.requests import RequestBuilder, split_source
from codeport.core.types import RunOptions


def create_translator(options: RunOptions, api_key: Optional[str]) -> ModelInterface:
    """Create a translator instance based on run options.

    Args:
        options: Run options
        api_key: API key for the completion service

    Returns:
        Configured translator instance
    """
    return LiteLLMTranslator(
        model_name=options.model_name,
        api_key=api_key,
        timeout=options.timeout,
        max_attempts=options.max_attempts,
        temperature=options.temperature,
        max_tokens=options.max_tokens,
        backoff_base=options.backoff_base,
        backoff_max=options.backoff_max,
    )


__all__ = [
    "TranslationRequest",
    "TranslationResult",
    "ModelInterface",
    "ServiceFailure",
    "TranslationError",
    "LiteLLMTranslator",
    "RequestBuilder",
    "classify_exception",
    "create_translator",
    "split_source",
]
