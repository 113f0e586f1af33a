"""LLM generation service integration."""

from .client import GenerationClient, create_generation_client
from .config import GenerationConfig
from .exceptions import (
    GenerationAuthError,
    GenerationError,
    GenerationRateLimitError,
    GenerationServerError,
    GenerationTimeoutError,
)

__all__ = [
    "GenerationClient",
    "create_generation_client",
    "GenerationConfig",
    "GenerationError",
    "GenerationAuthError",
    "GenerationRateLimitError",
    "GenerationServerError",
    "GenerationTimeoutError",
]
