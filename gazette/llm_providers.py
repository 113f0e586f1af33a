"""LLM provider and model enums for the generation stages.

Every stage talks to the same Gemini model family through pydantic-ai, so the
model can be swapped from config.yaml without touching stage code.
"""

from enum import StrEnum


class LLMProvider(StrEnum):
    """Supported LLM providers."""

    GOOGLE_GLA = "google-gla"
    GOOGLE_VERTEX = "google-vertex"


class GeminiModel(StrEnum):
    """Gemini models available via the Generative Language API."""

    GEMINI_2_5_PRO = "gemini-2.5-pro"
    GEMINI_2_5_FLASH = "gemini-2.5-flash"
    GEMINI_2_5_FLASH_LITE = "gemini-2.5-flash-lite"
    GEMINI_2_0_FLASH = "gemini-2.0-flash"


# =============================================================================
# Helper Functions
# =============================================================================


def get_model_string(
    model: GeminiModel,
    provider: LLMProvider = LLMProvider.GOOGLE_GLA,
) -> str:
    """Get the pydantic-ai model string, e.g. 'google-gla:gemini-2.5-flash'."""
    if isinstance(model, GeminiModel):
        return f"{provider.value}:{model.value}"
    raise ValueError(f"Unknown model type: {type(model)}")


def get_api_key_env_vars(provider: LLMProvider) -> list[str]:
    """Environment variables pydantic-ai reads the API key from."""
    if provider == LLMProvider.GOOGLE_GLA:
        return ["GEMINI_API_KEY", "GOOGLE_API_KEY"]
    if provider == LLMProvider.GOOGLE_VERTEX:
        return ["GOOGLE_API_KEY"]
    raise ValueError(f"Unknown provider: {provider}")
