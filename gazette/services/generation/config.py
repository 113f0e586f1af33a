from pydantic import BaseModel, Field

from gazette.llm_providers import GeminiModel, LLMProvider


class GenerationConfig(BaseModel):
    """Configuration for the LLM generation client."""

    provider: LLMProvider = LLMProvider.GOOGLE_GLA
    model: GeminiModel = GeminiModel.GEMINI_2_5_FLASH
    # Total attempts per request, not retries after the first one
    max_attempts: int = Field(default=2, ge=1)
    initial_delay_seconds: float = 0.5
    request_timeout_seconds: float = 60.0
