"""Async wrapper around a pydantic-ai text agent with retry logic."""

import asyncio
import logging
import os

from pydantic_ai import Agent
from pydantic_ai.exceptions import ModelHTTPError
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings

from gazette.llm_providers import get_api_key_env_vars, get_model_string

from .config import GenerationConfig
from .exceptions import (
    GenerationAuthError,
    GenerationError,
    GenerationRateLimitError,
    GenerationServerError,
    GenerationTimeoutError,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a staff writer at a newspaper that covers prediction markets. "
    "When asked for JSON, reply with a single JSON object and nothing else."
)


class GenerationClient:
    """Issues one text request per call and returns the raw model output.

    Structure is never enforced here; callers run the text through the
    extractor. Transient failures are retried with exponential backoff up to
    `config.max_attempts` total attempts.
    """

    def __init__(
        self,
        api_key: str,
        config: GenerationConfig | None = None,
        model: Model | str | None = None,
    ):
        self.api_key = api_key
        self.config = config or GenerationConfig()
        self._model = model
        self._agent: Agent[None, str] | None = None
        self.requests_made = 0

    def _get_agent(self) -> Agent[None, str]:
        """Create the agent lazily so API keys are not read at import time."""
        if self._agent is None:
            model = self._model
            if model is None:
                # ensure API key is set for pydantic-ai
                if self.api_key:
                    for env_var in get_api_key_env_vars(self.config.provider):
                        os.environ[env_var] = self.api_key
                model = get_model_string(self.config.model, self.config.provider)

            self._agent = Agent(
                model=model,
                output_type=str,
                system_prompt=SYSTEM_PROMPT,
            )
        return self._agent

    async def _request(self, prompt: str, temperature: float, max_tokens: int) -> str:
        """One raw request, no retries."""
        self.requests_made += 1
        settings: ModelSettings = {"temperature": temperature, "max_tokens": max_tokens}
        result = await self._get_agent().run(prompt, model_settings=settings)
        return result.output

    def _classify(self, operation: str, error: Exception) -> GenerationError:
        if isinstance(error, GenerationError):
            return error
        if isinstance(error, asyncio.TimeoutError):
            return GenerationTimeoutError(
                f"{operation} timed out after {self.config.request_timeout_seconds}s"
            )
        if isinstance(error, ModelHTTPError):
            if error.status_code in (401, 403):
                return GenerationAuthError("Authentication failed", status_code=error.status_code)
            if error.status_code == 429:
                return GenerationRateLimitError(f"Rate limited: {error}", status_code=429)
            if error.status_code >= 500:
                return GenerationServerError(f"Server error: {error}", status_code=error.status_code)
            return GenerationError(f"Request rejected: {error}", status_code=error.status_code)
        return GenerationError(f"{operation} failed: {error}")

    async def complete(
        self,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        operation: str = "complete",
    ) -> str:
        """Return the model's raw text for `prompt`.

        Raises:
            GenerationAuthError: immediately, credentials are not retried
            GenerationError: after the last attempt failed
        """
        attempt = 0
        last_error: GenerationError | None = None

        while attempt < self.config.max_attempts:
            try:
                return await asyncio.wait_for(
                    self._request(prompt, temperature, max_tokens),
                    timeout=self.config.request_timeout_seconds,
                )

            except Exception as e:
                last_error = self._classify(operation, e)
                if isinstance(last_error, GenerationAuthError):
                    raise last_error from e

                attempt += 1
                if attempt >= self.config.max_attempts:
                    break

                wait_time = self.config.initial_delay_seconds * 2 ** (attempt - 1)
                logger.warning(
                    f"{operation} attempt {attempt}/{self.config.max_attempts} failed "
                    f"({last_error}), retrying in {wait_time:.2f}s..."
                )
                await asyncio.sleep(wait_time)

        raise GenerationError(
            f"{operation} failed after {attempt} attempts: {last_error}",
            status_code=last_error.status_code if last_error else None,
            attempts=attempt,
        )


def create_generation_client(api_key: str, config: GenerationConfig | None = None) -> GenerationClient:
    """Factory function to create GenerationClient with default config."""
    return GenerationClient(api_key=api_key, config=config or GenerationConfig())
