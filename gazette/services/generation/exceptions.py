class GenerationError(Exception):
    """Base exception for LLM generation failures."""

    def __init__(self, message: str, status_code: int | None = None, attempts: int = 0):
        super().__init__(message)
        self.status_code = status_code
        self.attempts = attempts


class GenerationAuthError(GenerationError):
    """API key rejected."""

    pass


class GenerationRateLimitError(GenerationError):
    """Rate limit exceeded."""

    pass


class GenerationServerError(GenerationError):
    """Provider returned a 5xx."""

    pass


class GenerationTimeoutError(GenerationError):
    """A single request exceeded its timeout."""

    pass
