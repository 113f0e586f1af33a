"""Logfire cloud observability initialization and instrumentation."""

import logging

import logfire

from gazette import __version__
from gazette.config import Settings

logger = logging.getLogger(__name__)


def initialize_logfire(settings: Settings) -> None:
    """
    Initialize Logfire tracing for the edition pipeline.

    Must be called ONCE at process startup, before the first edition build.

    This function configures Logfire cloud tracking and instruments:
    - PydanticAI agents (every generation stage request)
    - HTTPX clients (Gemini transport, market snapshot fetches)
    - Python logging (bridges to Logfire)

    Args:
        settings: Application settings containing the Logfire token
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="gazette",
            service_version=__version__,
            environment=settings.environment,
        )

        logfire.instrument_pydantic_ai()
        logfire.instrument_httpx()

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("✓ Logfire cloud tracking initialized")

    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")
