"""FastAPI server for the current edition and newsletter signups."""

import logging
import re
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from gazette import __version__
from gazette.config import Settings, get_settings
from gazette.editorial import EditionError
from gazette.editorial.orchestrator import TextGenerator
from gazette.pipeline import MissingCredentialsError, create_cache, create_history, get_edition
from gazette.services.ratelimit import RateLimiter
from gazette.storage import EditionCache, HistoryRecorder, SubscriberList

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_EMAIL_LENGTH = 254


class SubscribeRequest(BaseModel):
    email: str = ""


def client_ip(request: Request) -> str:
    """First x-forwarded-for hop, then x-real-ip, else 'unknown'."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or "unknown"
    return request.headers.get("x-real-ip") or "unknown"


def create_app(
    settings: Settings | None = None,
    *,
    limiter: RateLimiter | None = None,
    cache: EditionCache | None = None,
    history: HistoryRecorder | None = None,
    subscribers: SubscriberList | None = None,
    client: TextGenerator | None = None,
) -> FastAPI:
    """Build the app with its collaborators; each defaults from settings."""
    settings = settings or get_settings()
    limiter = limiter if limiter is not None else RateLimiter(settings.ratelimit)
    cache = cache if cache is not None else create_cache(settings)
    history = history if history is not None else create_history(settings)
    if subscribers is None:
        subscribers = SubscriberList(settings.data_dir / "subscribers.json")

    app = FastAPI(title="Gazette API", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "version": __version__}

    @app.get("/api/edition")
    async def edition(force: bool = False):
        """Current edition, generated on a cache miss."""
        try:
            result = await get_edition(
                settings,
                force_refresh=force,
                cache=cache,
                history=history,
                client=client,
            )
        except MissingCredentialsError as e:
            logger.error(f"Edition request failed: {e}")
            return JSONResponse(status_code=500, content={"error": "Generation service not configured"})

        if isinstance(result, EditionError):
            return JSONResponse(status_code=503, content=result.model_dump())

        return {
            "key": result.key,
            "source": result.source,
            "generated_at": result.edition.generated_at.isoformat(),
            "editorial_note": result.edition.editorial_note,
            "is_fallback": result.edition.is_fallback,
            "selection_reasoning": result.edition.blueprint.reasoning,
            "stories": result.edition.render_stories(),
        }

    @app.post("/api/subscribe")
    async def subscribe(request: Request, body: SubscribeRequest):
        ip = client_ip(request)
        decision = limiter.check(ip)
        if not decision.allowed:
            logger.info(f"Rate limited subscribe request from {ip}")
            return JSONResponse(
                status_code=429,
                content={"error": "Too many requests. Please try again later."},
                headers={"Retry-After": str(decision.retry_after_seconds)},
            )

        email = body.email.strip()
        if not email:
            return JSONResponse(status_code=400, content={"error": "Invalid email address"})
        if len(email) > MAX_EMAIL_LENGTH:
            return JSONResponse(status_code=400, content={"error": "Email address too long"})
        if not EMAIL_RE.match(email):
            return JSONResponse(status_code=400, content={"error": "Invalid email address"})

        try:
            added = subscribers.add(email)
        except OSError as e:
            logger.error(f"Failed to store subscriber: {e}")
            return JSONResponse(status_code=503, content={"error": "Subscriber store unavailable"})

        return {"message": "Subscribed successfully" if added else "Already subscribed"}

    return app
