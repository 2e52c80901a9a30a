import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.router import api_router
from app.core.config import Settings, get_settings
from app.core.deps import AppSettings
from app.core.logging import configure_logging
from app.services.content_store import ContentStore
from app.services.day_picture import DayPictureFeed
from app.services.earth_image import EarthImageFeed
from app.services.fetcher import RemoteFetcher
from app.services.image_cache import ImageCache
from app.services.nasa import NasaClient

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> FastAPI:
    """
    Build the app and wire every component from one Settings instance.

    transport and sleep exist for tests: an httpx.MockTransport stands in
    for the upstream and mirrors, and a no-op sleep skips backoff waits.
    """
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    fetcher = RemoteFetcher(settings, transport=transport)
    store = ContentStore(settings.CACHE_DIR, settings.PUBLIC_BASE_URL)
    nasa = NasaClient(settings, fetcher, sleep=sleep)
    cache = ImageCache(settings, store, fetcher, sleep=sleep)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        store.root.mkdir(parents=True, exist_ok=True)
        if not settings.has_api_key:
            logger.warning("NASA_API_KEY not configured; feeds will serve fallback records")
        yield
        # Shutdown
        await fetcher.aclose()

    app = FastAPI(
        title="SkyCache",
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.day_picture_feed = DayPictureFeed(settings, nasa, cache)
    app.state.earth_image_feed = EarthImageFeed(settings, nasa, cache)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins,
        allow_methods=["GET", "HEAD", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next) -> Response:
        start = time.monotonic()
        response = await call_next(request)
        latency_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "%s %s status=%d latency_ms=%d",
            request.method, request.url.path, response.status_code, latency_ms,
        )
        return response

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/debug", tags=["health"])
    async def debug(current: AppSettings):
        return {
            "nasa_api_key": "configured" if current.has_api_key else "missing",
            "environment": current.ENVIRONMENT,
            "cache_dir": str(current.CACHE_DIR),
            "public_base_url": current.PUBLIC_BASE_URL or None,
        }

    app.include_router(api_router)
    return app


app = create_app()
