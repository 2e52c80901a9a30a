"""
Image cache orchestrator.

Ensures a remote image exists in the local content store and returns the
URL clients should use for it.

Cache hit  → no network at all, return the public URL
Cache miss → HEAD preflight (404 ends the attempt), then a streamed GET
             under the retry policy, written atomically to the store
Failure    → None; the caller decides whether to try another candidate.
Failures are never cached.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx
from starlette.requests import Request

from app.core.config import Settings
from app.core.errors import CacheWriteError, NotFoundError, UpstreamError
from app.services.content_store import ContentStore
from app.services.fetcher import RemoteFetcher, is_fetchable, redact_url
from app.services.retry import describe, with_retry

logger = logging.getLogger(__name__)

_ACCEPTED_TYPES = ("image/", "application/octet-stream", "binary/octet-stream")


class ImageCache:
    def __init__(
        self,
        settings: Settings,
        store: ContentStore,
        fetcher: RemoteFetcher,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.store = store
        self.fetcher = fetcher
        self._sleep = sleep

    async def ensure_cached(
        self,
        source_url: str,
        cache_key: str,
        request: Optional[Request] = None,
        preflight: bool = True,
    ) -> Optional[str]:
        """Return the public URL for cache_key, downloading source_url on a miss."""
        if self.store.exists(cache_key):
            logger.debug("image cache hit key=%s", cache_key)
            return self.store.public_url(cache_key, request)

        if not is_fetchable(source_url):
            logger.warning("image source not fetchable key=%s source=%r", cache_key, redact_url(source_url))
            return None

        async with self.store.lock(cache_key):
            # Another request may have finished the download while we waited
            if self.store.exists(cache_key):
                logger.debug("image cache hit key=%s (after wait)", cache_key)
                return self.store.public_url(cache_key, request)

            source = redact_url(source_url)
            logger.info("image cache miss key=%s source=%s, downloading", cache_key, source)

            if preflight:
                status = await self.fetcher.head(source_url)
                if status == 404:
                    logger.info("image not found key=%s source=%s (HEAD 404)", cache_key, source)
                    return None

            try:
                size = await with_retry(
                    lambda: self._download(source_url, cache_key),
                    attempts=self.settings.IMAGE_RETRY_ATTEMPTS,
                    base_delay=self.settings.RETRY_BASE_DELAY_SECONDS,
                    label=f"image download {cache_key}",
                    sleep=self._sleep,
                )
            except NotFoundError:
                logger.info("image not found key=%s source=%s", cache_key, source)
                return None
            except CacheWriteError as exc:
                logger.warning("image cache write failed key=%s: %s", cache_key, exc)
                return None
            except (httpx.HTTPError, httpx.InvalidURL, UpstreamError, ValueError) as exc:
                logger.warning(
                    "image download failed key=%s source=%s error=%s", cache_key, source, describe(exc)
                )
                return None

        logger.info("image download complete key=%s bytes=%d", cache_key, size)
        return self.store.public_url(cache_key, request)

    async def _download(self, source_url: str, cache_key: str) -> int:
        async with self.fetcher.stream_image(source_url) as response:
            content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
            if content_type and not content_type.startswith(_ACCEPTED_TYPES):
                # Mirrors answer some missing files with an HTML page and a 200
                raise UpstreamError(f"unexpected content-type {content_type!r}", status_code=415)
            return await self.store.write(cache_key, response.aiter_bytes())
