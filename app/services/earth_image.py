"""
Full-disk Earth image feed.

The upstream archive lags behind the calendar, has inconsistent file
extensions per date and serves the same files from two hosts with
different auth. Resolution tries, stopping at the first cached image:

    collection  natural → enhanced (reversed when enhanced was requested)
    date        requested date → up to N most recent available dates
                → yesterday (UTC), only if no date had any records
    record      first EPIC_MAX_RECORDS records of the batch
    location    see candidates.epic_candidates

The whole batch for the winning (collection, date) is returned with the
resolved record augmented. If nothing resolves, the built-in fallback
record is returned after its own one-shot cache attempt.
"""
import logging
import time
from datetime import date, datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Optional

from starlette.requests import Request

from app.core.config import Settings
from app.core.errors import ConfigurationError, DeadlineExceeded, NotFoundError, UpstreamError
from app.schemas.media import EarthImage
from app.services import candidates
from app.services.deadline import run_with_deadline
from app.services.fallbacks import earth_image_fallback
from app.services.image_cache import ImageCache
from app.services.nasa import NasaClient

logger = logging.getLogger(__name__)

NATURAL = "natural"
ENHANCED = "enhanced"


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def collection_order(requested: Optional[str]) -> list[str]:
    if requested == ENHANCED:
        return [ENHANCED, NATURAL]
    return [NATURAL, ENHANCED]


class EarthImageFeed:
    def __init__(
        self,
        settings: Settings,
        nasa: NasaClient,
        cache: ImageCache,
        today: Callable[[], date] = _utc_today,
    ):
        self.settings = settings
        self.nasa = nasa
        self.cache = cache
        self._today = today

    async def get_images(
        self,
        day: Optional[date] = None,
        collection: Optional[str] = None,
        request: Optional[Request] = None,
    ) -> list[EarthImage]:
        started = time.monotonic()
        try:
            images = await run_with_deadline(
                self._resolve(day, collection, request),
                self.settings.REQUEST_DEADLINE_SECONDS,
                label="earth image",
            )
        except DeadlineExceeded:
            return self.static_fallback()
        except ConfigurationError as exc:
            logger.error("earth image: %s, serving fallback", exc)
        except Exception as exc:
            logger.warning("earth image: upstream failed (%s: %s), serving fallback", type(exc).__name__, exc)
        else:
            if images:
                return images
            logger.warning("earth image: no candidate resolved for any collection/date, serving fallback")

        return await self._bounded_fallback(started, request)

    async def _bounded_fallback(self, started: float, request: Optional[Request]) -> list[EarthImage]:
        """Fallback cache attempt, limited to what is left of the request deadline."""
        remaining = self.settings.REQUEST_DEADLINE_SECONDS - (time.monotonic() - started)
        try:
            return await run_with_deadline(self.fallback(request), max(remaining, 0.0), label="earth image fallback")
        except DeadlineExceeded:
            return self.static_fallback()

    async def _resolve(
        self, day: Optional[date], collection: Optional[str], request: Optional[Request]
    ) -> Optional[list[EarthImage]]:
        for name in collection_order(collection):
            records = await self._resolve_collection(name, day, request)
            if records:
                return records
        return None

    async def _resolve_collection(
        self, collection: str, day: Optional[date], request: Optional[Request]
    ) -> Optional[list[EarthImage]]:
        saw_records = False
        tried: set[date] = set()
        async for candidate_day in self._candidate_days(collection, day):
            tried.add(candidate_day)
            records = await self._records(collection, candidate_day)
            if not records:
                continue
            saw_records = True
            if await self.resolve_batch(records, collection, request):
                return records

        if saw_records:
            return None

        yesterday = self._today() - timedelta(days=1)
        if yesterday in tried:
            return None

        logger.info("earth image: no %s records found, trying yesterday (%s)", collection, yesterday)
        records = await self._records(collection, yesterday)
        if records and await self.resolve_batch(records, collection, request):
            return records
        return None

    async def _candidate_days(self, collection: str, day: Optional[date]) -> AsyncIterator[date]:
        """Requested day first, then the most recent available days, lazily."""
        if day is not None:
            yield day

        try:
            available = await self.nasa.fetch_available_dates(collection)
        except UpstreamError as exc:
            logger.warning("earth image: available dates for %s unavailable: %s", collection, exc)
            return

        for candidate_day in available[: self.settings.EPIC_AVAILABLE_DATES]:
            if candidate_day != day:
                yield candidate_day

    async def _records(self, collection: str, day: date) -> list[EarthImage]:
        try:
            records = await self.nasa.fetch_earth_images(collection, day)
        except NotFoundError:
            records = []
        except UpstreamError as exc:
            logger.warning("earth image: %s listing for %s unavailable: %s", collection, day, exc)
            return []
        logger.info("earth image: %d %s records for %s", len(records), collection, day)
        return records

    async def resolve_batch(
        self, records: list[EarthImage], collection: str, request: Optional[Request] = None
    ) -> bool:
        """Cache the first resolvable image among the leading records; True on success."""
        for record in records[: max(1, self.settings.EPIC_MAX_RECORDS)]:
            try:
                options = candidates.epic_candidates(
                    record,
                    collection,
                    archive_base_url=self.settings.EPIC_ARCHIVE_BASE_URL,
                    api_base_url=self.settings.NASA_API_BASE_URL,
                    api_key=self.settings.NASA_API_KEY.strip(),
                )
            except ValueError:
                logger.warning("earth image %s: unparseable date %r", record.identifier, record.date)
                continue

            hit = await candidates.first_success(
                options, lambda c: self.cache.ensure_cached(c.url, c.cache_key, request)
            )
            if hit is None:
                logger.info("earth image %s: no location resolved", record.identifier)
                continue

            candidate, cached_url = hit
            record.image_url = cached_url
            record.display_url = cached_url
            record.original_url = candidate.original_url
            logger.info("earth image %s resolved via %s %s", record.identifier, candidate.kind, candidate.original_url)
            return True
        return False

    def static_fallback(self) -> list[EarthImage]:
        return [EarthImage.model_validate(item) for item in earth_image_fallback()]

    async def fallback(self, request: Optional[Request] = None) -> list[EarthImage]:
        """Built-in record with a best-effort one-shot cache attempt."""
        logger.info("serving fallback earth image")
        records = self.static_fallback()
        await self.resolve_batch(records, NATURAL, request)
        return records
