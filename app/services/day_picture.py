"""
Picture-of-the-day feed.

Fetch the upstream record, normalise video content, then cache the one
display image (HD image, or video thumbnail) and point the record at the
cached copy. Exactly one candidate is tried; if it fails the record goes
out without display_url/original_url. Any upstream failure, a missing API
key or the soft deadline yields the built-in Earthrise record instead.
"""
import logging
import time
from datetime import date, datetime, timezone
from typing import Callable, Optional

from starlette.requests import Request

from app.core.config import Settings
from app.core.errors import ConfigurationError, DeadlineExceeded
from app.schemas.media import DayPicture
from app.services import candidates
from app.services.deadline import run_with_deadline
from app.services.fallbacks import day_picture_fallback
from app.services.image_cache import ImageCache
from app.services.nasa import NasaClient

logger = logging.getLogger(__name__)

_VIDEO_TERMS = ("video", "animation", "time-lapse")


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def normalize_media(record: DayPicture) -> DayPicture:
    """
    Fill in video fields in place.

    - video: video_url is the upstream url; thumbnail derived from it.
      A video without a url is treated as hosted, like the case below
    - neither image nor video, tagged "other" or described as a video,
      animation or time-lapse: reclassified as a hosted video with a
      placeholder thumbnail and, lacking a url, a link to the archive page
    """
    kind = (record.media_type or "").lower()

    if kind == "video" and record.url:
        record.thumbnail_url = candidates.video_thumbnail(record.url)
        record.video_url = record.url
        return record

    if kind == "image":
        return record

    explanation = (record.explanation or "").lower()
    if kind in ("video", "other") or any(term in explanation for term in _VIDEO_TERMS):
        record.media_type = "video"
        record.is_nasa_hosted = True
        record.thumbnail_url = candidates.PLACEHOLDER_THUMBNAIL
        if not record.url:
            try:
                record.video_url = candidates.apod_page_url(date.fromisoformat(record.date))
            except ValueError:
                logger.warning("day picture: unparseable date %r, no archive link", record.date)
            else:
                record.url = record.video_url
    return record


def display_source(record: DayPicture) -> Optional[tuple[str, str]]:
    """(url, kind) of the image to cache for a record, or None if there is none."""
    if record.media_type == "image":
        url = record.hdurl or record.url
        return (url, "full") if url else None
    if record.media_type == "video" and record.thumbnail_url:
        return record.thumbnail_url, "thumb"
    return None


class DayPictureFeed:
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

    async def get_picture(self, day: Optional[date] = None, request: Optional[Request] = None) -> DayPicture:
        started = time.monotonic()
        try:
            return await run_with_deadline(
                self._resolve(day, request),
                self.settings.REQUEST_DEADLINE_SECONDS,
                label="day picture",
            )
        except DeadlineExceeded:
            return self.static_fallback()
        except ConfigurationError as exc:
            logger.error("day picture: %s, serving fallback", exc)
        except Exception as exc:
            logger.warning("day picture: upstream failed (%s: %s), serving fallback", type(exc).__name__, exc)

        return await self._bounded_fallback(started, request)

    async def _bounded_fallback(self, started: float, request: Optional[Request]) -> DayPicture:
        """Fallback cache attempt, limited to what is left of the request deadline."""
        remaining = self.settings.REQUEST_DEADLINE_SECONDS - (time.monotonic() - started)
        try:
            return await run_with_deadline(self.fallback(request), max(remaining, 0.0), label="day picture fallback")
        except DeadlineExceeded:
            return self.static_fallback()

    async def _resolve(self, day: Optional[date], request: Optional[Request]) -> DayPicture:
        logger.info("fetching day picture for %s", day.isoformat() if day else "today")
        record = normalize_media(await self.nasa.fetch_day_picture(day))
        await self.cache_display_image(record, request)
        return record

    async def cache_display_image(self, record: DayPicture, request: Optional[Request] = None) -> DayPicture:
        """Try the record's single display candidate; set cache fields on success."""
        source = display_source(record)
        if source is None:
            logger.info("day picture %s: no image to cache (media_type=%s)", record.date, record.media_type)
            return record

        url, kind = source
        ext = candidates.extension_from_url(url)
        candidate = candidates.candidate_from_url(url, candidates.apod_cache_key(record.date, ext, kind), kind)

        cached_url = await self.cache.ensure_cached(candidate.url, candidate.cache_key, request)
        if cached_url:
            record.display_url = cached_url
            record.original_url = candidate.original_url
        return record

    def static_fallback(self) -> DayPicture:
        return DayPicture.model_validate(day_picture_fallback(self._today()))

    async def fallback(self, request: Optional[Request] = None) -> DayPicture:
        """Earthrise record with a best-effort one-shot cache attempt."""
        logger.info("serving fallback day picture")
        return await self.cache_display_image(self.static_fallback(), request)
