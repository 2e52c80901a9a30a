"""
Upstream astronomy API client.

Auth via api_key query parameter. Retries on timeout, 5xx and 429 with
exponential backoff; 404 raises NotFoundError without retrying. The key is
never logged: log lines carry the endpoint path only.
"""
import asyncio
import logging
from datetime import date
from typing import Any, Awaitable, Callable, Optional

import httpx
from pydantic import ValidationError

from app.core.config import Settings
from app.core.errors import ConfigurationError, NotFoundError, UpstreamError
from app.schemas.media import DayPicture, EarthImage
from app.services.fetcher import RemoteFetcher
from app.services.retry import describe, status_of, with_retry

logger = logging.getLogger(__name__)


class NasaClient:
    def __init__(
        self,
        settings: Settings,
        fetcher: RemoteFetcher,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self.fetcher = fetcher
        self._sleep = sleep

    async def _get(self, path: str, params: Optional[dict[str, str]] = None) -> Any:
        if not self.settings.has_api_key:
            raise ConfigurationError("NASA_API_KEY not configured")

        url = f"{self.settings.NASA_API_BASE_URL.rstrip('/')}{path}"
        query = {"api_key": self.settings.NASA_API_KEY, **(params or {})}
        logger.debug("GET %s params=%s", path, params or {})

        try:
            return await with_retry(
                lambda: self.fetcher.get_json(url, params=query),
                attempts=self.settings.API_RETRY_ATTEMPTS,
                base_delay=self.settings.RETRY_BASE_DELAY_SECONDS,
                label=f"upstream {path}",
                sleep=self._sleep,
            )
        except NotFoundError:
            raise
        except (httpx.HTTPError, ValueError) as exc:
            # ValueError covers undecodable JSON bodies
            raise UpstreamError(f"GET {path} failed: {describe(exc)}", status_of(exc)) from exc

    async def fetch_day_picture(self, day: Optional[date] = None) -> DayPicture:
        """GET /planetary/apod for a day (today when None)."""
        params = {"date": day.isoformat()} if day else None
        data = await self._get("/planetary/apod", params)
        if not isinstance(data, dict):
            raise UpstreamError("picture of the day response is not an object")
        try:
            return DayPicture.model_validate(data)
        except ValidationError as exc:
            raise UpstreamError(f"malformed picture of the day record: {exc.error_count()} errors") from exc

    async def fetch_earth_images(self, collection: str, day: date) -> list[EarthImage]:
        """
        GET /EPIC/api/{collection}/date/{day}

        An empty list means the upstream has nothing for that day yet.
        Records that fail validation are skipped.
        """
        data = await self._get(f"/EPIC/api/{collection}/date/{day.isoformat()}")
        if not isinstance(data, list):
            raise UpstreamError("earth image response is not a list")

        records = []
        for item in data:
            try:
                records.append(EarthImage.model_validate(item))
            except ValidationError:
                logger.warning("skipping malformed earth image record in %s/%s", collection, day)
        return records

    async def fetch_available_dates(self, collection: str) -> list[date]:
        """GET /EPIC/api/{collection}/available, most recent first."""
        data = await self._get(f"/EPIC/api/{collection}/available")
        if not isinstance(data, list):
            raise UpstreamError("available dates response is not a list")

        dates = set()
        for value in data:
            try:
                dates.add(date.fromisoformat(str(value)[:10]))
            except ValueError:
                continue
        return sorted(dates, reverse=True)
