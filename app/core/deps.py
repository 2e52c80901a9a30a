import logging
from datetime import date
from typing import Annotated, Optional

from fastapi import Depends, Query, Request

from app.core.config import Settings
from app.services.content_store import ContentStore
from app.services.day_picture import DayPictureFeed
from app.services.earth_image import EarthImageFeed

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> ContentStore:
    return request.app.state.store


def get_day_picture_feed(request: Request) -> DayPictureFeed:
    return request.app.state.day_picture_feed


def get_earth_image_feed(request: Request) -> EarthImageFeed:
    return request.app.state.earth_image_feed


def requested_day(
    value: Optional[str] = Query(None, alias="date", description="YYYY-MM-DD"),
) -> Optional[date]:
    """Parse the optional ?date= parameter; malformed values are ignored."""
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        logger.warning("ignoring malformed date parameter %r", value)
        return None


AppSettings = Annotated[Settings, Depends(get_app_settings)]
Store = Annotated[ContentStore, Depends(get_store)]
DayPictures = Annotated[DayPictureFeed, Depends(get_day_picture_feed)]
EarthImages = Annotated[EarthImageFeed, Depends(get_earth_image_feed)]
RequestedDay = Annotated[Optional[date], Depends(requested_day)]
