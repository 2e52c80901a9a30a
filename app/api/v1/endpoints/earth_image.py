from typing import Optional

from fastapi import APIRouter, Query, Request

from app.core.deps import EarthImages, RequestedDay
from app.schemas.media import EarthImage

router = APIRouter(tags=["earth-image"])


@router.get("/earth-image", response_model=list[EarthImage], response_model_exclude_none=True)
@router.get("/api/nasa/epic", response_model=list[EarthImage], response_model_exclude_none=True, include_in_schema=False)
async def get_earth_images(
    request: Request,
    feed: EarthImages,
    day: RequestedDay,
    collection: Optional[str] = Query(None, description="natural (default) or enhanced"),
):
    """Earth image records; the first resolvable one carries image_url. Always 200."""
    normalized = (collection or "").strip().lower() or None
    return await feed.get_images(day, normalized, request)
