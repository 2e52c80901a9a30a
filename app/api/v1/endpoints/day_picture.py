from fastapi import APIRouter, Request

from app.core.deps import DayPictures, RequestedDay
from app.schemas.media import DayPicture

router = APIRouter(tags=["day-picture"])


@router.get("/day-picture", response_model=DayPicture, response_model_exclude_none=True)
@router.get("/api/nasa/apod", response_model=DayPicture, response_model_exclude_none=True, include_in_schema=False)
async def get_day_picture(request: Request, feed: DayPictures, day: RequestedDay):
    """Picture of the day with display_url pointing at the cached copy. Always 200."""
    return await feed.get_picture(day, request)
