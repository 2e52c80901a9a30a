from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class DayPicture(BaseModel):
    """Upstream picture-of-the-day record plus the fields this service adds."""

    model_config = ConfigDict(extra="allow")

    date: str
    title: Optional[str] = None
    explanation: Optional[str] = None
    url: Optional[str] = None
    hdurl: Optional[str] = None
    media_type: Optional[str] = None
    copyright: Optional[str] = None
    service_version: Optional[str] = None

    # Added for video content
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
    is_nasa_hosted: Optional[bool] = None

    # Added by the image cache
    display_url: Optional[str] = None
    original_url: Optional[str] = None


class EarthImage(BaseModel):
    """Upstream full-disk Earth image record plus the fields this service adds."""

    model_config = ConfigDict(extra="allow")

    identifier: str
    image: str
    date: str  # "YYYY-MM-DD HH:MM:SS"
    caption: Optional[str] = None
    version: Optional[str] = None
    centroid_coordinates: Optional[dict[str, Any]] = None
    dscovr_j2000_position: Optional[dict[str, Any]] = None
    lunar_j2000_position: Optional[dict[str, Any]] = None
    sun_j2000_position: Optional[dict[str, Any]] = None
    attitude_quaternions: Optional[dict[str, Any]] = None
    coords: Optional[dict[str, Any]] = None

    # Added by the image cache
    image_url: Optional[str] = None
    display_url: Optional[str] = None
    original_url: Optional[str] = None


class Candidate(BaseModel):
    """One remote location to try for an image, and where it caches to."""

    model_config = ConfigDict(frozen=True)

    host: str  # scheme://netloc
    path: str
    extension: str
    kind: str  # "full" | "thumb"
    cache_key: str
    query: str = ""
    authenticated: bool = False

    @property
    def url(self) -> str:
        if self.query:
            return f"{self.host}{self.path}?{self.query}"
        return f"{self.host}{self.path}"

    @property
    def original_url(self) -> str:
        """The URL reported to clients; never carries the API key."""
        if self.authenticated:
            return f"{self.host}{self.path}"
        return self.url
