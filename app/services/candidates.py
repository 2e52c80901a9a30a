"""
Candidate image locations and the try-in-order combinator.

The same logical image is often reachable at several remote locations
(mirror hosts, file extensions, thumbnail variants). Each location is a
Candidate; resolution walks an ordered list and stops at the first one the
image cache accepts.
"""
import logging
import posixpath
import re
from datetime import date, datetime
from typing import Awaitable, Callable, Iterable, Optional
from urllib.parse import urlencode, urlsplit

from app.schemas.media import Candidate, EarthImage

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".jpg"
EPIC_EXTENSIONS = (".png", ".jpg")

_EXTENSION_RE = re.compile(r"^\.[a-z0-9]{2,5}$")
_YOUTUBE_ID_RE = re.compile(
    r"(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?)/|.*[?&]v=)|youtu\.be/)([^\"&?/\s]{11})"
)

YOUTUBE_THUMBNAIL = "https://img.youtube.com/vi/{video_id}/hqdefault.jpg"
PLACEHOLDER_THUMBNAIL = "https://images.unsplash.com/photo-1446776877081-d282a0f896e2?w=800&h=600&fit=crop"
APOD_PAGE = "https://apod.nasa.gov/apod/ap{yymmdd}.html"


# ── Try-in-order ──────────────────────────────────────────────────────────────

async def first_success(
    candidates: Iterable[Candidate],
    attempt: Callable[[Candidate], Awaitable[Optional[str]]],
) -> Optional[tuple[Candidate, str]]:
    """
    Try candidates strictly in order; return (candidate, result) for the
    first attempt that yields a result, or None once all are exhausted.
    """
    for candidate in candidates:
        result = await attempt(candidate)
        if result:
            return candidate, result
        logger.debug("candidate failed kind=%s key=%s", candidate.kind, candidate.cache_key)
    return None


# ── URL helpers ───────────────────────────────────────────────────────────────

def extension_from_url(url: str, default: str = DEFAULT_EXTENSION) -> str:
    """File extension of the URL path, lower-cased, or default when absent."""
    ext = posixpath.splitext(urlsplit(url).path)[1].lower()
    return ext if _EXTENSION_RE.match(ext) else default


def youtube_id(url: str) -> Optional[str]:
    """The 11-character video id of a YouTube watch/embed/short link."""
    match = _YOUTUBE_ID_RE.search(url)
    return match.group(1) if match else None


def video_thumbnail(url: str) -> str:
    """Deterministic thumbnail for a video URL; a placeholder when unknown."""
    video_id = youtube_id(url)
    if video_id:
        return YOUTUBE_THUMBNAIL.format(video_id=video_id)
    return PLACEHOLDER_THUMBNAIL


def apod_page_url(day: date) -> str:
    """Upstream archive page for a day, e.g. 2024-08-10 → .../ap240810.html"""
    return APOD_PAGE.format(yymmdd=day.strftime("%y%m%d"))


# ── Cache keys ────────────────────────────────────────────────────────────────

def apod_cache_key(day: str, extension: str, kind: str = "full") -> str:
    suffix = "-thumb" if kind == "thumb" else ""
    return f"apod/{day}{suffix}{extension}"


def epic_cache_key(captured: date, image: str, extension: str, kind: str = "full") -> str:
    suffix = "-thumb" if kind == "thumb" else ""
    return f"epic/{captured:%Y/%m/%d}/{image}{suffix}{extension}"


# ── Candidate builders ────────────────────────────────────────────────────────

def candidate_from_url(url: str, cache_key: str, kind: str = "full") -> Candidate:
    parts = urlsplit(url)
    return Candidate(
        host=f"{parts.scheme}://{parts.netloc}",
        path=parts.path,
        query=parts.query,
        extension=extension_from_url(url),
        kind=kind,
        cache_key=cache_key,
    )


def epic_capture_date(record: EarthImage) -> date:
    """Calendar date of an Earth image record ('YYYY-MM-DD HH:MM:SS')."""
    value = record.date.strip()
    try:
        return datetime.strptime(value, "%Y-%m-%d %H:%M:%S").date()
    except ValueError:
        return date.fromisoformat(value[:10])


def epic_candidates(
    record: EarthImage,
    collection: str,
    archive_base_url: str,
    api_base_url: str,
    api_key: str = "",
) -> list[Candidate]:
    """
    Every location of one Earth image, in the order they should be tried:

    1. primary mirror, full resolution, .png then .jpg
    2. key-authenticated mirror, full resolution, .png then .jpg
    3. primary mirror thumbnail (.jpg)
    4. key-authenticated mirror thumbnail (.jpg)

    The authenticated mirror is left out when no API key is configured.
    Raises ValueError if the record's date cannot be parsed.
    """
    captured = epic_capture_date(record)
    dated = f"{collection}/{captured:%Y/%m/%d}"

    mirrors = [(archive_base_url.rstrip("/"), "/archive", "")]
    if api_key:
        mirrors.append((api_base_url.rstrip("/"), "/EPIC/archive", urlencode({"api_key": api_key})))

    candidates = []
    for host, prefix, query in mirrors:
        for ext in EPIC_EXTENSIONS:
            candidates.append(Candidate(
                host=host,
                path=f"{prefix}/{dated}/{ext[1:]}/{record.image}{ext}",
                query=query,
                authenticated=bool(query),
                extension=ext,
                kind="full",
                cache_key=epic_cache_key(captured, record.image, ext),
            ))
    for host, prefix, query in mirrors:
        candidates.append(Candidate(
            host=host,
            path=f"{prefix}/{dated}/thumbs/{record.image}.jpg",
            query=query,
            authenticated=bool(query),
            extension=".jpg",
            kind="thumb",
            cache_key=epic_cache_key(captured, record.image, ".jpg", kind="thumb"),
        ))
    return candidates
