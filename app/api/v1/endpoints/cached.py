from fastapi import APIRouter, HTTPException
from fastapi.responses import FileResponse

from app.core.deps import Store
from app.services.content_store import CACHE_ROUTE

router = APIRouter(tags=["cached"])

# Content at a path never changes, but paths are not promised across deployments
CACHE_CONTROL = "public, max-age=2592000"


@router.get(CACHE_ROUTE + "/{key:path}")
async def get_cached_asset(key: str, store: Store):
    """Serve a previously cached image. No auth required; images are public data."""
    path = store.path_for(key)
    if path is None or not path.is_file() or path.name.startswith("."):
        raise HTTPException(status_code=404, detail="Not cached")
    return FileResponse(path, headers={"Cache-Control": CACHE_CONTROL})
