from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from gallery.core.auth import get_media_service
from gallery.services.media_service import MediaStoreService
import os

router = APIRouter()

@router.get("", summary="Health check")
async def health(service: MediaStoreService = Depends(get_media_service)):
    backends = await service.health()
    return {
        "status": "ok",
        **backends,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "git_commit": os.getenv("GIT_COMMIT")
    }
