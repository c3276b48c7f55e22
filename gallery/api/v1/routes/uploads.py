from typing import List, Optional
from fastapi import APIRouter, Depends, File, UploadFile
from gallery.core.auth import get_media_service, require_admin
from gallery.core.exceptions import BadRequest
from gallery.services.media_service import MediaStoreService
from gallery.services.types import UploadItem
from gallery.utils.dto.gallery import UploadFileResult, UploadResponse
from gallery.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

MAX_FILES_PER_REQUEST = 30


async def read_upload(file: UploadFile, max_bytes: Optional[int] = None) -> UploadItem:
    filename = file.filename or "upload"
    content_type = file.content_type or "application/octet-stream"
    if max_bytes is not None and file.size is not None and file.size > max_bytes:
        # left unread, the store rejects it by its declared size
        return UploadItem(filename=filename, content_type=content_type, data=b"", declared_size=file.size)
    return UploadItem(filename=filename, content_type=content_type, data=await file.read())


@router.post("/upload/{client_id}", response_model=UploadResponse, dependencies=[Depends(require_admin)])
async def upload_photos(
    client_id: str,
    photos: List[UploadFile] = File(default=[]),
    service: MediaStoreService = Depends(get_media_service),
):
    if not photos:
        raise BadRequest("No photos uploaded")
    if len(photos) > MAX_FILES_PER_REQUEST:
        raise BadRequest(
            f"At most {MAX_FILES_PER_REQUEST} photos per request",
            details={"limit": MAX_FILES_PER_REQUEST},
        )

    logger.info(f"Uploading {len(photos)} photos for client {client_id}")
    max_bytes = service.blob_store.max_upload_bytes
    items = [await read_upload(photo, max_bytes) for photo in photos]
    report = await service.upload_assets(client_id, items)

    results = []
    for result in report.results:
        if result.ok:
            results.append(UploadFileResult(filename=result.filename, status="stored", key=result.key, url=result.url))
        else:
            error = result.error
            results.append(UploadFileResult(
                filename=result.filename,
                status="failed",
                error=getattr(error, "kind", "internal"),
                message=getattr(error, "message", str(error)),
            ))
    return UploadResponse(uploaded=report.uploaded, failed=report.failed, results=results)


@router.delete("/photos/{client_id}/{key}", dependencies=[Depends(require_admin)])
async def delete_photo(client_id: str, key: str, service: MediaStoreService = Depends(get_media_service)):
    await service.delete_asset(client_id, key)
    return {"success": True}
