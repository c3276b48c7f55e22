from fastapi import APIRouter, Depends, File, UploadFile
from gallery.api.v1.routes.uploads import read_upload
from gallery.core.auth import get_media_service, require_admin
from gallery.services.media_service import MediaStoreService
from gallery.utils.dto.settings import SettingsResponse

router = APIRouter()


@router.get("/settings", response_model=SettingsResponse)
async def get_settings(service: MediaStoreService = Depends(get_media_service)):
    settings = await service.get_settings()
    return SettingsResponse(logo=service.logo_url(settings))


@router.post("/admin/settings/logo", response_model=SettingsResponse, dependencies=[Depends(require_admin)])
async def upload_logo(logo: UploadFile = File(...), service: MediaStoreService = Depends(get_media_service)):
    settings = await service.update_branding(await read_upload(logo, service.blob_store.max_upload_bytes))
    return SettingsResponse(logo=service.logo_url(settings))
