from fastapi import APIRouter, Depends, Response
from gallery.core.auth import get_media_service
from gallery.services.media_service import MediaStoreService
from gallery.utils.dto.gallery import GalleryResponse, PhotoResponse

router = APIRouter()


@router.get("/client/{client_id}", response_model=GalleryResponse, summary="Public gallery for one client")
async def get_gallery(client_id: str, service: MediaStoreService = Depends(get_media_service)):
    view = await service.list_gallery(client_id)
    return GalleryResponse(
        id=view.tenant.id,
        name=view.tenant.name,
        created_at=view.tenant.created_at,
        photos=[
            PhotoResponse(
                position=position,
                key=asset.key,
                url=asset.url,
                content_type=asset.content_type,
                size_bytes=asset.size_bytes,
            )
            for position, asset in enumerate(view.assets, start=1)
        ],
    )


@router.get("/photos/{namespace}/{key}", summary="Serve a stored photo")
async def get_photo(namespace: str, key: str, service: MediaStoreService = Depends(get_media_service)):
    data, content_type = await service.open_asset(namespace, key)
    return Response(content=data, media_type=content_type, headers={"Content-Disposition": "inline"})
