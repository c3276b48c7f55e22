from typing import List
from fastapi import APIRouter, Depends
from gallery.core.auth import get_access_gate, get_media_service, require_admin
from gallery.core.exceptions import Unauthorized
from gallery.core.security import AccessGate
from gallery.services.media_service import MediaStoreService
from gallery.utils.dto.settings import VerifyRequest
from gallery.utils.dto.tenant import TenantCreate, TenantResponse
from gallery.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.post("/verify", summary="Check the admin password")
async def verify_password(payload: VerifyRequest, gate: AccessGate = Depends(get_access_gate)):
    if not gate.verify(payload.password):
        raise Unauthorized("Incorrect password")
    return {"success": True}


@router.get("/clients", response_model=List[TenantResponse], dependencies=[Depends(require_admin)])
async def list_clients(service: MediaStoreService = Depends(get_media_service)):
    """List clients, most recent first."""
    return await service.list_tenants()


@router.post("/clients", response_model=TenantResponse, dependencies=[Depends(require_admin)])
async def create_client(payload: TenantCreate, service: MediaStoreService = Depends(get_media_service)):
    return await service.create_tenant(payload.name)


@router.delete("/clients/{client_id}", dependencies=[Depends(require_admin)])
async def delete_client(client_id: str, service: MediaStoreService = Depends(get_media_service)):
    """Delete a client and every photo it owns. Deleting an unknown client succeeds."""
    await service.delete_tenant(client_id)
    return {"success": True}
