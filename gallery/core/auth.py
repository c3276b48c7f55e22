from typing import Optional
from fastapi import Depends, Header, Request
from gallery.core.exceptions import Unauthorized
from gallery.core.security import AccessGate
from gallery.services.media_service import MediaStoreService


def get_access_gate(request: Request) -> AccessGate:
    return request.app.state.access_gate


def get_media_service(request: Request) -> MediaStoreService:
    return request.app.state.media_service


async def require_admin(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    gate: AccessGate = Depends(get_access_gate),
) -> None:
    """
    Reject the request unless it carries ``Authorization: Bearer <admin password>``
    """
    if not gate.verify_bearer(authorization):
        raise Unauthorized("Unauthorized")
