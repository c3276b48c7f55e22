from fastapi import APIRouter
from gallery.api.v1.routes import tenants, uploads, gallery, settings, health

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(tenants.router, prefix="/admin", tags=["Clients"])
api_router.include_router(uploads.router, prefix="/admin", tags=["Photos"])
api_router.include_router(gallery.router, tags=["Gallery"])
api_router.include_router(settings.router, tags=["Settings"])
api_router.include_router(health.router, prefix="/health", tags=["Health"])
