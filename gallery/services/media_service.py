"""
Tenant and asset lifecycle on top of a BlobStore and a MetadataStore.

Asset existence is never mirrored into the metadata store: a tenant's photos
are whatever its blob namespace lists. Tenant deletion removes blobs before
the metadata record, so an interrupted delete leaves at worst a record with
no photos, which a repeated delete cleans up.

Quota checks read a count and then write. Within one service instance the
check-then-act sequences are serialized (one lock for tenant creation, one
lock per tenant for its assets), so the caps are strict inside a process.
Several processes sharing the same backends can still race past them.
"""

import asyncio
import re
import weakref
from typing import Optional, Sequence

from gallery.core.exceptions import BadRequest, InternalError, MediaStoreError, NotFound, QuotaExceeded
from gallery.services.metadata_store import MetadataStore
from gallery.services.quota import QuotaEnforcer
from gallery.services.storage_service import BRANDING_LOGO_REF, AssetKeyGenerator, BlobStore, build_blob_store
from gallery.services.types import (
    Asset,
    BrandingSettings,
    GalleryView,
    Tenant,
    UploadItem,
    UploadReport,
    UploadResult,
)
from gallery.services.url_resolver import PublicUrlResolver
from gallery.utils.logger import get_logger
from gallery.utils.metrics import tenants_deleted_total, uploads_total

logger = get_logger(__name__)

# tenant ids never start with "_", which keeps them clear of the branding namespace
TENANT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9-]{0,63}$")


class MediaStoreService:
    def __init__(
        self,
        blob_store: BlobStore,
        metadata_store: MetadataStore,
        quota: Optional[QuotaEnforcer] = None,
        url_resolver: Optional[PublicUrlResolver] = None,
        expose_known_ids: bool = True,
    ):
        self.blob_store = blob_store
        self.metadata_store = metadata_store
        self.quota = quota or QuotaEnforcer()
        self.url_resolver = url_resolver or PublicUrlResolver(blob_store)
        self.expose_known_ids = expose_known_ids
        self.keys = AssetKeyGenerator()

        self._create_lock = asyncio.Lock()
        self._branding_lock = asyncio.Lock()
        # an entry lives only while some call holds or awaits that lock
        self._tenant_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    async def initialize(self) -> None:
        await self.metadata_store.initialize()
        await self.blob_store.initialize()
        logger.info(f"Media store ready (storage backend: {self.blob_store.backend_name})")

    async def close(self) -> None:
        try:
            await self.blob_store.close()
        finally:
            await self.metadata_store.close()

    def _tenant_lock(self, tenant_id: str) -> asyncio.Lock:
        lock = self._tenant_locks.get(tenant_id)
        if lock is None:
            lock = asyncio.Lock()
            self._tenant_locks[tenant_id] = lock
        return lock

    @staticmethod
    def _check_tenant_id(tenant_id: str) -> str:
        if not TENANT_ID_PATTERN.match(tenant_id or ""):
            raise NotFound(f"Invalid tenant id: {tenant_id!r}")
        return tenant_id

    # Tenants

    async def create_tenant(self, name: str) -> Tenant:
        name = (name or "").strip()
        if not name:
            raise BadRequest("Client name must not be blank")
        async with self._create_lock:
            count = await self.metadata_store.count_tenants()
            if not self.quota.can_create_tenant(count):
                logger.warning(f"Refusing to create tenant '{name}': {count} tenants exist")
                raise QuotaExceeded(
                    f"Limit of {self.quota.max_tenants} clients reached",
                    details={"limit": self.quota.max_tenants},
                )
            tenant = await self.metadata_store.create_tenant(name)

        logger.info(f"Created tenant {tenant.id} ('{tenant.name}')")
        return tenant

    async def list_tenants(self) -> list[Tenant]:
        return await self.metadata_store.list_tenants()

    async def delete_tenant(self, tenant_id: str) -> None:
        """Remove every blob of the tenant, then its record. Safe to repeat."""
        self._check_tenant_id(tenant_id)
        async with self._tenant_lock(tenant_id):
            objects = await self.blob_store.list(tenant_id)
            await self.blob_store.delete_all(tenant_id)
            await self.metadata_store.delete_tenant(tenant_id)

        tenants_deleted_total.inc()
        logger.info(f"Deleted tenant {tenant_id} and {len(objects)} photos")

    # Assets

    async def upload_assets(self, tenant_id: str, files: Sequence[UploadItem]) -> UploadReport:
        """
        Store ``files`` in order, one at a time.

        Each file is validated, then checked against the per-tenant cap using
        a count that includes the files already stored by this same call.
        Failures are recorded per file and never undo earlier files.
        """
        self._check_tenant_id(tenant_id)

        report = UploadReport(tenant_id=tenant_id)
        async with self._tenant_lock(tenant_id):
            # checked under the lock so a concurrent delete cannot leave orphans
            await self.metadata_store.get_tenant(tenant_id)
            current_count = len(await self.blob_store.list(tenant_id))
            logger.debug(
                f"Uploading {len(files)} files to {tenant_id}, "
                f"{self.quota.remaining_assets(current_count)} slots left"
            )
            for item in files:
                result = UploadResult(filename=item.filename)
                try:
                    self.blob_store.validate(item.content_type, item.size_bytes)
                    if not self.quota.can_upload_assets(current_count, 1):
                        raise QuotaExceeded(
                            f"Limit of {self.quota.max_assets_per_tenant} photos reached",
                            details={"limit": self.quota.max_assets_per_tenant},
                        )
                    key = self.keys.new_key(item.content_type)
                    stored = await self.blob_store.put(tenant_id, key, item.data, item.content_type)
                except MediaStoreError as e:
                    result.error = e
                    logger.warning(f"Upload of '{item.filename}' to {tenant_id} failed: {e.kind}: {e.message}")
                except Exception as e:
                    logger.exception(f"Unexpected error uploading '{item.filename}' to {tenant_id}")
                    result.error = InternalError(f"Unexpected error storing {item.filename}: {e}")
                else:
                    current_count += 1
                    result.key = stored.key
                    result.url = self.url_resolver.resolve(stored.ref)
                uploads_total.labels(outcome="stored" if result.ok else result.error.kind).inc()
                report.results.append(result)

        logger.info(f"Upload to {tenant_id}: {report.uploaded} stored, {report.failed} failed")
        return report

    async def delete_asset(self, tenant_id: str, key: str) -> None:
        self._check_tenant_id(tenant_id)
        async with self._tenant_lock(tenant_id):
            await self.blob_store.delete(tenant_id, key)
        logger.info(f"Deleted photo {tenant_id}/{key}")

    async def list_gallery(self, tenant_id: str) -> GalleryView:
        """Public read path: the tenant and its photos in listing order."""
        tenant_id = (tenant_id or "").strip()
        try:
            self._check_tenant_id(tenant_id)
            tenant = await self.metadata_store.get_tenant(tenant_id)
        except NotFound:
            details = {}
            if self.expose_known_ids:
                details["known_ids"] = [t.id for t in await self.metadata_store.list_tenants()]
            raise NotFound("Gallery not found", details=details) from None

        objects = await self.blob_store.list(tenant_id)
        assets = [
            Asset(
                key=obj.key,
                tenant_id=tenant_id,
                url=self.url_resolver.resolve(obj.ref),
                content_type=obj.content_type,
                size_bytes=obj.size_bytes,
            )
            for obj in objects
        ]
        return GalleryView(tenant=tenant, assets=assets)

    async def open_asset(self, namespace: str, key: str) -> tuple[bytes, str]:
        return await self.blob_store.get(namespace, key)

    # Branding

    async def get_settings(self) -> BrandingSettings:
        return await self.metadata_store.get_settings()

    def logo_url(self, settings: BrandingSettings) -> Optional[str]:
        return self.url_resolver.resolve_optional(settings.logo_key)

    async def update_branding(self, logo: UploadItem) -> BrandingSettings:
        self.blob_store.validate(logo.content_type, logo.size_bytes)
        async with self._branding_lock:
            stored = await self.blob_store.put_singleton(BRANDING_LOGO_REF, logo.data, logo.content_type)
            settings = await self.metadata_store.upsert_settings({"logo_key": stored.ref})
        logger.info(f"Branding logo updated ({logo.content_type}, {logo.size_bytes} bytes)")
        return settings

    async def health(self) -> dict:
        return {
            "storage_backend": self.blob_store.backend_name,
            "storage_connected": await self.blob_store.ping(),
            "database_connected": await self.metadata_store.ping(),
        }


def create_media_service(settings) -> MediaStoreService:
    blob_store = build_blob_store(settings)
    return MediaStoreService(
        blob_store=blob_store,
        metadata_store=MetadataStore(settings.DATABASE_URL),
        url_resolver=PublicUrlResolver(blob_store, settings.PUBLIC_BASE_URL),
        expose_known_ids=settings.NOT_FOUND_DEBUG,
    )
