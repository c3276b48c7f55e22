import asyncio
from typing import Any, Callable, Optional

from supabase import Client, create_client

from gallery.core.exceptions import AlreadyExists, BackendUnavailable, NotFound
from gallery.services.storage_service import BlobStore, check_segment, split_ref
from gallery.services.types import StoredObject
from gallery.utils.logger import get_logger, log_storage_operation

logger = get_logger(__name__)


def _is_duplicate(error: Optional[BaseException]) -> bool:
    # storage errors carry the HTTP payload, e.g. {"statusCode": 409, "error": "Duplicate"}
    text = str(error)
    return "Duplicate" in text or "already exists" in text


class SupabaseBlobStore(BlobStore):
    """
    Blobs in a Supabase Storage bucket, addressed as ``<namespace>/<key>``.

    The supabase client is synchronous, so every call runs in a worker
    thread. The bucket must be public for the returned URLs to resolve.
    Listing on hosted storage may lag a write; callers must not assume
    read-after-write visibility.
    """

    backend_name = "supabase"
    default_max_upload_bytes = 5 * 1024 * 1024
    list_page_size = 100

    def __init__(self, url: Optional[str], key: Optional[str], bucket: str = "photos",
                 max_upload_bytes: Optional[int] = None, client: Optional[Client] = None):
        super().__init__(max_upload_bytes)
        self.url = url
        self.key = key
        self.bucket = bucket
        self._client = client

    async def initialize(self) -> None:
        if self._client is None:
            if not self.url or not self.key:
                logger.warning("Supabase storage is not configured: SUPABASE_URL or key missing")
                return
            self._client = create_client(self.url, self.key)
        logger.info(f"Supabase blob store using bucket '{self.bucket}'")

    async def close(self) -> None:
        self._client = None

    def _bucket(self):
        if self._client is None:
            raise BackendUnavailable("Supabase storage is not configured")
        return self._client.storage.from_(self.bucket)

    async def _call(self, operation: str, ref: str, call: Callable[[Any], Any]) -> Any:
        bucket = self._bucket()
        try:
            return await asyncio.to_thread(call, bucket)
        except Exception as e:
            self._record(operation, "error")
            logger.error(f"Supabase {operation} failed for {ref}: {e}")
            raise BackendUnavailable(f"Supabase storage {operation} failed for {ref}") from e

    async def _write(self, namespace: str, key: str, data: bytes, content_type: str, overwrite: bool) -> None:
        ref = f"{namespace}/{key}"
        file_options = {"content-type": content_type, "upsert": "true" if overwrite else "false"}
        try:
            await self._call("put", ref, lambda bucket: bucket.upload(ref, data, file_options))
        except BackendUnavailable as e:
            if not overwrite and _is_duplicate(e.__cause__):
                raise AlreadyExists(f"{ref} already exists") from e.__cause__
            raise

    async def _list_page(self, tenant_id: str, offset: int):
        options = {
            "limit": self.list_page_size,
            "offset": offset,
            "sortBy": {"column": "name", "order": "asc"},
        }
        return await self._call("list", tenant_id, lambda bucket: bucket.list(tenant_id, options))

    async def list(self, tenant_id: str):
        check_segment(tenant_id)
        objects = []
        offset = 0
        while True:
            page = await self._list_page(tenant_id, offset) or []
            for item in page:
                name = item.get("name") or ""
                # folders come back without an id; placeholders start with a dot
                if item.get("id") is None or name.startswith("."):
                    continue
                metadata = item.get("metadata") or {}
                objects.append(StoredObject(
                    tenant_id,
                    name,
                    content_type=metadata.get("mimetype"),
                    size_bytes=metadata.get("size"),
                ))
            if len(page) < self.list_page_size:
                break
            offset += self.list_page_size
        objects.sort(key=lambda obj: obj.key)
        return objects

    async def get(self, namespace: str, key: str) -> tuple[bytes, str]:
        ref = f"{namespace}/{key}"
        split_ref(ref)
        match = next((obj for obj in await self.list(namespace) if obj.key == key), None)
        if match is None:
            raise NotFound(f"{ref} does not exist")
        data = await self._call("get", ref, lambda bucket: bucket.download(ref))
        return data, match.content_type or "application/octet-stream"

    async def delete(self, tenant_id: str, key: str) -> None:
        ref = f"{tenant_id}/{key}"
        split_ref(ref)
        # removing a missing object is not an error on Supabase
        await self._call("delete", ref, lambda bucket: bucket.remove([ref]))
        self._record("delete", "success")
        log_storage_operation(logger, "DELETE", self.backend_name, ref)

    async def delete_all(self, tenant_id: str) -> None:
        objects = await self.list(tenant_id)
        refs = [obj.ref for obj in objects]
        for start in range(0, len(refs), self.list_page_size):
            batch = refs[start:start + self.list_page_size]
            await self._call("delete_all", tenant_id, lambda bucket, batch=batch: bucket.remove(batch))
        self._record("delete_all", "success")
        log_storage_operation(logger, "DELETE_ALL", self.backend_name, tenant_id, count=len(refs))

    def public_path(self, ref: str) -> str:
        return self._bucket().get_public_url(ref).rstrip("?")

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            await asyncio.to_thread(self._client.storage.get_bucket, self.bucket)
            return True
        except Exception as e:
            logger.warning(f"Supabase ping failed: {e}")
            return False
