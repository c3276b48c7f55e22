import asyncio
import mimetypes
import re
import shutil
import tempfile
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from uuid import uuid4

import aiofiles
import aiofiles.os

from gallery.core.exceptions import AlreadyExists, BackendUnavailable, FileTooLarge, NotFound, UnsupportedType
from gallery.services.types import ALLOWED_CONTENT_TYPES, StoredObject
from gallery.utils.logger import get_logger, log_storage_operation
from gallery.utils.metrics import storage_operations

logger = get_logger(__name__)

UPLOAD_DIR = Path("uploads")
TEMP_UPLOAD_DIR = Path(tempfile.gettempdir()) / "client-gallery"

BRANDING_LOGO_REF = "_branding/logo"

_SEGMENT = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9._-]{0,127}$")

_MAGIC_NUMBERS = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
)


def sniff_image_type(data: bytes) -> Optional[str]:
    """Detect jpeg/png/webp from the leading bytes of a file."""
    for magic, content_type in _MAGIC_NUMBERS:
        if data.startswith(magic):
            return content_type
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def guess_content_type(name: str) -> Optional[str]:
    """Content type implied by a file name, preferring the extensions we write."""
    suffix = Path(name).suffix.lower()
    for content_type, extension in ALLOWED_CONTENT_TYPES.items():
        if suffix == extension:
            return content_type
    return mimetypes.guess_type(name)[0]


def split_ref(ref: str) -> tuple[str, str]:
    """Split a ``namespace/key`` reference, rejecting anything path-like."""
    namespace, _, key = ref.partition("/")
    check_segment(namespace)
    check_segment(key)
    return namespace, key


def check_segment(segment: str) -> str:
    if not segment or not _SEGMENT.match(segment) or ".." in segment:
        raise NotFound(f"Invalid storage reference: {segment!r}")
    return segment


class AssetKeyGenerator:
    """
    Produces asset keys that sort in upload order.

    Keys look like ``<16-digit microsecond stamp>-<6 hex><ext>``. The stamp is
    bumped when the clock has not advanced, so two keys handed out by the
    same generator never tie.
    """

    def __init__(self):
        self._last_stamp = 0
        self._lock = threading.Lock()

    def _next_stamp(self) -> int:
        with self._lock:
            stamp = max(time.time_ns() // 1000, self._last_stamp + 1)
            self._last_stamp = stamp
            return stamp

    def new_key(self, content_type: str) -> str:
        extension = ALLOWED_CONTENT_TYPES.get(content_type, "")
        return f"{self._next_stamp():016d}-{uuid4().hex[:6]}{extension}"


class BlobStore(ABC):
    """
    Persists binary assets under ``namespace/key`` references.

    A namespace is a tenant id (or the reserved branding namespace). The store
    knows nothing about tenants as entities. Deletes are idempotent and every
    variant lists a namespace sorted by key.
    """

    backend_name = "base"
    default_max_upload_bytes = 10 * 1024 * 1024

    def __init__(self, max_upload_bytes: Optional[int] = None):
        self.max_upload_bytes = max_upload_bytes or self.default_max_upload_bytes

    def validate(self, content_type: str, size_bytes: int) -> None:
        """Raise before anything is persisted when a file breaks the upload policy."""
        if content_type not in ALLOWED_CONTENT_TYPES:
            raise UnsupportedType(
                f"Content type {content_type!r} is not allowed",
                details={"allowed": sorted(ALLOWED_CONTENT_TYPES)},
            )
        if size_bytes > self.max_upload_bytes:
            raise FileTooLarge(
                f"File is {size_bytes} bytes, the limit is {self.max_upload_bytes}",
                details={"max_bytes": self.max_upload_bytes},
            )

    async def put(self, tenant_id: str, key: str, data: bytes, content_type: str) -> StoredObject:
        self.validate(content_type, len(data))
        check_segment(tenant_id)
        check_segment(key)
        await self._write(tenant_id, key, data, content_type, overwrite=False)
        self._record("put", "success")
        log_storage_operation(logger, "PUT", self.backend_name, f"{tenant_id}/{key}", size=len(data))
        return StoredObject(tenant_id, key, content_type=content_type, size_bytes=len(data))

    async def put_singleton(self, fixed_key: str, data: bytes, content_type: str) -> StoredObject:
        """Write ``data`` at a fixed reference, replacing whatever was there."""
        self.validate(content_type, len(data))
        # filesystem backends serve the type sniffed from the bytes
        if sniff_image_type(data) != content_type:
            raise UnsupportedType(
                f"File contents do not match the declared type {content_type!r}",
                details={"allowed": sorted(ALLOWED_CONTENT_TYPES)},
            )
        namespace, key = split_ref(fixed_key)
        await self._write(namespace, key, data, content_type, overwrite=True)
        self._record("put_singleton", "success")
        log_storage_operation(logger, "UPSERT", self.backend_name, fixed_key, size=len(data))
        return StoredObject(namespace, key, content_type=content_type, size_bytes=len(data))

    def _record(self, operation: str, status: str) -> None:
        storage_operations.labels(backend=self.backend_name, operation=operation, status=status).inc()

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def _write(self, namespace: str, key: str, data: bytes, content_type: str, overwrite: bool) -> None:
        ...

    @abstractmethod
    async def list(self, tenant_id: str) -> list[StoredObject]:
        ...

    @abstractmethod
    async def get(self, namespace: str, key: str) -> tuple[bytes, str]:
        """Return ``(data, content_type)`` or raise NotFound."""

    @abstractmethod
    async def delete(self, tenant_id: str, key: str) -> None:
        ...

    @abstractmethod
    async def delete_all(self, tenant_id: str) -> None:
        ...

    @abstractmethod
    def public_path(self, ref: str) -> str:
        """URL (absolute, or relative to the host) an anonymous viewer can fetch."""

    @abstractmethod
    async def ping(self) -> bool:
        ...


class LocalBlobStore(BlobStore):
    """Blobs as files under ``root/<namespace>/<key>``, served back by the media route."""

    backend_name = "local"

    def __init__(self, root: Path = UPLOAD_DIR, media_route: str = "/api/v1/photos",
                 max_upload_bytes: Optional[int] = None):
        super().__init__(max_upload_bytes)
        self.root = Path(root)
        self.media_route = media_route.rstrip("/")

    async def initialize(self) -> None:
        await aiofiles.os.makedirs(self.root, exist_ok=True)
        logger.info(f"{self.backend_name} blob store rooted at {self.root.resolve()}")

    def _path(self, namespace: str, key: Optional[str] = None) -> Path:
        path = self.root / check_segment(namespace)
        if key is not None:
            path = path / check_segment(key)
        return path

    async def _write(self, namespace: str, key: str, data: bytes, content_type: str, overwrite: bool) -> None:
        file_path = self._path(namespace, key)
        partial_path = file_path.with_name(f".{key}.part")
        if not overwrite and await aiofiles.os.path.exists(file_path):
            self._record("put", "error")
            raise AlreadyExists(f"{namespace}/{key} already exists")
        try:
            await aiofiles.os.makedirs(file_path.parent, exist_ok=True)
            async with aiofiles.open(partial_path, "wb") as buffer:
                await buffer.write(data)
            await aiofiles.os.replace(partial_path, file_path)
        except OSError as e:
            self._record("put", "error")
            logger.error(f"Failed to write {namespace}/{key}: {e}")
            raise BackendUnavailable(f"Could not write {namespace}/{key} to local storage") from e

    async def list(self, tenant_id: str) -> list[StoredObject]:
        directory = self._path(tenant_id)
        try:
            if not await aiofiles.os.path.isdir(directory):
                return []
            names = await aiofiles.os.listdir(directory)
        except OSError as e:
            raise BackendUnavailable(f"Could not list {tenant_id} in local storage") from e

        objects = []
        for name in sorted(names):
            if name.startswith("."):
                continue
            try:
                stat = await aiofiles.os.stat(directory / name)
            except FileNotFoundError:
                # removed by a concurrent delete
                continue
            content_type = guess_content_type(name)
            objects.append(StoredObject(tenant_id, name, content_type=content_type, size_bytes=stat.st_size))
        return objects

    async def get(self, namespace: str, key: str) -> tuple[bytes, str]:
        file_path = self._path(namespace, key)
        try:
            async with aiofiles.open(file_path, "rb") as f:
                data = await f.read()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            raise NotFound(f"{namespace}/{key} does not exist")
        except OSError as e:
            raise BackendUnavailable(f"Could not read {namespace}/{key} from local storage") from e
        content_type = guess_content_type(key) or sniff_image_type(data) or "application/octet-stream"
        return data, content_type

    async def delete(self, tenant_id: str, key: str) -> None:
        try:
            await aiofiles.os.remove(self._path(tenant_id, key))
        except FileNotFoundError:
            return
        except OSError as e:
            self._record("delete", "error")
            raise BackendUnavailable(f"Could not delete {tenant_id}/{key} from local storage") from e
        self._record("delete", "success")
        log_storage_operation(logger, "DELETE", self.backend_name, f"{tenant_id}/{key}")

    async def delete_all(self, tenant_id: str) -> None:
        directory = self._path(tenant_id)
        try:
            await asyncio.to_thread(shutil.rmtree, directory)
        except FileNotFoundError:
            return
        except OSError as e:
            self._record("delete_all", "error")
            raise BackendUnavailable(f"Could not delete {tenant_id} from local storage") from e
        self._record("delete_all", "success")
        log_storage_operation(logger, "DELETE_ALL", self.backend_name, tenant_id)

    def public_path(self, ref: str) -> str:
        return f"{self.media_route}/{ref}"

    async def ping(self) -> bool:
        return await aiofiles.os.path.isdir(self.root)


class TempBlobStore(LocalBlobStore):
    """Same layout as the local store, rooted somewhere that may be wiped on restart."""

    backend_name = "temp"

    def __init__(self, root: Path = TEMP_UPLOAD_DIR, media_route: str = "/api/v1/photos",
                 max_upload_bytes: Optional[int] = None):
        super().__init__(root, media_route, max_upload_bytes)

    async def initialize(self) -> None:
        await super().initialize()
        logger.warning("Using ephemeral storage: uploaded photos will not survive a restart")


def build_blob_store(settings) -> BlobStore:
    """Pick the BlobStore variant named by ``STORAGE_BACKEND``."""
    backend = settings.STORAGE_BACKEND
    if backend == "supabase":
        from gallery.services.supabase_storage import SupabaseBlobStore

        return SupabaseBlobStore(
            url=settings.SUPABASE_URL,
            key=settings.supabase_key,
            bucket=settings.SUPABASE_BUCKET,
            max_upload_bytes=settings.MAX_UPLOAD_BYTES,
        )
    if backend == "temp":
        return TempBlobStore(settings.TEMP_UPLOAD_DIR, settings.MEDIA_ROUTE, settings.MAX_UPLOAD_BYTES)
    return LocalBlobStore(settings.UPLOAD_DIR, settings.MEDIA_ROUTE, settings.MAX_UPLOAD_BYTES)
