from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


@dataclass(frozen=True)
class Tenant:
    id: str
    name: str
    created_at: datetime


@dataclass(frozen=True)
class UploadItem:
    """One file handed to the media store, already read into memory.

    ``declared_size`` stands in for the length of ``data`` when the host
    refused to read an oversized part.
    """

    filename: str
    content_type: str
    data: bytes
    declared_size: Optional[int] = None

    @property
    def size_bytes(self) -> int:
        if self.declared_size is not None:
            return self.declared_size
        return len(self.data)


@dataclass(frozen=True)
class StoredObject:
    """A blob as reported by a BlobStore.

    ``ref`` is the full ``namespace/key`` reference, ``key`` the part unique
    within the namespace.
    """

    namespace: str
    key: str
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None

    @property
    def ref(self) -> str:
        return f"{self.namespace}/{self.key}"


@dataclass(frozen=True)
class Asset:
    key: str
    tenant_id: str
    url: str
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None


@dataclass(frozen=True)
class BrandingSettings:
    logo_key: Optional[str] = None


@dataclass
class UploadResult:
    filename: str
    key: Optional[str] = None
    url: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class UploadReport:
    tenant_id: str
    results: list[UploadResult] = field(default_factory=list)

    @property
    def uploaded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)


@dataclass(frozen=True)
class GalleryView:
    tenant: Tenant
    assets: list[Asset]
