from typing import Optional

from gallery.services.storage_service import BlobStore


class PublicUrlResolver:
    """
    Maps a stored ``namespace/key`` reference to a URL an unauthenticated
    viewer can fetch. Relative paths from the blob store are made absolute
    when a public base URL is configured.
    """

    def __init__(self, blob_store: BlobStore, base_url: Optional[str] = None):
        self.blob_store = blob_store
        self.base_url = base_url.rstrip("/") if base_url else None

    def resolve(self, ref: str) -> str:
        path = self.blob_store.public_path(ref)
        if self.base_url and path.startswith("/"):
            return f"{self.base_url}{path}"
        return path

    def resolve_optional(self, ref: Optional[str]) -> Optional[str]:
        return self.resolve(ref) if ref else None
