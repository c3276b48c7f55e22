"""Shared fixtures: a filesystem blob store and an SQLite metadata store under tmp_path."""

import pytest
import pytest_asyncio

from gallery.services.media_service import MediaStoreService
from gallery.services.metadata_store import MetadataStore
from gallery.services.storage_service import LocalBlobStore
from gallery.services.types import UploadItem

JPEG_HEADER = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00"
PNG_HEADER = b"\x89PNG\r\n\x1a\n"
WEBP_HEADER = b"RIFF\x24\x00\x00\x00WEBPVP8 "


@pytest.fixture
def make_upload():
    """Build an in-memory upload; the body defaults to a tiny jpeg-looking payload."""
    headers = {"image/jpeg": JPEG_HEADER, "image/png": PNG_HEADER, "image/webp": WEBP_HEADER}

    def _make(filename="photo.jpg", content_type="image/jpeg", body=b"pixels", size=None):
        data = headers.get(content_type, b"") + body
        if size is not None:
            data = data.ljust(size, b"\x00")
        return UploadItem(filename=filename, content_type=content_type, data=data)

    return _make


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(tmp_path / "uploads", media_route="/api/v1/photos")


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'gallery.db'}"


@pytest_asyncio.fixture
async def metadata_store(database_url):
    store = MetadataStore(database_url)
    await store.initialize()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def service(blob_store, database_url):
    media_service = MediaStoreService(blob_store=blob_store, metadata_store=MetadataStore(database_url))
    await media_service.initialize()
    yield media_service
    await media_service.close()
