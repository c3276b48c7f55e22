"""Behavioral tests for the media store service on the filesystem backend."""

import asyncio
import gc

import pytest

from gallery.core.exceptions import (
    BackendUnavailable,
    BadRequest,
    FileTooLarge,
    InternalError,
    NotFound,
    QuotaExceeded,
    UnsupportedType,
)
from gallery.services.media_service import MediaStoreService
from gallery.services.metadata_store import MetadataStore
from gallery.services.storage_service import LocalBlobStore
from gallery.services.types import UploadItem
from gallery.services.url_resolver import PublicUrlResolver


class FlakyBlobStore(LocalBlobStore):
    """Fails the put of any file whose body contains b"boom"."""

    async def _write(self, namespace, key, data, content_type, overwrite):
        if b"boom" in data:
            raise BackendUnavailable("storage timed out")
        await super()._write(namespace, key, data, content_type, overwrite)


class TestTenantQuota:
    @pytest.mark.asyncio
    async def test_fifth_tenant_is_rejected_and_nothing_is_created(self, service):
        for i in range(4):
            await service.create_tenant(f"client {i}")

        with pytest.raises(QuotaExceeded) as exc_info:
            await service.create_tenant("one too many")

        assert exc_info.value.kind == "quota_exceeded"
        tenants = await service.list_tenants()
        assert len(tenants) == 4
        assert "one too many" not in [t.name for t in tenants]

    @pytest.mark.asyncio
    async def test_concurrent_creates_never_exceed_cap(self, service):
        results = await asyncio.gather(
            *(service.create_tenant(f"client {i}") for i in range(6)),
            return_exceptions=True,
        )

        created = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, QuotaExceeded)]
        assert len(created) == 4
        assert len(rejected) == 2
        assert len(await service.list_tenants()) == 4

    @pytest.mark.asyncio
    async def test_deleting_frees_a_slot(self, service):
        tenants = [await service.create_tenant(f"client {i}") for i in range(4)]
        await service.delete_tenant(tenants[0].id)

        replacement = await service.create_tenant("replacement")
        assert replacement.id not in [t.id for t in tenants]

    @pytest.mark.asyncio
    async def test_name_is_trimmed(self, service):
        tenant = await service.create_tenant("  Ana  ")
        assert tenant.name == "Ana"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["", "   ", "\t\n"])
    async def test_blank_name_takes_no_slot(self, service, name):
        with pytest.raises(BadRequest):
            await service.create_tenant(name)
        assert await service.list_tenants() == []


class TestUploadQuota:
    @pytest.mark.asyncio
    async def test_batch_is_cut_at_cap_in_submission_order(self, service, make_upload):
        tenant = await service.create_tenant("Ana")
        await service.upload_assets(tenant.id, [make_upload(f"old{i}.jpg") for i in range(28)])

        batch = [make_upload(f"new{i}.jpg") for i in range(5)]
        report = await service.upload_assets(tenant.id, batch)

        assert report.uploaded == 2
        assert report.failed == 3
        assert [r.filename for r in report.results if r.ok] == ["new0.jpg", "new1.jpg"]
        assert all(isinstance(r.error, QuotaExceeded) for r in report.results if not r.ok)
        assert len((await service.list_gallery(tenant.id)).assets) == 30

    @pytest.mark.asyncio
    @pytest.mark.parametrize("existing,incoming", [(0, 31), (10, 25), (29, 1), (30, 3)])
    async def test_successes_are_min_of_batch_and_room(self, service, make_upload, existing, incoming):
        tenant = await service.create_tenant("Ana")
        if existing:
            await service.upload_assets(tenant.id, [make_upload() for _ in range(existing)])

        report = await service.upload_assets(tenant.id, [make_upload() for _ in range(incoming)])

        assert report.uploaded == min(incoming, 30 - existing)
        assert existing + report.uploaded <= 30

    @pytest.mark.asyncio
    async def test_concurrent_batches_share_the_cap(self, service, make_upload):
        tenant = await service.create_tenant("Ana")

        reports = await asyncio.gather(
            service.upload_assets(tenant.id, [make_upload() for _ in range(20)]),
            service.upload_assets(tenant.id, [make_upload() for _ in range(20)]),
        )

        assert sum(r.uploaded for r in reports) == 30
        assert len((await service.list_gallery(tenant.id)).assets) == 30

    @pytest.mark.asyncio
    async def test_rejected_files_do_not_count_against_quota(self, service, make_upload):
        tenant = await service.create_tenant("Ana")
        await service.upload_assets(tenant.id, [make_upload() for _ in range(29)])

        report = await service.upload_assets(
            tenant.id,
            [make_upload("notes.txt", content_type="text/plain"), make_upload("last.jpg")],
        )

        assert isinstance(report.results[0].error, UnsupportedType)
        assert report.results[1].ok


class TestUploadValidation:
    @pytest.mark.asyncio
    async def test_text_file_is_rejected_and_never_listed(self, service, make_upload):
        tenant = await service.create_tenant("Ana")

        report = await service.upload_assets(tenant.id, [make_upload("notes.txt", content_type="text/plain")])

        assert report.uploaded == 0
        assert report.results[0].error.kind == "unsupported_type"
        assert (await service.list_gallery(tenant.id)).assets == []

    @pytest.mark.asyncio
    async def test_oversized_file_is_rejected(self, tmp_path, database_url, make_upload):
        service = MediaStoreService(
            blob_store=LocalBlobStore(tmp_path / "uploads", max_upload_bytes=1024),
            metadata_store=MetadataStore(database_url),
        )
        await service.initialize()
        try:
            tenant = await service.create_tenant("Ana")
            report = await service.upload_assets(tenant.id, [make_upload(size=2048), make_upload()])

            assert isinstance(report.results[0].error, FileTooLarge)
            assert report.results[1].ok
        finally:
            await service.close()

    @pytest.mark.asyncio
    async def test_unread_oversized_part_is_rejected_by_declared_size(self, service, make_upload):
        tenant = await service.create_tenant("Ana")
        unread = UploadItem(
            filename="huge.jpg",
            content_type="image/jpeg",
            data=b"",
            declared_size=service.blob_store.max_upload_bytes + 1,
        )

        report = await service.upload_assets(tenant.id, [unread, make_upload()])

        assert isinstance(report.results[0].error, FileTooLarge)
        assert report.results[1].ok
        assert len((await service.list_gallery(tenant.id)).assets) == 1

    @pytest.mark.asyncio
    async def test_upload_to_unknown_tenant_is_not_found(self, service, make_upload, blob_store):
        with pytest.raises(NotFound):
            await service.upload_assets("deadbeef", [make_upload()])
        assert await blob_store.list("deadbeef") == []

    @pytest.mark.asyncio
    async def test_reserved_namespace_is_not_a_tenant(self, service, make_upload):
        with pytest.raises(NotFound):
            await service.upload_assets("_branding", [make_upload()])


class TestBackendFailures:
    @pytest.mark.asyncio
    async def test_one_failed_file_does_not_abort_siblings(self, tmp_path, database_url, make_upload):
        service = MediaStoreService(
            blob_store=FlakyBlobStore(tmp_path / "uploads"),
            metadata_store=MetadataStore(database_url),
        )
        await service.initialize()
        try:
            tenant = await service.create_tenant("Ana")
            report = await service.upload_assets(
                tenant.id,
                [make_upload("a.jpg"), make_upload("b.jpg", body=b"boom"), make_upload("c.jpg")],
            )

            assert [r.ok for r in report.results] == [True, False, True]
            assert report.results[1].error.kind == "backend_unavailable"
            assert len((await service.list_gallery(tenant.id)).assets) == 2
        finally:
            await service.close()

    @pytest.mark.asyncio
    async def test_unexpected_error_is_reported_as_internal(self, service, make_upload, monkeypatch):
        tenant = await service.create_tenant("Ana")

        async def explode(*args, **kwargs):
            raise ValueError("disk on fire")

        monkeypatch.setattr(service.blob_store, "_write", explode)
        report = await service.upload_assets(tenant.id, [make_upload()])

        assert isinstance(report.results[0].error, InternalError)


class TestDeleteTenant:
    @pytest.mark.asyncio
    async def test_delete_twice_succeeds(self, service, make_upload, blob_store):
        tenant = await service.create_tenant("Ana")
        await service.upload_assets(tenant.id, [make_upload() for _ in range(3)])

        await service.delete_tenant(tenant.id)
        await service.delete_tenant(tenant.id)

        with pytest.raises(NotFound):
            await service.list_gallery(tenant.id)
        assert await blob_store.list(tenant.id) == []

    @pytest.mark.asyncio
    async def test_retry_after_metadata_failure_completes(self, service, make_upload, blob_store, monkeypatch):
        tenant = await service.create_tenant("Ana")
        await service.upload_assets(tenant.id, [make_upload() for _ in range(3)])

        real_delete = service.metadata_store.delete_tenant

        async def unavailable(tenant_id):
            raise BackendUnavailable("database went away")

        monkeypatch.setattr(service.metadata_store, "delete_tenant", unavailable)
        with pytest.raises(BackendUnavailable):
            await service.delete_tenant(tenant.id)

        # blobs are already gone, the record is dangling but recoverable
        assert await blob_store.list(tenant.id) == []
        assert (await service.metadata_store.get_tenant(tenant.id)).id == tenant.id

        monkeypatch.setattr(service.metadata_store, "delete_tenant", real_delete)
        await service.delete_tenant(tenant.id)
        assert await service.list_tenants() == []

    @pytest.mark.asyncio
    async def test_blob_failure_keeps_metadata(self, service, make_upload, monkeypatch):
        tenant = await service.create_tenant("Ana")
        await service.upload_assets(tenant.id, [make_upload()])

        async def unavailable(tenant_id):
            raise BackendUnavailable("storage went away")

        monkeypatch.setattr(service.blob_store, "delete_all", unavailable)
        with pytest.raises(BackendUnavailable):
            await service.delete_tenant(tenant.id)

        assert [t.id for t in await service.list_tenants()] == [tenant.id]

    @pytest.mark.asyncio
    async def test_delete_unknown_tenant_succeeds(self, service):
        await service.delete_tenant("deadbeef")

    @pytest.mark.asyncio
    async def test_tenant_locks_are_released_once_idle(self, service, make_upload):
        tenant = await service.create_tenant("Ana")
        await service.upload_assets(tenant.id, [make_upload()])
        await service.delete_tenant(tenant.id)
        for tenant_id in ["deadbeef", "cafebabe"]:
            await service.delete_tenant(tenant_id)

        gc.collect()
        assert len(service._tenant_locks) == 0


class TestGallery:
    @pytest.mark.asyncio
    async def test_ana_scenario(self, service, make_upload):
        tenant = await service.create_tenant("Ana")
        report = await service.upload_assets(tenant.id, [make_upload(f"{i}.jpg") for i in range(3)])
        keys = [r.key for r in report.results]

        view = await service.list_gallery(tenant.id)
        assert view.tenant.name == "Ana"
        assert [a.key for a in view.assets] == keys

        await service.delete_asset(tenant.id, keys[1])
        assert [a.key for a in (await service.list_gallery(tenant.id)).assets] == [keys[0], keys[2]]

        await service.delete_tenant(tenant.id)
        with pytest.raises(NotFound):
            await service.list_gallery(tenant.id)

    @pytest.mark.asyncio
    async def test_assets_listed_in_upload_order_with_urls(self, service, make_upload):
        tenant = await service.create_tenant("Ana")
        report = await service.upload_assets(
            tenant.id, [make_upload("z.png", content_type="image/png"), make_upload("a.webp", content_type="image/webp")]
        )

        assets = (await service.list_gallery(tenant.id)).assets
        assert [a.key for a in assets] == [r.key for r in report.results]
        assert assets[0].url == f"/api/v1/photos/{tenant.id}/{assets[0].key}"
        assert assets[0].content_type == "image/png"
        assert assets[1].content_type == "image/webp"

    @pytest.mark.asyncio
    async def test_delete_asset_is_idempotent(self, service, make_upload):
        tenant = await service.create_tenant("Ana")
        report = await service.upload_assets(tenant.id, [make_upload()])

        await service.delete_asset(tenant.id, report.results[0].key)
        await service.delete_asset(tenant.id, report.results[0].key)

    @pytest.mark.asyncio
    async def test_not_found_lists_known_ids(self, service):
        tenant = await service.create_tenant("Ana")

        with pytest.raises(NotFound) as exc_info:
            await service.list_gallery("deadbeef")

        assert exc_info.value.details == {"known_ids": [tenant.id]}

    @pytest.mark.asyncio
    async def test_not_found_debug_can_be_disabled(self, blob_store, database_url):
        service = MediaStoreService(blob_store, MetadataStore(database_url), expose_known_ids=False)
        await service.initialize()
        try:
            with pytest.raises(NotFound) as exc_info:
                await service.list_gallery("deadbeef")
            assert exc_info.value.details == {}
        finally:
            await service.close()

    @pytest.mark.asyncio
    async def test_open_asset_round_trip(self, service, make_upload):
        tenant = await service.create_tenant("Ana")
        item = make_upload(body=b"unique-bytes")
        report = await service.upload_assets(tenant.id, [item])

        data, content_type = await service.open_asset(tenant.id, report.results[0].key)
        assert data == item.data
        assert content_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_public_base_url_makes_urls_absolute(self, blob_store, database_url, make_upload):
        service = MediaStoreService(
            blob_store,
            MetadataStore(database_url),
            url_resolver=PublicUrlResolver(blob_store, "https://gallery.example.com/"),
        )
        await service.initialize()
        try:
            tenant = await service.create_tenant("Ana")
            report = await service.upload_assets(tenant.id, [make_upload()])
            assert report.results[0].url.startswith("https://gallery.example.com/api/v1/photos/")
        finally:
            await service.close()


class TestBranding:
    @pytest.mark.asyncio
    async def test_logo_overwrites_at_same_url(self, service, make_upload):
        settings = await service.get_settings()
        assert settings.logo_key is None
        assert service.logo_url(settings) is None

        first = await service.update_branding(make_upload("logo.png", content_type="image/png", body=b"one"))
        first_url = service.logo_url(first)
        second = await service.update_branding(make_upload("logo.png", content_type="image/png", body=b"two"))

        assert first_url is not None
        assert service.logo_url(second) == first_url
        data, _ = await service.open_asset("_branding", "logo")
        assert data.endswith(b"two")

    @pytest.mark.asyncio
    async def test_invalid_logo_changes_nothing(self, service, make_upload):
        with pytest.raises(UnsupportedType):
            await service.update_branding(make_upload("logo.gif", content_type="image/gif"))
        assert (await service.get_settings()).logo_key is None

    @pytest.mark.asyncio
    async def test_logo_bytes_must_match_declared_type(self, service):
        mislabeled = UploadItem(filename="logo.webp", content_type="image/webp", data=b"\x89PNGnotreally")

        with pytest.raises(UnsupportedType):
            await service.update_branding(mislabeled)
        assert (await service.get_settings()).logo_key is None

    @pytest.mark.asyncio
    async def test_webp_logo_keeps_its_type(self, service, make_upload):
        await service.update_branding(make_upload("logo.webp", content_type="image/webp"))

        _, content_type = await service.open_asset("_branding", "logo")
        assert content_type == "image/webp"

    @pytest.mark.asyncio
    async def test_unread_oversized_logo_is_rejected(self, service):
        unread = UploadItem(
            filename="logo.png",
            content_type="image/png",
            data=b"",
            declared_size=service.blob_store.max_upload_bytes + 1,
        )

        with pytest.raises(FileTooLarge):
            await service.update_branding(unread)
        assert (await service.get_settings()).logo_key is None


class TestHealth:
    @pytest.mark.asyncio
    async def test_reports_backends(self, service):
        assert await service.health() == {
            "storage_backend": "local",
            "storage_connected": True,
            "database_connected": True,
        }
