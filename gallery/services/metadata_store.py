import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from gallery.core.exceptions import BackendUnavailable, InternalError, NotFound
from gallery.db.base import Base, load_all_models
from gallery.db.models.settings import BRANDING_KEY, Setting
from gallery.db.models.tenant import Tenant as TenantRow
from gallery.db.sessions import create_engine, create_sessionmaker
from gallery.services.types import BrandingSettings, Tenant
from gallery.utils.logger import get_logger, log_database_operation

logger = get_logger(__name__)

load_all_models()


def new_tenant_id() -> str:
    return uuid.uuid4().hex[:8]


def _to_tenant(row: TenantRow) -> Tenant:
    return Tenant(id=row.id, name=row.name, created_at=row.created_at)


class MetadataStore:
    """
    Tenant records and the branding singleton, in any SQLAlchemy async database.

    Knows nothing about blobs. Driver failures surface as BackendUnavailable.
    """

    id_attempts = 5

    def __init__(self, database_url: str, engine: Optional[AsyncEngine] = None):
        self.database_url = database_url
        self.engine = engine or create_engine(database_url)
        self._sessionmaker = create_sessionmaker(self.engine)

    @asynccontextmanager
    async def _session(self):
        try:
            async with self._sessionmaker() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Metadata store error: {e}")
            raise BackendUnavailable("Metadata store is unavailable") from e

    async def initialize(self) -> None:
        """Create missing tables and materialize the branding row."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise BackendUnavailable("Could not initialize the metadata store") from e

        async with self._session() as session:
            if await session.get(Setting, BRANDING_KEY) is None:
                session.add(Setting(key=BRANDING_KEY, logo_key=None))
                await session.commit()
                log_database_operation(logger, "INSERT", "settings", BRANDING_KEY)

    async def close(self) -> None:
        await self.engine.dispose()

    async def create_tenant(self, name: str) -> Tenant:
        async with self._session() as session:
            for _ in range(self.id_attempts):
                tenant_id = new_tenant_id()
                if await session.get(TenantRow, tenant_id) is None:
                    break
            else:
                raise InternalError("Could not generate a unique tenant id")

            row = TenantRow(id=tenant_id, name=name, created_at=datetime.now(timezone.utc))
            session.add(row)
            await session.commit()
            log_database_operation(logger, "INSERT", "clients", tenant_id)
            return _to_tenant(row)

    async def list_tenants(self) -> list[Tenant]:
        """All tenants, most recently created first."""
        async with self._session() as session:
            result = await session.execute(
                select(TenantRow).order_by(TenantRow.created_at.desc(), TenantRow.id)
            )
            return [_to_tenant(row) for row in result.scalars().all()]

    async def count_tenants(self) -> int:
        async with self._session() as session:
            result = await session.execute(select(func.count()).select_from(TenantRow))
            return result.scalar_one()

    async def get_tenant(self, tenant_id: str) -> Tenant:
        async with self._session() as session:
            row = await session.get(TenantRow, tenant_id)
            if row is None:
                raise NotFound(f"Tenant {tenant_id} not found")
            return _to_tenant(row)

    async def delete_tenant(self, tenant_id: str) -> None:
        async with self._session() as session:
            await session.execute(delete(TenantRow).where(TenantRow.id == tenant_id))
            await session.commit()
            log_database_operation(logger, "DELETE", "clients", tenant_id)

    async def get_settings(self) -> BrandingSettings:
        async with self._session() as session:
            row = await session.get(Setting, BRANDING_KEY)
            if row is None:
                return BrandingSettings(logo_key=None)
            return BrandingSettings(logo_key=row.logo_key)

    async def upsert_settings(self, patch: dict[str, Any]) -> BrandingSettings:
        async with self._session() as session:
            row = await session.get(Setting, BRANDING_KEY)
            if row is None:
                row = Setting(key=BRANDING_KEY)
                session.add(row)
            if "logo_key" in patch:
                row.logo_key = patch["logo_key"]
            await session.commit()
            log_database_operation(logger, "UPSERT", "settings", BRANDING_KEY)
            return BrandingSettings(logo_key=row.logo_key)

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning(f"Metadata store ping failed: {e}")
            return False
