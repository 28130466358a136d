from __future__ import annotations

from collections.abc import AsyncGenerator
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from medrx.core.config import settings

engine = create_async_engine(settings.database_url, future=True, pool_pre_ping=True)
AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


async def apply_rls_profile_context(session: AsyncSession, profile_id: UUID) -> None:
    # Row-level security policies read this setting as auth.uid() equivalent.
    await session.execute(
        text("SELECT set_config('app.current_profile_id', :profile_id, true)"),
        {"profile_id": str(profile_id)},
    )
