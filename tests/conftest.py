from __future__ import annotations

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from orgbilling.models import Base


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Sessions bound to a throwaway SQLite database with the full schema."""

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'orgbilling_test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()
