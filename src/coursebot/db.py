from __future__ import annotations
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from .config import Settings

class Base(DeclarativeBase):
    pass

def make_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(settings.database_url, echo=False, future=True)

def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def ensure_sqlite_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        result = await conn.execute(text("PRAGMA table_info(lessons);"))
        columns = {row[1] for row in result.fetchall()}
        if "locked_by" not in columns:
            await conn.execute(
                text("ALTER TABLE lessons ADD COLUMN locked_by VARCHAR(16);")
            )
        if "version" not in columns:
            await conn.execute(
                text("ALTER TABLE lessons ADD COLUMN version INTEGER DEFAULT 1;")
            )
        result = await conn.execute(text("PRAGMA table_info(profiles);"))
        columns = {row[1] for row in result.fetchall()}
        if "current_org_id" not in columns:
            await conn.execute(
                text("ALTER TABLE profiles ADD COLUMN current_org_id INTEGER;")
            )
        await conn.execute(
            text(
                "UPDATE lessons SET version=1 "
                "WHERE version IS NULL;"
            )
        )
        await conn.execute(
            text(
                "UPDATE lessons SET answers_json='[]' "
                "WHERE answers_json IS NULL OR answers_json='';"
            )
        )
