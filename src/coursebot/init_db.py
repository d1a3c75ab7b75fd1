import asyncio
import logging
from pathlib import Path
from sqlalchemy import text
from .config import load_settings
from .db import ensure_sqlite_schema, make_engine
from .models import Base

logger = logging.getLogger(__name__)

async def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = load_settings()
    if settings.database_url.startswith("sqlite"):
        Path("./data").mkdir(parents=True, exist_ok=True)
    Path(settings.tasks_dir, settings.tasks_default_lang).mkdir(parents=True, exist_ok=True)

    engine = make_engine(settings)
    if settings.database_url.startswith("sqlite"):
        # also upgrades lesson tables created before versioning existed
        await ensure_sqlite_schema(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        if settings.database_url.startswith("sqlite"):
            await conn.execute(text("PRAGMA journal_mode=WAL;"))
            await conn.execute(text("PRAGMA synchronous=NORMAL;"))
    await engine.dispose()
    logger.info("db_initialized url=%s", settings.database_url)

if __name__ == "__main__":
    asyncio.run(main())
