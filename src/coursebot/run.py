import asyncio
import logging
import traceback
from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from .catalog import TaskCatalog
from .config import Settings, load_settings
from .db import ensure_sqlite_schema, make_engine, make_sessionmaker
from .db_maintenance import log_malformed_drawings
from .handlers import register_handlers

logger = logging.getLogger(__name__)

# Telegram caps a message at 4096 characters
CRASH_NOTICE_LIMIT = 4000


def crash_notice(error_text: str) -> str:
    """Admin notice for a failed run; keeps the innermost end of the traceback."""
    header = "Course bot stopped with an error:\n\n"
    room = CRASH_NOTICE_LIMIT - len(header)
    if len(error_text) > room:
        error_text = "..." + error_text[-(room - 3):]
    return header + error_text


async def _prepare_storage(settings: Settings):
    engine = make_engine(settings)
    if settings.database_url.startswith("sqlite"):
        await ensure_sqlite_schema(engine)
    sessionmaker = make_sessionmaker(engine)
    catalog = TaskCatalog(settings.tasks_dir, default_lang=settings.tasks_default_lang)
    async with sessionmaker() as s:
        await log_malformed_drawings(s, catalog, lang=settings.tasks_default_lang)
    return sessionmaker


async def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings()
    bot = Bot(settings.bot_token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
    try:
        sessionmaker = await _prepare_storage(settings)
        dp = Dispatcher()
        register_handlers(dp, settings=settings, sessionmaker=sessionmaker)
        await dp.start_polling(bot)
    except Exception:
        logger.exception("bot_run_failed")
        notice = crash_notice(traceback.format_exc())
        for admin_id in settings.admin_ids:
            try:
                await bot.send_message(admin_id, notice, parse_mode=None)
            except Exception:
                logger.exception("failed_to_notify_admin admin_id=%s", admin_id)
        raise
    finally:
        await bot.session.close()


if __name__ == "__main__":
    asyncio.run(main())
