from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Preference, utcnow

logger = logging.getLogger(__name__)

ACTIVE_LESSON = "active_lesson"
ACTIVE_TASK = "active_task"
REVIEW_COURSE = "review_course"


async def get_pref(s: AsyncSession, chat_id: int, key: str) -> str | None:
    row = (
        await s.execute(
            select(Preference).where(Preference.chat_id == chat_id, Preference.key == key)
        )
    ).scalar_one_or_none()
    return row.value if row else None


async def set_pref(s: AsyncSession, chat_id: int, key: str, value: str | None) -> None:
    row = (
        await s.execute(
            select(Preference).where(Preference.chat_id == chat_id, Preference.key == key)
        )
    ).scalar_one_or_none()
    if row is None:
        s.add(Preference(chat_id=chat_id, key=key, value=value, updated_at=utcnow()))
    else:
        row.value = value
        row.updated_at = utcnow()
    await s.commit()


async def get_int_pref(s: AsyncSession, chat_id: int, key: str) -> int | None:
    raw = await get_pref(s, chat_id, key)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning("bad_int_pref chat_id=%s key=%s value=%r", chat_id, key, raw)
        return None


async def get_active_lesson(s: AsyncSession, chat_id: int) -> int | None:
    num = await get_int_pref(s, chat_id, ACTIVE_LESSON)
    if num is None or num <= 0:
        return None
    return num


async def set_active_lesson(s: AsyncSession, chat_id: int, lesson_num: int) -> None:
    if lesson_num <= 0:
        raise ValueError("lesson number must be positive")
    await set_pref(s, chat_id, ACTIVE_LESSON, str(lesson_num))
