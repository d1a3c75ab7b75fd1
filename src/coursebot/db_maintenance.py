from __future__ import annotations

import json
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .catalog import TaskCatalog
from .models import CourseInstance, Lesson
from .records import TASK_PIC, answers_from_json
from .simplify import stroke_from_json

logger = logging.getLogger(__name__)


def _drawing_is_valid(value: str) -> bool:
    try:
        data = json.loads(value)
        if not isinstance(data, list):
            return False
        for item in data:
            stroke_from_json(item)
    except ValueError:
        return False
    return True


async def find_malformed_drawings(
    s: AsyncSession,
    catalog: TaskCatalog,
    *,
    lang: str,
) -> dict[int, list[tuple[int, str]]]:
    """Map lesson row id -> [(lesson_num, task_id)] for pic answers that no longer parse."""
    rows = (
        await s.execute(
            select(Lesson, CourseInstance.course_id).join(
                CourseInstance, CourseInstance.id == Lesson.course_ref_id
            )
        )
    ).all()
    pic_ids_by_course: dict[str, set[str]] = {}
    malformed: dict[int, list[tuple[int, str]]] = {}
    for lesson, course_id in rows:
        pic_ids = pic_ids_by_course.get(course_id)
        if pic_ids is None:
            pic_ids = {t.id for t in catalog.fetch_tasks(lang, course_id) if t.type == TASK_PIC}
            pic_ids_by_course[course_id] = pic_ids
        if not pic_ids:
            continue
        for answer in answers_from_json(lesson.answers_json):
            if answer.task_id in pic_ids and answer.value and not _drawing_is_valid(answer.value):
                malformed.setdefault(lesson.id, []).append((lesson.lesson_num, answer.task_id))
    return malformed


async def log_malformed_drawings(s: AsyncSession, catalog: TaskCatalog, *, lang: str) -> None:
    malformed = await find_malformed_drawings(s, catalog, lang=lang)
    for lesson_id, items in sorted(malformed.items()):
        logger.warning(
            "malformed_drawings lesson_id=%s count=%s items=%s",
            lesson_id,
            len(items),
            items,
        )
