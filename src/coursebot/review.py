"""Reviewer-side operations on a learner's lesson record.

Task-level verdicts only touch the answer status. Lesson-level verdicts set
the lesson status and then schedule the caller's overview refresh, which is
best effort: the verdict is committed once the store returns.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Awaitable, Callable

from .errors import LessonStateError
from .lesson_flow import persist, update_answer
from .records import (
    ACCEPTED,
    REJECTED,
    TASK_PIC,
    TASK_READ,
    TASK_WRITE,
    AnswerRecord,
    LessonRecord,
    TaskDefinition,
    tasks_for_lesson,
)
from .store import REVIEWABLE_STATUSES, LessonStore

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[], Awaitable[None]]

_pending_refreshes: set[asyncio.Task] = set()


def _log_refresh_result(task: asyncio.Task) -> None:
    _pending_refreshes.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("review_refresh_failed err=%r", exc)


def schedule_refresh(on_reviewed: RefreshCallback | None) -> asyncio.Task | None:
    if on_reviewed is None:
        return None
    task = asyncio.ensure_future(on_reviewed())
    _pending_refreshes.add(task)
    task.add_done_callback(_log_refresh_result)
    return task


def _require_graded(task: TaskDefinition) -> None:
    # read answers only ever hold unset or done
    if task.type == TASK_READ:
        raise ValueError(f"task {task.id} is a read task and takes no verdict")


async def accept_task(store: LessonStore, lesson: LessonRecord, *, task: TaskDefinition) -> LessonRecord:
    _require_graded(task)
    saved = await persist(store, update_answer(lesson, task.id, forced_status=ACCEPTED))
    logger.info("task_accepted profile_id=%s lesson_num=%s task_id=%s", saved.profile_id, saved.lesson_num, task.id)
    return saved


async def reject_task(store: LessonStore, lesson: LessonRecord, *, task: TaskDefinition) -> LessonRecord:
    _require_graded(task)
    saved = await persist(store, update_answer(lesson, task.id, forced_status=REJECTED))
    logger.info("task_rejected profile_id=%s lesson_num=%s task_id=%s", saved.profile_id, saved.lesson_num, task.id)
    return saved


def _require_reviewable(lesson: LessonRecord, action: str) -> None:
    if lesson.status not in REVIEWABLE_STATUSES:
        raise LessonStateError(lesson.key, lesson.status, action)


async def accept_lesson(
    store: LessonStore,
    lesson: LessonRecord,
    tasks: list[TaskDefinition],
    *,
    on_reviewed: RefreshCallback | None = None,
) -> LessonRecord:
    _require_reviewable(lesson, "accept")
    updated = lesson
    for task in tasks_for_lesson(tasks, lesson.lesson_num):
        if task.type not in (TASK_WRITE, TASK_PIC):
            continue
        answer = updated.answer_for(task.id) or AnswerRecord(task_id=task.id)
        updated = updated.with_answer(replace(answer, status=ACCEPTED))
    saved = await persist(store, replace(updated, status=ACCEPTED))
    logger.info(
        "lesson_accepted profile_id=%s course_ref_id=%s lesson_num=%s",
        saved.profile_id,
        saved.course_ref_id,
        saved.lesson_num,
    )
    schedule_refresh(on_reviewed)
    return saved


async def reject_lesson(
    store: LessonStore,
    lesson: LessonRecord,
    *,
    on_reviewed: RefreshCallback | None = None,
) -> LessonRecord:
    _require_reviewable(lesson, "reject")
    saved = await persist(store, replace(lesson, status=REJECTED))
    logger.info(
        "lesson_rejected profile_id=%s course_ref_id=%s lesson_num=%s",
        saved.profile_id,
        saved.course_ref_id,
        saved.lesson_num,
    )
    schedule_refresh(on_reviewed)
    return saved
