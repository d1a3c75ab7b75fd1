from __future__ import annotations

import logging
from dataclasses import replace

from .errors import LessonStateError, LinkageError, ReadinessError
from .records import (
    CORRECTED,
    DONE,
    IN_PROGRESS,
    REJECTED,
    TASK_READ,
    AnswerRecord,
    LessonRecord,
    TaskDefinition,
    tasks_for_lesson,
)
from .status_policy import (
    compute_next_status,
    default_unset_to_done,
    incomplete_corrected_tasks,
    incomplete_tasks,
)
from .store import LessonStore

logger = logging.getLogger(__name__)

_KEEP = object()

SUBMITTABLE_STATUSES = (None, IN_PROGRESS, REJECTED)


async def ensure_linkage(store: LessonStore, lesson: LessonRecord) -> LessonRecord:
    if lesson.org_id is not None:
        return lesson
    org_id = await store.resolve_org_id(lesson.profile_id, lesson.course_ref_id)
    if org_id is None:
        logger.warning(
            "lesson_save_without_org profile_id=%s course_ref_id=%s lesson_num=%s",
            lesson.profile_id,
            lesson.course_ref_id,
            lesson.lesson_num,
        )
        raise LinkageError(lesson.profile_id)
    return replace(lesson, org_id=org_id)


def update_answer(
    lesson: LessonRecord,
    task_id: str,
    *,
    value: object = _KEEP,
    forced_status: str | None = None,
) -> LessonRecord:
    """Upsert one answer and run it through the status policy."""
    existing = lesson.answer_for(task_id) or AnswerRecord(task_id=task_id)
    updated = replace(
        existing,
        value=existing.value if value is _KEEP else (value or ""),
        status=compute_next_status(existing.status, forced_status),
    )
    return lesson.with_answer(updated)


async def persist(store: LessonStore, lesson: LessonRecord) -> LessonRecord:
    lesson = await ensure_linkage(store, lesson)
    return await store.save_lesson(lesson)


async def save_answer(
    store: LessonStore,
    lesson: LessonRecord,
    *,
    task_id: str,
    value: str | None,
    forced_status: str | None = None,
) -> LessonRecord:
    updated = update_answer(lesson, task_id, value=value, forced_status=forced_status)
    if updated.status is None:
        updated = replace(updated, status=IN_PROGRESS)
    saved = await persist(store, updated)
    answer = saved.answer_for(task_id)
    logger.info(
        "answer_saved profile_id=%s lesson_num=%s task_id=%s status=%s",
        saved.profile_id,
        saved.lesson_num,
        task_id,
        answer.status if answer else None,
    )
    return saved


async def mark_read(store: LessonStore, lesson: LessonRecord, *, task: TaskDefinition) -> LessonRecord:
    if task.type != TASK_READ:
        raise ValueError(f"task {task.id} is a {task.type} task, only read tasks can be marked as read")
    updated = update_answer(lesson, task.id, forced_status=DONE)
    if updated.status is None:
        updated = replace(updated, status=IN_PROGRESS)
    return await persist(store, updated)


def missing_for_submit(lesson: LessonRecord, tasks: list[TaskDefinition]) -> list[str]:
    lesson_tasks = tasks_for_lesson(tasks, lesson.lesson_num)
    answers = default_unset_to_done(lesson_tasks, lesson.answers)
    if not lesson_tasks:
        return []
    if lesson.status == REJECTED:
        return incomplete_corrected_tasks(lesson_tasks, answers)
    return incomplete_tasks(lesson_tasks, answers)


def is_ready_to_submit(lesson: LessonRecord, tasks: list[TaskDefinition]) -> bool:
    if lesson.status not in SUBMITTABLE_STATUSES:
        return False
    if not tasks_for_lesson(tasks, lesson.lesson_num):
        return False
    return not missing_for_submit(lesson, tasks)


async def submit_lesson(store: LessonStore, lesson: LessonRecord, tasks: list[TaskDefinition]) -> LessonRecord:
    if lesson.status not in SUBMITTABLE_STATUSES:
        raise LessonStateError(lesson.key, lesson.status, "submit")
    lesson_tasks = tasks_for_lesson(tasks, lesson.lesson_num)
    missing = missing_for_submit(lesson, tasks)
    if not lesson_tasks or missing:
        logger.info(
            "lesson_submit_rejected profile_id=%s lesson_num=%s missing=%s",
            lesson.profile_id,
            lesson.lesson_num,
            missing,
        )
        raise ReadinessError(lesson.key, missing)
    next_status = CORRECTED if lesson.status == REJECTED else DONE
    updated = replace(
        lesson,
        answers=default_unset_to_done(lesson_tasks, lesson.answers),
        status=next_status,
    )
    saved = await persist(store, updated)
    logger.info(
        "lesson_submitted profile_id=%s course_ref_id=%s lesson_num=%s status=%s",
        saved.profile_id,
        saved.course_ref_id,
        saved.lesson_num,
        saved.status,
    )
    return saved
