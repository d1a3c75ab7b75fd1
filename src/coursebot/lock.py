"""Advisory edit lock held by a reviewer while a lesson is being checked.

The flag only gates what the bot offers the learner; the store accepts
writes regardless (version checks catch real conflicts).
"""
from __future__ import annotations

import logging

from .records import (
    ACCEPTED,
    CORRECTED,
    IN_PROGRESS,
    LOCKED_BY_REVIEWER,
    REJECTED,
    AnswerRecord,
    LessonKey,
    LessonRecord,
)
from .store import LessonStore

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (None, IN_PROGRESS, CORRECTED, REJECTED)


def is_locked(lesson: LessonRecord | None) -> bool:
    return lesson is not None and lesson.locked_by == LOCKED_BY_REVIEWER


def can_learner_edit(lesson: LessonRecord | None) -> bool:
    if lesson is None:
        return True
    if is_locked(lesson):
        return False
    return lesson.status in EDITABLE_STATUSES


def can_learner_edit_task(lesson: LessonRecord | None, answer: AnswerRecord | None) -> bool:
    if not can_learner_edit(lesson):
        return False
    if answer is not None and answer.status == ACCEPTED:
        return False
    # a corrected lesson is waiting for review
    return lesson is None or lesson.status != CORRECTED


async def acquire_review_lock(store: LessonStore, key: LessonKey) -> bool:
    return await store.set_lock(key, LOCKED_BY_REVIEWER)


async def release_review_lock(store: LessonStore, key: LessonKey) -> bool:
    return await store.set_lock(key, None)
