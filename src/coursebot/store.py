from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .errors import PersistenceError, StaleLessonError
from .models import CourseInstance, Lesson, Profile, utcnow
from .records import (
    CORRECTED,
    DONE,
    IN_PROGRESS,
    LESSON_STATUSES,
    LessonKey,
    LessonRecord,
    answers_from_json,
    answers_to_json,
    parse_timestamp,
    status_or_none,
)

logger = logging.getLogger(__name__)

REVIEWABLE_STATUSES = (DONE, CORRECTED)


@dataclass(frozen=True)
class ReviewQueueEntry:
    course_ref_id: int
    course_id: str
    student_id: int
    full_name: str | None
    lessons_to_check: int


def _key_filter(key: LessonKey):
    return (
        Lesson.course_ref_id == key.course_ref_id,
        Lesson.profile_id == key.profile_id,
        Lesson.lesson_num == key.lesson_num,
    )


def lesson_from_row(row: Lesson) -> LessonRecord:
    return LessonRecord(
        course_ref_id=row.course_ref_id,
        profile_id=row.profile_id,
        lesson_num=row.lesson_num,
        status=status_or_none(row.status, LESSON_STATUSES),
        locked_by=row.locked_by or None,
        answers=answers_from_json(row.answers_json),
        org_id=row.org_id,
        course_no=row.course_no,
        version=row.version,
        updated_at=parse_timestamp(row.updated_at) if row.updated_at else None,
    )


@dataclass
class LessonStore:
    """Async persistence for lesson records.

    Saves replace the whole record. A record read at version N can only be
    written back while the row is still at N; anything else raises
    StaleLessonError instead of silently dropping the other writer's update.
    The advisory lock column is managed separately and is not versioned.
    """

    sessionmaker: async_sessionmaker[AsyncSession]

    async def fetch_status_map(self, course_ref_id: int, profile_id: int) -> dict[int, str]:
        try:
            async with self.sessionmaker() as s:
                rows = (
                    await s.execute(
                        select(Lesson.lesson_num, Lesson.status).where(
                            Lesson.course_ref_id == course_ref_id,
                            Lesson.profile_id == profile_id,
                        )
                    )
                ).all()
        except SQLAlchemyError as exc:
            logger.exception(
                "fetch_status_map_failed course_ref_id=%s profile_id=%s", course_ref_id, profile_id
            )
            raise PersistenceError("could not load lesson statuses") from exc
        return {int(num): (status or IN_PROGRESS) for num, status in rows}

    async def fetch_lesson(self, course_ref_id: int, profile_id: int, lesson_num: int) -> LessonRecord | None:
        key = LessonKey(course_ref_id, profile_id, lesson_num)
        try:
            async with self.sessionmaker() as s:
                row = await self._get_row(s, key)
        except SQLAlchemyError as exc:
            logger.exception("fetch_lesson_failed key=%s", key)
            raise PersistenceError("could not load lesson") from exc
        return lesson_from_row(row) if row else None

    async def save_lesson(self, record: LessonRecord) -> LessonRecord:
        key = record.key
        now = utcnow()
        answers_json = answers_to_json(record.answers)
        try:
            async with self.sessionmaker() as s:
                if record.version is None:
                    s.add(
                        Lesson(
                            course_ref_id=key.course_ref_id,
                            profile_id=key.profile_id,
                            lesson_num=key.lesson_num,
                            org_id=record.org_id,
                            course_no=record.course_no,
                            status=record.status,
                            answers_json=answers_json,
                            version=1,
                            created_at=now,
                            updated_at=now,
                        )
                    )
                    try:
                        await s.commit()
                    except IntegrityError:
                        await s.rollback()
                        logger.warning("save_lesson_conflict key=%s expected_version=None", key)
                        raise StaleLessonError(key, None) from None
                else:
                    result = await s.execute(
                        update(Lesson)
                        .where(*_key_filter(key), Lesson.version == record.version)
                        .values(
                            org_id=record.org_id,
                            course_no=record.course_no,
                            status=record.status,
                            answers_json=answers_json,
                            updated_at=now,
                            version=Lesson.version + 1,
                        )
                    )
                    if result.rowcount != 1:
                        await s.rollback()
                        logger.warning(
                            "save_lesson_conflict key=%s expected_version=%s", key, record.version
                        )
                        raise StaleLessonError(key, record.version)
                    await s.commit()
                row = await self._get_row(s, key)
        except SQLAlchemyError as exc:
            logger.exception("save_lesson_failed key=%s", key)
            raise PersistenceError("could not save lesson") from exc
        saved = lesson_from_row(row)
        logger.info(
            "lesson_saved key=%s status=%s version=%s answers=%s",
            key,
            saved.status,
            saved.version,
            len(saved.answers),
        )
        return saved

    async def set_lock(self, key: LessonKey, locked_by: str | None) -> bool:
        try:
            async with self.sessionmaker() as s:
                result = await s.execute(
                    update(Lesson).where(*_key_filter(key)).values(locked_by=locked_by)
                )
                await s.commit()
        except SQLAlchemyError as exc:
            logger.exception("set_lock_failed key=%s", key)
            raise PersistenceError("could not change lesson lock") from exc
        changed = bool(result.rowcount)
        logger.info("lesson_lock key=%s locked_by=%s changed=%s", key, locked_by, changed)
        return changed

    async def resolve_org_id(self, profile_id: int, course_ref_id: int | None = None) -> int | None:
        try:
            async with self.sessionmaker() as s:
                if course_ref_id is not None:
                    course = await s.get(CourseInstance, course_ref_id)
                    if course and course.org_id is not None:
                        return course.org_id
                profile = await s.get(Profile, profile_id)
        except SQLAlchemyError as exc:
            logger.exception("resolve_org_id_failed profile_id=%s", profile_id)
            raise PersistenceError("could not resolve organization") from exc
        return profile.current_org_id if profile else None

    async def fetch_course_instance(self, course_ref_id: int) -> CourseInstance | None:
        try:
            async with self.sessionmaker() as s:
                return await s.get(CourseInstance, course_ref_id)
        except SQLAlchemyError as exc:
            logger.exception("fetch_course_instance_failed course_ref_id=%s", course_ref_id)
            raise PersistenceError("could not load course") from exc

    async def fetch_active_course(self, student_id: int) -> CourseInstance | None:
        try:
            async with self.sessionmaker() as s:
                q = (
                    select(CourseInstance)
                    .where(CourseInstance.student_id == student_id, CourseInstance.state == "started")
                    .order_by(CourseInstance.updated_at.desc(), CourseInstance.id.desc())
                    .limit(1)
                )
                return (await s.execute(q)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.exception("fetch_active_course_failed student_id=%s", student_id)
            raise PersistenceError("could not load course") from exc

    async def fetch_review_queue(self, org_id: int | None = None) -> list[ReviewQueueEntry]:
        q = (
            select(
                CourseInstance.id,
                CourseInstance.course_id,
                CourseInstance.student_id,
                Profile.full_name,
                func.count(Lesson.id),
            )
            .join(Lesson, Lesson.course_ref_id == CourseInstance.id)
            .outerjoin(Profile, Profile.id == CourseInstance.student_id)
            .where(
                Lesson.profile_id == CourseInstance.student_id,
                Lesson.status.in_(REVIEWABLE_STATUSES),
            )
            .group_by(CourseInstance.id, CourseInstance.course_id, CourseInstance.student_id, Profile.full_name)
            .order_by(CourseInstance.id.asc())
        )
        if org_id is not None:
            q = q.where(func.coalesce(CourseInstance.org_id, Profile.current_org_id) == org_id)
        try:
            async with self.sessionmaker() as s:
                rows = (await s.execute(q)).all()
        except SQLAlchemyError as exc:
            logger.exception("fetch_review_queue_failed org_id=%s", org_id)
            raise PersistenceError("could not load review queue") from exc
        return [
            ReviewQueueEntry(
                course_ref_id=int(course_ref_id),
                course_id=str(course_id),
                student_id=int(student_id),
                full_name=full_name,
                lessons_to_check=int(count),
            )
            for course_ref_id, course_id, student_id, full_name, count in rows
            if count
        ]

    async def _get_row(self, s: AsyncSession, key: LessonKey) -> Lesson | None:
        q = select(Lesson).where(*_key_filter(key)).limit(1)
        return (await s.execute(q)).scalar_one_or_none()
