import asyncio
import pytest

sqlalchemy = pytest.importorskip("sqlalchemy")
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from coursebot.errors import LessonStateError
from coursebot.models import Base, CourseInstance
from coursebot.records import ACCEPTED, DONE, REJECTED, AnswerRecord, LessonRecord, TaskDefinition
from coursebot.review import accept_lesson, accept_task, reject_lesson, reject_task
from coursebot.store import LessonStore

async def _setup_session():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    return engine, Session

async def _submitted_lesson(Session, store: LessonStore, answers) -> LessonRecord:
    async with Session() as s:
        course = CourseInstance(student_id=9, course_id="english-a1", org_id=4)
        s.add(course)
        await s.commit()
    return await store.save_lesson(
        LessonRecord(
            course_ref_id=course.id,
            profile_id=9,
            lesson_num=1,
            status=DONE,
            answers=tuple(answers),
            org_id=4,
        )
    )

TASKS = [
    TaskDefinition(id="w1", lesson_num=1, type="write", prompt="a", num=1),
    TaskDefinition(id="p1", lesson_num=1, type="pic", prompt="b", num=2),
    TaskDefinition(id="r1", lesson_num=1, type="read", prompt="c", num=0),
    TaskDefinition(id="x2", lesson_num=2, type="write", prompt="d", num=1),
]

def test_accept_lesson_accepts_graded_tasks_and_refreshes():
    async def _run():
        engine, Session = await _setup_session()
        store = LessonStore(Session)
        lesson = await _submitted_lesson(
            Session, store, [AnswerRecord("w1", "text", DONE), AnswerRecord("r1", status=DONE)]
        )
        calls = []

        async def refresh():
            calls.append("refreshed")

        saved = await accept_lesson(store, lesson, TASKS, on_reviewed=refresh)
        assert saved.status == ACCEPTED
        assert saved.answer_for("w1").status == ACCEPTED
        assert saved.answer_for("w1").value == "text"
        assert saved.answer_for("p1").status == ACCEPTED
        assert saved.answer_for("r1").status == DONE
        assert saved.answer_for("x2") is None
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert calls == ["refreshed"]
        await engine.dispose()
    asyncio.run(_run())

def test_failed_refresh_does_not_undo_verdict():
    async def _run():
        engine, Session = await _setup_session()
        store = LessonStore(Session)
        lesson = await _submitted_lesson(Session, store, [AnswerRecord("w1", "text", DONE)])

        async def broken_refresh():
            raise RuntimeError("chat gone")

        saved = await reject_lesson(store, lesson, on_reviewed=broken_refresh)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        stored = await store.fetch_lesson(saved.course_ref_id, saved.profile_id, 1)
        assert stored.status == REJECTED
        await engine.dispose()
    asyncio.run(_run())

def test_accepted_lesson_cannot_be_reviewed_again():
    async def _run():
        engine, Session = await _setup_session()
        store = LessonStore(Session)
        lesson = await _submitted_lesson(Session, store, [])
        lesson = await accept_lesson(store, lesson, TASKS)
        with pytest.raises(LessonStateError):
            await reject_lesson(store, lesson)
        await engine.dispose()
    asyncio.run(_run())

def test_task_verdict_keeps_answer_value():
    async def _run():
        engine, Session = await _setup_session()
        store = LessonStore(Session)
        lesson = await _submitted_lesson(Session, store, [AnswerRecord("w1", "my text", DONE)])
        saved = await accept_task(store, lesson, task=TASKS[0])
        assert saved.answer_for("w1") == AnswerRecord("w1", "my text", ACCEPTED)
        assert saved.status == DONE
        await engine.dispose()
    asyncio.run(_run())

def test_read_task_takes_no_verdict():
    async def _run():
        engine, Session = await _setup_session()
        store = LessonStore(Session)
        lesson = await _submitted_lesson(Session, store, [AnswerRecord("r1", status=DONE)])
        read_task = TASKS[2]
        with pytest.raises(ValueError):
            await accept_task(store, lesson, task=read_task)
        with pytest.raises(ValueError):
            await reject_task(store, lesson, task=read_task)
        stored = await store.fetch_lesson(lesson.course_ref_id, lesson.profile_id, 1)
        assert stored.answer_for("r1").status == DONE
        assert stored.version == lesson.version
        await engine.dispose()
    asyncio.run(_run())
