import asyncio
import datetime as dt
import pytest

sqlalchemy = pytest.importorskip("sqlalchemy")
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from coursebot.chat import append_message, thread_for
from coursebot.models import Base
from coursebot.records import DONE, AnswerRecord, LessonKey, LessonRecord
from coursebot.store import LessonStore

UTC = dt.timezone.utc

async def _setup_session():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    return engine, Session

def test_messages_land_in_the_author_channel():
    async def _run():
        engine, Session = await _setup_session()
        store = LessonStore(Session)
        lesson = LessonRecord.new(LessonKey(1, 2, 1), org_id=1).with_answer(AnswerRecord("w1", "answer", DONE))
        lesson = await append_message(
            store,
            lesson,
            task_id="w1",
            text="Why is this wrong?",
            author_name="Ann",
            author_role="learner",
            now=dt.datetime(2024, 5, 1, 9, 0, tzinfo=UTC),
        )
        lesson = await append_message(
            store,
            lesson,
            task_id="w1",
            text="Check the article.",
            author_name="Mentor",
            author_role="reviewer",
            now=dt.datetime(2024, 5, 1, 9, 5, tzinfo=UTC),
        )
        answer = lesson.answer_for("w1")
        assert [m.text for m in answer.student_questions] == ["Why is this wrong?"]
        assert [m.text for m in answer.review_comments] == ["Check the article."]
        assert answer.status == DONE
        assert answer.value == "answer"
        stored = await store.fetch_lesson(1, 2, 1)
        assert [(e.side, e.message.author_name) for e in thread_for(stored.answer_for("w1"))] == [
            ("right", "Ann"),
            ("left", "Mentor"),
        ]
        await engine.dispose()
    asyncio.run(_run())

def test_message_for_unanswered_task_creates_answer():
    async def _run():
        engine, Session = await _setup_session()
        store = LessonStore(Session)
        lesson = await append_message(
            store,
            LessonRecord.new(LessonKey(1, 2, 1), org_id=1),
            task_id="p1",
            text="How big should the drawing be?",
            author_name="Ann",
            author_role="learner",
        )
        answer = lesson.answer_for("p1")
        assert answer.value == ""
        assert answer.status is None
        assert len(answer.student_questions) == 1
        await engine.dispose()
    asyncio.run(_run())

def test_blank_message_is_refused():
    async def _run():
        engine, Session = await _setup_session()
        store = LessonStore(Session)
        with pytest.raises(ValueError):
            await append_message(
                store,
                LessonRecord.new(LessonKey(1, 2, 1), org_id=1),
                task_id="w1",
                text="   ",
                author_name="Ann",
                author_role="learner",
            )
        assert await store.fetch_lesson(1, 2, 1) is None
        await engine.dispose()
    asyncio.run(_run())
