import asyncio
import datetime as dt
import json
from types import SimpleNamespace
import pytest

aiogram = pytest.importorskip("aiogram")

from sqlalchemy.exc import OperationalError

from coursebot.errors import PersistenceError, ReadinessError, StaleLessonError
from coursebot.handlers import (
    build_lesson_text,
    build_thread_text,
    lesson_alert,
    parse_canvas_payload,
    parse_review_target,
    report_workflow_error,
    workflow_error_text,
)
from coursebot.keyboards import kb_drawing, kb_lesson_tasks, kb_review_lesson, kb_review_task
from coursebot.records import AnswerRecord, LessonKey, LessonRecord, Message, TaskDefinition
from coursebot.store import LessonStore

UTC = dt.timezone.utc
KEY = LessonKey(1, 2, 1)

TASKS = [
    TaskDefinition(id="r1", lesson_num=1, type="read", prompt="Read the rule", num=0),
    TaskDefinition(id="w1", lesson_num=1, type="write", prompt="Translate <this>", num=1),
]

def _lesson(status=None, answers=(), locked_by=None) -> LessonRecord:
    return LessonRecord(
        course_ref_id=1, profile_id=2, lesson_num=1, status=status, answers=tuple(answers), locked_by=locked_by
    )

def test_alert_follows_lesson_state():
    assert lesson_alert(None, "en") is None
    assert lesson_alert(_lesson(), "en") is None
    assert "sent back" in lesson_alert(_lesson("rejected"), "en")
    assert "checking" in lesson_alert(_lesson("done", locked_by="reviewer"), "en")
    assert "Editing is closed" in lesson_alert(_lesson("accepted"), "en")

def test_lesson_text_escapes_and_shows_answers():
    lesson = _lesson("in_progress", [AnswerRecord("w1", "<i>I am</i> a student", "done")])
    text = build_lesson_text(1, TASKS, lesson, "en")
    assert "Lesson 1" in text
    assert "Translate &lt;this&gt;" in text
    assert "I am a student" in text
    assert "Complete all tasks" in text
    reviewer_text = build_lesson_text(1, TASKS, lesson, "en", for_reviewer=True)
    assert "Complete all tasks" not in reviewer_text

def test_lesson_without_tasks():
    assert "no tasks" in build_lesson_text(3, [], None, "en")

def test_thread_sides():
    answer = AnswerRecord(
        "w1",
        review_comments=(Message("Good", dt.datetime(2024, 1, 1, 10, 5, tzinfo=UTC), "Mentor", "reviewer"),),
        student_questions=(Message("Is it ok?", dt.datetime(2024, 1, 1, 10, 0, tzinfo=UTC), "Ann", "learner"),),
    )
    text = build_thread_text(_lesson(answers=[answer]), "w1", "en")
    assert text.index("▶ <b>Ann</b>") < text.index("◀ <b>Mentor</b>")
    assert build_thread_text(None, "w1", "en") == "No messages yet."

def test_canvas_payload():
    one = json.dumps({"paths": [{"x": 1, "y": 2}], "strokeColor": "#000"})
    many = json.dumps([{"paths": [{"x": 1, "y": 2}]}, {"paths": []}])
    assert len(parse_canvas_payload(one)) == 1
    assert len(parse_canvas_payload(many)) == 2
    assert parse_canvas_payload("garbage") == []
    assert parse_canvas_payload(None) == []

def test_error_messages_are_localized():
    assert "Not all tasks" in workflow_error_text(ReadinessError(KEY, ["w1"]), "en")
    assert "Урок изменился" in workflow_error_text(StaleLessonError(KEY, 3), "ru")

def _callbacks(markup) -> list[str]:
    return [button.callback_data for row in markup.inline_keyboard for button in row]

def test_task_keyboard():
    lesson = _lesson("rejected", [AnswerRecord("r1", status="done"), AnswerRecord("w1", "x", "corrected")])
    markup = kb_lesson_tasks(TASKS, lesson, "en", can_edit=True, ready_to_submit=True)
    assert _callbacks(markup) == ["task:w1", "submit"]
    fresh = kb_lesson_tasks(TASKS, None, "en", can_edit=True, ready_to_submit=False)
    assert _callbacks(fresh) == ["read:r1", "task:w1"]

def test_drawing_keyboard():
    assert _callbacks(kb_drawing(False, False)) == ["draw:clear", "draw:save"]
    assert _callbacks(kb_drawing(True, True)) == ["draw:undo", "draw:redo", "draw:clear", "draw:save"]

class FakeMessage:
    def __init__(self):
        self.sent: list[str] = []

    async def answer(self, text: str, **kwargs):
        self.sent.append(text)

class FakeCallback:
    def __init__(self):
        self.alerts: list[tuple[str, bool]] = []

    async def answer(self, text: str | None = None, show_alert: bool = False, **kwargs):
        self.alerts.append((text, show_alert))

def _broken_sessionmaker():
    raise OperationalError("SELECT 1", {}, Exception("database is locked"))

def test_review_buttons_name_their_lesson():
    key = LessonKey(12, 2, 3)
    assert _callbacks(kb_review_task(key, "w1", "en")) == ["rvt:a:12:3:w1", "rvt:r:12:3:w1", "rvc:12:3:w1"]
    assert _callbacks(kb_review_lesson(key, "en")) == ["rvl:a:12:3", "rvl:r:12:3"]

def test_review_target_parsing():
    target = parse_review_target("12:3:a1:1")
    assert (target.course_ref_id, target.lesson_num, target.task_id) == (12, 3, "a1:1")
    assert parse_review_target("12:3").task_id is None
    assert parse_review_target("w1") is None
    assert parse_review_target("x:3:w1") is None

def test_failed_load_is_reported_to_the_user():
    async def _run():
        store = LessonStore(_broken_sessionmaker)
        with pytest.raises(PersistenceError) as err:
            await store.fetch_lesson(1, 2, 1)
        message = FakeMessage()
        update = SimpleNamespace(callback_query=None, message=message)
        assert await report_workflow_error(update, err.value, "en") is True
        assert message.sent == ["Storage is unavailable right now. Your edit is kept, try again."]
        callback = FakeCallback()
        update = SimpleNamespace(callback_query=callback, message=None)
        await report_workflow_error(update, OperationalError("SELECT 1", {}, Exception("gone")), "ru")
        assert callback.alerts == [("Хранилище сейчас недоступно. Правка сохранена у вас, попробуйте ещё раз.", True)]
    asyncio.run(_run())

def test_nothing_to_reply_to():
    async def _run():
        update = SimpleNamespace(callback_query=None, message=None)
        assert await report_workflow_error(update, StaleLessonError(KEY, 1), "en") is False
    asyncio.run(_run())
