from __future__ import annotations
import html
import json
import logging
from dataclasses import dataclass

from aiogram import Dispatcher, F
from aiogram.enums import ParseMode
from aiogram.filters import Command, CommandObject, CommandStart, ExceptionTypeFilter
from aiogram.types import CallbackQuery, ErrorEvent, Message, Update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .catalog import TaskCatalog
from .chat import REVIEWER_ROLES, append_message, thread_for
from .config import Settings
from .drawing import StrokeBuffer
from .errors import LessonWorkflowError, PersistenceError
from .i18n import status_name, t
from .keyboards import (
    kb_canvas,
    kb_drawing,
    kb_lang,
    kb_lesson_menu,
    kb_lesson_tasks,
    kb_review_lesson,
    kb_review_queue,
    kb_review_task,
)
from .lesson_flow import is_ready_to_submit, mark_read, save_answer, submit_lesson
from .lock import acquire_review_lock, can_learner_edit, can_learner_edit_task, is_locked, release_review_lock
from .models import CourseInstance, Profile
from .normalize import excerpt, plain_text
from .prefs import ACTIVE_TASK, REVIEW_COURSE, get_active_lesson, get_int_pref, get_pref, set_active_lesson, set_pref
from .progress import badge, detect_current_lesson, first_lesson_to_review
from .records import (
    CORRECTED,
    DONE,
    IN_PROGRESS,
    REJECTED,
    TASK_PIC,
    TASK_READ,
    TASK_WRITE,
    LessonKey,
    LessonRecord,
    TaskDefinition,
    tasks_for_lesson,
)
from .review import accept_lesson, accept_task, reject_lesson, reject_task
from .simplify import Stroke, parse_strokes, stroke_from_json
from .store import LessonStore

logger = logging.getLogger(__name__)

# ---------------- rendering ----------------
def esc(text: str | None) -> str:
    return html.escape(text or "", quote=False)

def lesson_alert(lesson: LessonRecord | None, ui_lang: str) -> str | None:
    if lesson is None or not lesson.status:
        return None
    if is_locked(lesson):
        return t("locked", ui_lang)
    if lesson.status == CORRECTED:
        return t("alert_corrected", ui_lang)
    if lesson.status == REJECTED:
        return t("alert_rejected", ui_lang)
    if lesson.status == IN_PROGRESS:
        return t("alert_in_progress", ui_lang)
    if not can_learner_edit(lesson):
        return t("not_editable", ui_lang).format(status=status_name(lesson.status, ui_lang))
    return None

def build_lesson_text(
    lesson_num: int,
    tasks: list[TaskDefinition],
    lesson: LessonRecord | None,
    ui_lang: str,
    *,
    for_reviewer: bool = False,
) -> str:
    lines = [f"<b>{esc(t('lesson_heading', ui_lang).format(number=lesson_num))}</b>"]
    if lesson and lesson.status:
        lines.append(f"{badge(lesson.status)} {esc(status_name(lesson.status, ui_lang))}")
    alert = None if for_reviewer else lesson_alert(lesson, ui_lang)
    if alert:
        lines.append(f"<i>{esc(alert)}</i>")
    if not tasks:
        lines.append(esc(t("no_tasks", ui_lang)))
        return "\n".join(lines)
    for task in tasks:
        answer = lesson.answer_for(task.id) if lesson else None
        status = answer.status if answer else None
        lines.append("")
        if task.type == TASK_READ:
            mark = "✅" if status == DONE else "📖"
            lines.append(f"{mark} {esc(task.prompt)}")
        else:
            lines.append(f"{badge(status)} <b>{task.num}.</b> {esc(task.prompt)}")
        if answer and task.type == TASK_WRITE and answer.value:
            lines.append(f"   › {esc(excerpt(answer.value))}")
        if answer and task.type == TASK_PIC and answer.value:
            strokes = parse_strokes(
                answer.value,
                context={"profile_id": lesson.profile_id, "lesson_num": lesson_num, "task_id": task.id},
            )
            lines.append(f"   › 🎨 {len(strokes)}")
        if answer:
            count = len(answer.review_comments) + len(answer.student_questions)
            if count:
                lines.append(f"   💬 {count}")
    return "\n".join(lines)

def build_thread_text(lesson: LessonRecord | None, task_id: str, ui_lang: str) -> str:
    entries = thread_for(lesson.answer_for(task_id) if lesson else None)
    if not entries:
        return esc(t("chat_empty", ui_lang))
    lines = []
    for entry in entries:
        arrow = "◀" if entry.side == "left" else "▶"
        msg = entry.message
        stamp = msg.created_at.strftime("%d.%m %H:%M")
        name = msg.author_name or msg.author_role
        lines.append(f"{arrow} <b>{esc(name)}</b> <i>{stamp}</i>\n{esc(plain_text(msg.text))}")
    return "\n\n".join(lines)

def parse_canvas_payload(raw: str | None) -> list[Stroke]:
    """Strokes sent by the drawing mini app; anything unreadable counts as no strokes."""
    try:
        data = json.loads(raw or "")
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise ValueError("canvas payload is not a list")
        return [stroke_from_json(item) for item in data]
    except ValueError as exc:
        logger.warning("malformed_canvas_payload err=%s", exc)
        return []

def workflow_error_text(exc: LessonWorkflowError, ui_lang: str) -> str:
    return t(exc.i18n_key, ui_lang)

async def report_workflow_error(update: Update, exc: Exception, ui_lang: str) -> bool:
    """Tell the user an action failed; storage errors are reported as persistence failures."""
    if not isinstance(exc, LessonWorkflowError):
        exc = PersistenceError(str(exc))
    text = workflow_error_text(exc, ui_lang)
    if update.callback_query is not None:
        await update.callback_query.answer(text, show_alert=True)
        return True
    if update.message is not None:
        await update.message.answer(text)
        return True
    return False

@dataclass(frozen=True)
class ReviewTarget:
    course_ref_id: int
    lesson_num: int
    task_id: str | None = None

def parse_review_target(raw: str) -> ReviewTarget | None:
    """`<course_ref_id>:<lesson_num>[:<task_id>]` from a review button."""
    parts = raw.split(":", 2)
    try:
        course_ref_id, lesson_num = int(parts[0]), int(parts[1])
    except (IndexError, ValueError):
        return None
    task_id = parts[2] if len(parts) > 2 and parts[2] else None
    return ReviewTarget(course_ref_id, lesson_num, task_id)

# ---------------- helpers ----------------
async def _get_or_create_profile(s: AsyncSession, tg_user, settings: Settings) -> Profile:
    p = await s.get(Profile, tg_user.id)
    role = settings.role_for(tg_user.id)
    if p:
        if p.role != role:
            p.role = role
            await s.commit()
        return p
    p = Profile(
        id=tg_user.id,
        username=tg_user.username,
        full_name=tg_user.full_name,
        role=role,
        ui_lang=settings.ui_default_lang,
    )
    s.add(p)
    await s.commit()
    return p

async def _load_lesson(store: LessonStore, course: CourseInstance, lesson_num: int) -> LessonRecord:
    lesson = await store.fetch_lesson(course.id, course.student_id, lesson_num)
    if lesson is not None:
        return lesson
    return LessonRecord.new(
        LessonKey(course.id, course.student_id, lesson_num),
        org_id=course.org_id,
        course_no=course.course_id,
    )

def _find_task(tasks: list[TaskDefinition], task_id: str | None) -> TaskDefinition | None:
    for task in tasks:
        if task.id == task_id:
            return task
    return None

def register_handlers(dp: Dispatcher, *, settings: Settings, sessionmaker: async_sessionmaker[AsyncSession]):
    store = LessonStore(sessionmaker)
    catalog = TaskCatalog(settings.tasks_dir, default_lang=settings.tasks_default_lang)
    drafts: dict[tuple[int, str], StrokeBuffer] = {}

    async def _learner_view(chat_id: int, user) -> tuple[Profile, CourseInstance | None, int, list[TaskDefinition]]:
        async with sessionmaker() as s:
            profile = await _get_or_create_profile(s, user, settings)
            lesson_num = await get_active_lesson(s, chat_id)
        course = await store.fetch_active_course(profile.id)
        if course is None:
            return profile, None, 0, []
        tasks = catalog.fetch_tasks(profile.ui_lang, course.course_id)
        if lesson_num is None:
            status_map = await store.fetch_status_map(course.id, course.student_id)
            lesson_num = detect_current_lesson(status_map, catalog.total_lessons(profile.ui_lang, course.course_id))
        return profile, course, lesson_num, tasks

    async def _reviewer_view(chat_id: int, user) -> tuple[Profile, CourseInstance | None, int, list[TaskDefinition]]:
        async with sessionmaker() as s:
            profile = await _get_or_create_profile(s, user, settings)
            course_ref_id = await get_int_pref(s, chat_id, REVIEW_COURSE)
            lesson_num = await get_active_lesson(s, chat_id)
        if profile.role not in REVIEWER_ROLES or course_ref_id is None or lesson_num is None:
            return profile, None, 0, []
        course = await store.fetch_course_instance(course_ref_id)
        if course is None:
            return profile, None, 0, []
        return profile, course, lesson_num, catalog.fetch_tasks(profile.ui_lang, course.course_id)

    async def _send_lesson(m: Message, profile: Profile, course: CourseInstance, lesson_num: int, tasks: list[TaskDefinition]):
        lesson_tasks = tasks_for_lesson(tasks, lesson_num)
        lesson = await _load_lesson(store, course, lesson_num)
        status_map = await store.fetch_status_map(course.id, course.student_id)
        total = catalog.total_lessons(profile.ui_lang, course.course_id)
        await m.answer(t("pick_lesson", profile.ui_lang), reply_markup=kb_lesson_menu(total, status_map, lesson_num))
        await m.answer(
            build_lesson_text(lesson_num, lesson_tasks, lesson, profile.ui_lang),
            parse_mode=ParseMode.HTML,
            reply_markup=kb_lesson_tasks(
                lesson_tasks,
                lesson,
                profile.ui_lang,
                can_edit=can_learner_edit(lesson),
                ready_to_submit=is_ready_to_submit(lesson, tasks),
            ),
        )

    async def _send_review(m: Message, profile: Profile, course: CourseInstance, lesson_num: int, tasks: list[TaskDefinition]):
        lesson_tasks = tasks_for_lesson(tasks, lesson_num)
        lesson = await _load_lesson(store, course, lesson_num)
        await m.answer(
            build_lesson_text(lesson_num, lesson_tasks, lesson, profile.ui_lang, for_reviewer=True),
            parse_mode=ParseMode.HTML,
        )
        for task in lesson_tasks:
            if task.type == TASK_READ:
                continue
            answer = lesson.answer_for(task.id)
            body = excerpt(answer.value, 1000) if answer and task.type == TASK_WRITE else ""
            await m.answer(
                f"<b>{task.num}.</b> {esc(task.prompt)}\n{esc(body)}",
                parse_mode=ParseMode.HTML,
                reply_markup=kb_review_task(lesson.key, task.id, profile.ui_lang),
            )
        await m.answer(
            esc(status_name(lesson.status, profile.ui_lang)),
            reply_markup=kb_review_lesson(lesson.key, profile.ui_lang),
        )

    async def _send_queue(m: Message, ui_lang: str):
        entries = await store.fetch_review_queue(settings.review_org_id)
        if not entries:
            await m.answer(t("review_queue_empty", ui_lang))
            return
        await m.answer(t("review_queue", ui_lang), reply_markup=kb_review_queue(entries))

    @dp.message(CommandStart())
    async def on_start(m: Message):
        async with sessionmaker() as s:
            await _get_or_create_profile(s, m.from_user, settings)
        await m.answer(t("choose_lang", settings.ui_default_lang), reply_markup=kb_lang())

    @dp.callback_query(F.data.startswith("lang:"))
    async def on_lang(cb: CallbackQuery):
        lang = cb.data.split(":", 1)[1]
        if lang not in ("ru", "en"):
            await cb.answer()
            return
        async with sessionmaker() as s:
            profile = await _get_or_create_profile(s, cb.from_user, settings)
            profile.ui_lang = lang
            await s.commit()
        await cb.answer()
        profile, course, lesson_num, tasks = await _learner_view(cb.message.chat.id, cb.from_user)
        if course is None:
            if profile.role in REVIEWER_ROLES:
                await _send_queue(cb.message, profile.ui_lang)
            else:
                await cb.message.answer(t("no_course", profile.ui_lang))
            return
        await _send_lesson(cb.message, profile, course, lesson_num, tasks)

    @dp.message(Command("lesson"))
    async def on_lesson(m: Message, command: CommandObject):
        profile, course, lesson_num, tasks = await _learner_view(m.chat.id, m.from_user)
        if course is None:
            await m.answer(t("no_course", profile.ui_lang))
            return
        if command.args and command.args.strip().isdigit() and int(command.args.strip()) > 0:
            lesson_num = int(command.args.strip())
            async with sessionmaker() as s:
                await set_active_lesson(s, m.chat.id, lesson_num)
        await _send_lesson(m, profile, course, lesson_num, tasks)

    @dp.callback_query(F.data.startswith("lesson:"))
    async def on_lesson_pick(cb: CallbackQuery):
        lesson_num = int(cb.data.split(":", 1)[1])
        async with sessionmaker() as s:
            await set_active_lesson(s, cb.message.chat.id, lesson_num)
            await set_pref(s, cb.message.chat.id, ACTIVE_TASK, None)
        await cb.answer()
        profile, course, _, tasks = await _learner_view(cb.message.chat.id, cb.from_user)
        if course is None:
            await cb.message.answer(t("no_course", profile.ui_lang))
            return
        await _send_lesson(cb.message, profile, course, lesson_num, tasks)

    @dp.callback_query(F.data.startswith("task:"))
    async def on_task_pick(cb: CallbackQuery):
        task_id = cb.data.split(":", 1)[1]
        profile, course, lesson_num, tasks = await _learner_view(cb.message.chat.id, cb.from_user)
        task = _find_task(tasks, task_id)
        await cb.answer()
        if course is None or task is None:
            return
        async with sessionmaker() as s:
            await set_pref(s, cb.message.chat.id, ACTIVE_TASK, task.id)
        lesson = await _load_lesson(store, course, lesson_num)
        if task.type == TASK_PIC:
            answer = lesson.answer_for(task.id)
            drafts[(cb.message.chat.id, task.id)] = StrokeBuffer.from_answer(
                answer.value if answer else None,
                context={"profile_id": course.student_id, "lesson_num": lesson_num, "task_id": task.id},
            )
            markup = kb_canvas(settings.canvas_url, profile.ui_lang) if settings.canvas_url else None
            await cb.message.answer(t("pic_selected", profile.ui_lang).format(num=task.num), reply_markup=markup)
        else:
            await cb.message.answer(t("task_selected", profile.ui_lang).format(num=task.num))
        await cb.message.answer(build_thread_text(lesson, task.id, profile.ui_lang), parse_mode=ParseMode.HTML)

    @dp.callback_query(F.data.startswith("read:"))
    async def on_read(cb: CallbackQuery):
        task_id = cb.data.split(":", 1)[1]
        profile, course, lesson_num, tasks = await _learner_view(cb.message.chat.id, cb.from_user)
        task = _find_task(tasks, task_id)
        if course is None or task is None or task.type != TASK_READ:
            await cb.answer()
            return
        lesson = await _load_lesson(store, course, lesson_num)
        if not can_learner_edit_task(lesson, lesson.answer_for(task.id)):
            await cb.answer(lesson_alert(lesson, profile.ui_lang) or t("error_state", profile.ui_lang), show_alert=True)
            return
        try:
            await mark_read(store, lesson, task=task)
        except LessonWorkflowError as exc:
            await cb.answer(workflow_error_text(exc, profile.ui_lang), show_alert=True)
            return
        await cb.answer(t("read_marked", profile.ui_lang))
        await _send_lesson(cb.message, profile, course, lesson_num, tasks)

    @dp.message(Command("submit"))
    async def on_submit_cmd(m: Message):
        await _submit(m, m.chat.id, m.from_user)

    @dp.callback_query(F.data == "submit")
    async def on_submit_cb(cb: CallbackQuery):
        await cb.answer()
        await _submit(cb.message, cb.message.chat.id, cb.from_user)

    async def _submit(m: Message, chat_id: int, user):
        profile, course, lesson_num, tasks = await _learner_view(chat_id, user)
        if course is None:
            await m.answer(t("no_course", profile.ui_lang))
            return
        lesson = await _load_lesson(store, course, lesson_num)
        if is_locked(lesson):
            await m.answer(t("locked", profile.ui_lang))
            return
        try:
            await submit_lesson(store, lesson, tasks)
        except LessonWorkflowError as exc:
            await m.answer(workflow_error_text(exc, profile.ui_lang))
            return
        await m.answer(t("lesson_sent", profile.ui_lang))
        await _send_lesson(m, profile, course, lesson_num, tasks)

    @dp.message(F.web_app_data)
    async def on_canvas_data(m: Message):
        async with sessionmaker() as s:
            profile = await _get_or_create_profile(s, m.from_user, settings)
            task_id = await get_pref(s, m.chat.id, ACTIVE_TASK)
        buffer = drafts.get((m.chat.id, task_id or ""))
        if buffer is None:
            await m.answer(t("select_task_first", profile.ui_lang))
            return
        for stroke in parse_canvas_payload(m.web_app_data.data):
            buffer.add_stroke(stroke)
        await m.answer(
            t("drawing_updated", profile.ui_lang).format(count=len(buffer.strokes)),
            reply_markup=kb_drawing(buffer.can_undo, buffer.can_redo),
        )

    @dp.callback_query(F.data.startswith("draw:"))
    async def on_draw(cb: CallbackQuery):
        action = cb.data.split(":", 1)[1]
        profile, course, lesson_num, tasks = await _learner_view(cb.message.chat.id, cb.from_user)
        async with sessionmaker() as s:
            task_id = await get_pref(s, cb.message.chat.id, ACTIVE_TASK)
        buffer = drafts.get((cb.message.chat.id, task_id or ""))
        task = _find_task(tasks, task_id)
        if course is None or buffer is None or task is None:
            await cb.answer(t("select_task_first", profile.ui_lang), show_alert=True)
            return
        if action == "undo":
            buffer.undo()
        elif action == "redo":
            buffer.redo()
        elif action == "clear":
            buffer.clear()
        elif action == "save":
            if not buffer.dirty:
                await cb.answer(t("drawing_empty", profile.ui_lang))
                return
            lesson = await _load_lesson(store, course, lesson_num)
            if not can_learner_edit_task(lesson, lesson.answer_for(task.id)):
                await cb.answer(lesson_alert(lesson, profile.ui_lang) or t("error_state", profile.ui_lang), show_alert=True)
                return
            try:
                await save_answer(store, lesson, task_id=task.id, value=buffer.to_answer_value())
            except LessonWorkflowError as exc:
                # the draft stays in memory so the learner can retry
                await cb.answer(workflow_error_text(exc, profile.ui_lang), show_alert=True)
                return
            drafts.pop((cb.message.chat.id, task.id), None)
            await cb.answer(t("answer_saved", profile.ui_lang))
            await _send_lesson(cb.message, profile, course, lesson_num, tasks)
            return
        await cb.answer()
        await cb.message.answer(
            t("drawing_updated", profile.ui_lang).format(count=len(buffer.strokes)),
            reply_markup=kb_drawing(buffer.can_undo, buffer.can_redo),
        )

    @dp.message(Command("ask"))
    async def on_ask(m: Message, command: CommandObject):
        async with sessionmaker() as s:
            profile = await _get_or_create_profile(s, m.from_user, settings)
            task_id = await get_pref(s, m.chat.id, ACTIVE_TASK)
        text = (command.args or "").strip()
        if not text:
            await m.answer(t("chat_usage", profile.ui_lang))
            return
        if profile.role in REVIEWER_ROLES:
            _, course, lesson_num, tasks = await _reviewer_view(m.chat.id, m.from_user)
        else:
            _, course, lesson_num, tasks = await _learner_view(m.chat.id, m.from_user)
        task = _find_task(tasks_for_lesson(tasks, lesson_num), task_id)
        if course is None or task is None:
            await m.answer(t("select_task_first", profile.ui_lang))
            return
        lesson = await _load_lesson(store, course, lesson_num)
        try:
            saved = await append_message(
                store,
                lesson,
                task_id=task.id,
                text=esc(text),
                author_name=profile.full_name or m.from_user.full_name,
                author_role=profile.role,
            )
        except LessonWorkflowError as exc:
            await m.answer(workflow_error_text(exc, profile.ui_lang))
            return
        await m.answer(t("chat_sent", profile.ui_lang))
        await m.answer(build_thread_text(saved, task.id, profile.ui_lang), parse_mode=ParseMode.HTML)

    @dp.message(Command("review"))
    async def on_review(m: Message):
        async with sessionmaker() as s:
            profile = await _get_or_create_profile(s, m.from_user, settings)
        if profile.role not in REVIEWER_ROLES:
            await m.answer(t("reviewers_only", profile.ui_lang))
            return
        await _send_queue(m, profile.ui_lang)

    @dp.callback_query(F.data.startswith("rv:"))
    async def on_review_open(cb: CallbackQuery):
        course_ref_id = int(cb.data.split(":", 1)[1])
        async with sessionmaker() as s:
            profile = await _get_or_create_profile(s, cb.from_user, settings)
        await cb.answer()
        if profile.role not in REVIEWER_ROLES:
            await cb.message.answer(t("reviewers_only", profile.ui_lang))
            return
        course = await store.fetch_course_instance(course_ref_id)
        if course is None:
            return
        status_map = await store.fetch_status_map(course.id, course.student_id)
        lesson_num = first_lesson_to_review(status_map)
        if lesson_num is None:
            await cb.message.answer(t("review_nothing_in_course", profile.ui_lang))
            return
        async with sessionmaker() as s:
            await set_pref(s, cb.message.chat.id, REVIEW_COURSE, str(course.id))
            await set_active_lesson(s, cb.message.chat.id, lesson_num)
        await acquire_review_lock(store, LessonKey(course.id, course.student_id, lesson_num))
        tasks = catalog.fetch_tasks(profile.ui_lang, course.course_id)
        await _send_review(cb.message, profile, course, lesson_num, tasks)

    async def _review_target_view(
        chat_id: int, user, target: ReviewTarget | None
    ) -> tuple[Profile, CourseInstance | None, list[TaskDefinition]]:
        async with sessionmaker() as s:
            profile = await _get_or_create_profile(s, user, settings)
        if profile.role not in REVIEWER_ROLES or target is None:
            return profile, None, []
        course = await store.fetch_course_instance(target.course_ref_id)
        if course is None:
            return profile, None, []
        async with sessionmaker() as s:
            # /ask and /unlock follow the lesson whose button was pressed last
            await set_pref(s, chat_id, REVIEW_COURSE, str(course.id))
            await set_active_lesson(s, chat_id, target.lesson_num)
        tasks = catalog.fetch_tasks(profile.ui_lang, course.course_id)
        return profile, course, tasks_for_lesson(tasks, target.lesson_num)

    @dp.callback_query(F.data.startswith("rvt:"))
    async def on_review_task(cb: CallbackQuery):
        _, verdict, raw = cb.data.split(":", 2)
        target = parse_review_target(raw)
        profile, course, lesson_tasks = await _review_target_view(cb.message.chat.id, cb.from_user, target)
        task = _find_task(lesson_tasks, target.task_id if target else None)
        if course is None or task is None or task.type == TASK_READ:
            await cb.answer(t("error_state", profile.ui_lang), show_alert=True)
            return
        lesson = await _load_lesson(store, course, target.lesson_num)
        op = accept_task if verdict == "a" else reject_task
        try:
            saved = await op(store, lesson, task=task)
        except LessonWorkflowError as exc:
            await cb.answer(workflow_error_text(exc, profile.ui_lang), show_alert=True)
            return
        answer = saved.answer_for(task.id)
        await cb.answer(
            t("task_verdict", profile.ui_lang).format(
                task_id=task.num or task.id, status=status_name(answer.status if answer else None, profile.ui_lang)
            )
        )

    @dp.callback_query(F.data.startswith("rvc:"))
    async def on_review_chat(cb: CallbackQuery):
        target = parse_review_target(cb.data.split(":", 1)[1])
        profile, course, lesson_tasks = await _review_target_view(cb.message.chat.id, cb.from_user, target)
        task = _find_task(lesson_tasks, target.task_id if target else None)
        if course is None or task is None:
            await cb.answer(t("error_state", profile.ui_lang), show_alert=True)
            return
        await cb.answer()
        async with sessionmaker() as s:
            await set_pref(s, cb.message.chat.id, ACTIVE_TASK, task.id)
        lesson = await _load_lesson(store, course, target.lesson_num)
        await cb.message.answer(t("chat_selected", profile.ui_lang).format(num=task.num))
        await cb.message.answer(build_thread_text(lesson, task.id, profile.ui_lang), parse_mode=ParseMode.HTML)

    @dp.callback_query(F.data.startswith("rvl:"))
    async def on_review_lesson(cb: CallbackQuery):
        _, verdict, raw = cb.data.split(":", 2)
        target = parse_review_target(raw)
        profile, course, lesson_tasks = await _review_target_view(cb.message.chat.id, cb.from_user, target)
        if course is None:
            await cb.answer(t("error_state", profile.ui_lang), show_alert=True)
            return
        lesson = await _load_lesson(store, course, target.lesson_num)

        async def refresh_queue() -> None:
            await _send_queue(cb.message, profile.ui_lang)

        try:
            if verdict == "a":
                await accept_lesson(store, lesson, lesson_tasks, on_reviewed=refresh_queue)
            else:
                await reject_lesson(store, lesson, on_reviewed=refresh_queue)
        except LessonWorkflowError as exc:
            await cb.answer(workflow_error_text(exc, profile.ui_lang), show_alert=True)
            return
        await release_review_lock(store, lesson.key)
        await cb.answer()
        await cb.message.answer(t("lesson_accepted" if verdict == "a" else "lesson_rejected", profile.ui_lang))

    async def _ui_lang_for(user) -> str:
        if user is None:
            return settings.ui_default_lang
        try:
            async with sessionmaker() as s:
                profile = await s.get(Profile, user.id)
        except SQLAlchemyError:
            logger.warning("ui_lang_lookup_failed user_id=%s", user.id)
            return settings.ui_default_lang
        return profile.ui_lang if profile else settings.ui_default_lang

    @dp.errors(ExceptionTypeFilter(LessonWorkflowError, SQLAlchemyError))
    async def on_workflow_error(event: ErrorEvent):
        update = event.update
        user = None
        if update.callback_query is not None:
            user = update.callback_query.from_user
        elif update.message is not None:
            user = update.message.from_user
        logger.warning(
            "workflow_error_reported user_id=%s type=%s err=%s",
            user.id if user else None,
            type(event.exception).__name__,
            event.exception,
        )
        await report_workflow_error(update, event.exception, await _ui_lang_for(user))
        return True

    @dp.message(Command("unlock"))
    async def on_unlock(m: Message):
        profile, course, lesson_num, _ = await _reviewer_view(m.chat.id, m.from_user)
        if course is None:
            await m.answer(t("reviewers_only", profile.ui_lang))
            return
        await release_review_lock(store, LessonKey(course.id, course.student_id, lesson_num))
        await m.answer(t("lock_released", profile.ui_lang))

    @dp.message(F.text & ~F.text.startswith("/"))
    async def on_text(m: Message):
        profile, course, lesson_num, tasks = await _learner_view(m.chat.id, m.from_user)
        if course is None:
            await m.answer(t("no_course", profile.ui_lang))
            return
        async with sessionmaker() as s:
            task_id = await get_pref(s, m.chat.id, ACTIVE_TASK)
        task = _find_task(tasks_for_lesson(tasks, lesson_num), task_id)
        if task is None:
            await m.answer(t("select_task_first", profile.ui_lang))
            return
        if task.type != TASK_WRITE:
            await m.answer(t("not_write_task", profile.ui_lang))
            return
        lesson = await _load_lesson(store, course, lesson_num)
        if not can_learner_edit_task(lesson, lesson.answer_for(task.id)):
            await m.answer(lesson_alert(lesson, profile.ui_lang) or t("error_state", profile.ui_lang))
            return
        try:
            await save_answer(store, lesson, task_id=task.id, value=m.html_text)
        except LessonWorkflowError as exc:
            await m.answer(workflow_error_text(exc, profile.ui_lang))
            return
        await m.answer(t("answer_saved", profile.ui_lang))
        await _send_lesson(m, profile, course, lesson_num, tasks)
