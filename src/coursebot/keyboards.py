from __future__ import annotations
from aiogram.types import InlineKeyboardMarkup, KeyboardButton, ReplyKeyboardMarkup, WebAppInfo
from aiogram.utils.keyboard import InlineKeyboardBuilder
from .i18n import t
from .progress import badge
from .records import TASK_READ, LessonKey, LessonRecord, TaskDefinition
from .store import ReviewQueueEntry

def kb_lang() -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    b.button(text="Русский", callback_data="lang:ru")
    b.button(text="English", callback_data="lang:en")
    b.adjust(2)
    return b.as_markup()

def kb_lesson_menu(total_lessons: int, status_map: dict[int, str], active: int | None) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    for num in range(1, total_lessons + 1):
        label = f"{badge(status_map.get(num))} {num}"
        if num == active:
            label = f"[{label}]"
        b.button(text=label, callback_data=f"lesson:{num}")
    b.adjust(5)
    return b.as_markup()

def kb_lesson_tasks(
    tasks: list[TaskDefinition],
    lesson: LessonRecord | None,
    ui_lang: str,
    *,
    can_edit: bool,
    ready_to_submit: bool,
) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    for task in tasks:
        answer = lesson.answer_for(task.id) if lesson else None
        status = answer.status if answer else None
        if task.type == TASK_READ:
            if can_edit and status is None:
                b.button(text=f"{t('mark_read', ui_lang)} {task.num or ''}".strip(), callback_data=f"read:{task.id}")
            continue
        b.button(text=f"{badge(status)} {task.num}", callback_data=f"task:{task.id}")
    if ready_to_submit:
        key = "send_lesson_check" if lesson and lesson.status == "rejected" else "send_lesson"
        b.button(text=t(key, ui_lang), callback_data="submit")
    b.adjust(4)
    return b.as_markup()

def kb_canvas(url: str, ui_lang: str) -> ReplyKeyboardMarkup:
    # web_app_data only arrives from reply keyboard buttons
    return ReplyKeyboardMarkup(
        keyboard=[[KeyboardButton(text=t("open_canvas", ui_lang), web_app=WebAppInfo(url=url))]],
        resize_keyboard=True,
        one_time_keyboard=True,
    )

def kb_drawing(can_undo: bool, can_redo: bool) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    if can_undo:
        b.button(text="↶", callback_data="draw:undo")
    if can_redo:
        b.button(text="↷", callback_data="draw:redo")
    b.button(text="🗑", callback_data="draw:clear")
    b.button(text="💾", callback_data="draw:save")
    b.adjust(4)
    return b.as_markup()

def kb_review_queue(entries: list[ReviewQueueEntry]) -> InlineKeyboardMarkup:
    b = InlineKeyboardBuilder()
    for entry in entries:
        name = entry.full_name or str(entry.student_id)
        b.button(
            text=f"{name} · {entry.course_id} ({entry.lessons_to_check})",
            callback_data=f"rv:{entry.course_ref_id}",
        )
    b.adjust(1)
    return b.as_markup()

def kb_review_task(key: LessonKey, task_id: str, ui_lang: str) -> InlineKeyboardMarkup:
    # buttons name their lesson; the chat may have moved on to another student
    target = f"{key.course_ref_id}:{key.lesson_num}:{task_id}"
    b = InlineKeyboardBuilder()
    b.button(text=t("accept_task", ui_lang), callback_data=f"rvt:a:{target}")
    b.button(text=t("reject_task", ui_lang), callback_data=f"rvt:r:{target}")
    b.button(text=t("task_chat", ui_lang), callback_data=f"rvc:{target}")
    b.adjust(3)
    return b.as_markup()

def kb_review_lesson(key: LessonKey, ui_lang: str) -> InlineKeyboardMarkup:
    target = f"{key.course_ref_id}:{key.lesson_num}"
    b = InlineKeyboardBuilder()
    b.button(text=t("accept_lesson", ui_lang), callback_data=f"rvl:a:{target}")
    b.button(text=t("reject_lesson", ui_lang), callback_data=f"rvl:r:{target}")
    b.adjust(1)
    return b.as_markup()
