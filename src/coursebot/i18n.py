from __future__ import annotations

STRINGS: dict[str, dict[str, str]] = {
    "choose_lang": {"en": "Choose UI language:", "ru": "Выберите язык интерфейса:"},
    "no_course": {
        "en": "You are not enrolled in a course yet. Ask your supervisor to enroll you.",
        "ru": "Вы пока не записаны на курс. Обратитесь к куратору.",
    },
    "no_tasks": {"en": "This lesson has no tasks.", "ru": "В этом уроке нет заданий."},
    "lesson_heading": {"en": "Lesson {number}", "ru": "Урок {number}"},
    "pick_lesson": {"en": "Lessons:", "ru": "Уроки:"},
    "task_selected": {
        "en": "Task {num} selected. Send your answer as a message.",
        "ru": "Выбрано задание {num}. Отправьте ответ сообщением.",
    },
    "pic_selected": {
        "en": "Task {num} selected. Draw your answer in the canvas.",
        "ru": "Выбрано задание {num}. Нарисуйте ответ на холсте.",
    },
    "open_canvas": {"en": "🎨 Open canvas", "ru": "🎨 Открыть холст"},
    "select_task_first": {"en": "Choose a task first.", "ru": "Сначала выберите задание."},
    "not_write_task": {
        "en": "This task does not take a text answer.",
        "ru": "Это задание не принимает текстовый ответ.",
    },
    "answer_saved": {"en": "Answer saved.", "ru": "Ответ сохранён."},
    "read_marked": {"en": "Marked as read.", "ru": "Отмечено как прочитанное."},
    "mark_read": {"en": "📖 Mark as read", "ru": "📖 Прочитано"},
    "drawing_updated": {
        "en": "Drawing: {count} strokes (not saved yet).",
        "ru": "Рисунок: штрихов {count} (ещё не сохранён).",
    },
    "drawing_empty": {"en": "Nothing to save.", "ru": "Нечего сохранять."},
    "send_lesson": {"en": "📨 Send lesson for review", "ru": "📨 Отправить урок на проверку"},
    "send_lesson_check": {"en": "📨 Send corrections", "ru": "📨 Отправить исправления"},
    "lesson_sent": {"en": "Lesson sent for review.", "ru": "Урок отправлен на проверку."},
    "locked": {
        "en": "The supervisor is checking this lesson right now. Editing is paused.",
        "ru": "Куратор сейчас проверяет урок. Редактирование недоступно.",
    },
    "not_editable": {
        "en": "Lesson status: {status}. Editing is closed.",
        "ru": "Статус урока: {status}. Редактирование закрыто.",
    },
    "alert_rejected": {
        "en": "The lesson was sent back. Fix the rejected tasks and send it again.",
        "ru": "Урок возвращён на доработку. Исправьте отклонённые задания и отправьте снова.",
    },
    "alert_corrected": {
        "en": "Corrections sent. Waiting for the supervisor.",
        "ru": "Исправления отправлены. Ожидайте проверки куратора.",
    },
    "alert_in_progress": {
        "en": "Complete all tasks, then send the lesson for review.",
        "ru": "Выполните все задания и отправьте урок на проверку.",
    },
    "lock_released": {"en": "Lesson unlocked.", "ru": "Урок разблокирован."},
    "chat_empty": {"en": "No messages yet.", "ru": "Сообщений пока нет."},
    "chat_usage": {"en": "Usage: /ask your question", "ru": "Использование: /ask ваш вопрос"},
    "chat_sent": {"en": "Message sent.", "ru": "Сообщение отправлено."},
    "review_queue_empty": {"en": "Nothing to review.", "ru": "Нет уроков на проверку."},
    "review_queue": {"en": "Lessons to review:", "ru": "Уроки на проверку:"},
    "review_nothing_in_course": {
        "en": "This student has no lessons waiting for review.",
        "ru": "У студента нет уроков на проверку.",
    },
    "accept_task": {"en": "✅ Accept", "ru": "✅ Принять"},
    "reject_task": {"en": "↩️ Reject", "ru": "↩️ Отклонить"},
    "task_chat": {"en": "💬 Chat", "ru": "💬 Чат"},
    "chat_selected": {
        "en": "Chat for task {num}. Reply with /ask your message.",
        "ru": "Чат задания {num}. Ответьте командой /ask текст.",
    },
    "accept_lesson": {"en": "✅ Accept lesson", "ru": "✅ Принять урок"},
    "reject_lesson": {"en": "↩️ Send back for revision", "ru": "↩️ Отправить на доработку"},
    "lesson_accepted": {"en": "Lesson accepted.", "ru": "Урок принят."},
    "lesson_rejected": {"en": "Lesson sent back for revision.", "ru": "Урок отправлен на доработку."},
    "task_verdict": {"en": "Task {task_id}: {status}.", "ru": "Задание {task_id}: {status}."},
    "reviewers_only": {"en": "Only supervisors can do that.", "ru": "Это доступно только кураторам."},
    "error_generic": {"en": "Something went wrong.", "ru": "Что-то пошло не так."},
    "error_linkage": {
        "en": "Your profile is not linked to an organization, so nothing was saved.",
        "ru": "Профиль не привязан к организации, ничего не сохранено.",
    },
    "error_not_ready": {
        "en": "Not all tasks are complete yet.",
        "ru": "Ещё не все задания выполнены.",
    },
    "error_state": {
        "en": "That action is not available for the lesson right now.",
        "ru": "Это действие сейчас недоступно для урока.",
    },
    "error_stale": {
        "en": "The lesson changed in the meantime. Reload it with /lesson and try again.",
        "ru": "Урок изменился. Откройте его заново через /lesson и повторите.",
    },
    "error_persistence": {
        "en": "Storage is unavailable right now. Your edit is kept, try again.",
        "ru": "Хранилище сейчас недоступно. Правка сохранена у вас, попробуйте ещё раз.",
    },
}

STATUS_NAMES: dict[str, dict[str, str]] = {
    "in_progress": {"en": "in progress", "ru": "в работе"},
    "done": {"en": "done", "ru": "выполнено"},
    "rejected": {"en": "needs revision", "ru": "на доработке"},
    "corrected": {"en": "corrected", "ru": "исправлено"},
    "accepted": {"en": "accepted", "ru": "принято"},
}

def t(key: str, lang: str) -> str:
    return STRINGS.get(key, {}).get(lang, STRINGS.get(key, {}).get("en", key))

def status_name(status: str | None, lang: str) -> str:
    if not status:
        return "—"
    names = STATUS_NAMES.get(status, {})
    return names.get(lang, names.get("en", status))
