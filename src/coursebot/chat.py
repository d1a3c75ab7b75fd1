from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, replace

from .lesson_flow import persist
from .models import utcnow
from .normalize import norm_text
from .records import ROLE_ADMIN, ROLE_REVIEWER, AnswerRecord, LessonRecord, Message
from .store import LessonStore

logger = logging.getLogger(__name__)

REVIEWER_SIDE = "reviewer-side"
LEARNER_SIDE = "learner-side"

REVIEWER_ROLES = frozenset({ROLE_REVIEWER, ROLE_ADMIN})


@dataclass(frozen=True)
class ThreadEntry:
    channel: str  # reviewer-side | learner-side
    message: Message

    @property
    def side(self) -> str:
        return side_for(self.channel)


def side_for(channel: str) -> str:
    # Placement depends on the channel only, never on who is looking.
    return "left" if channel == REVIEWER_SIDE else "right"


def merge(
    review_comments: tuple[Message, ...] | list[Message],
    student_questions: tuple[Message, ...] | list[Message],
) -> list[ThreadEntry]:
    entries = [ThreadEntry(REVIEWER_SIDE, m) for m in review_comments]
    entries += [ThreadEntry(LEARNER_SIDE, m) for m in student_questions]
    entries.sort(key=lambda e: e.message.created_at)
    return entries


def thread_for(answer: AnswerRecord | None) -> list[ThreadEntry]:
    if answer is None:
        return []
    return merge(answer.review_comments, answer.student_questions)


def channel_for_role(author_role: str) -> str:
    return REVIEWER_SIDE if author_role in REVIEWER_ROLES else LEARNER_SIDE


async def append_message(
    store: LessonStore,
    lesson: LessonRecord,
    *,
    task_id: str,
    text: str,
    author_name: str,
    author_role: str,
    now: dt.datetime | None = None,
) -> LessonRecord:
    text = (text or "").strip()
    if not norm_text(text):
        raise ValueError("chat message text is empty")
    msg = Message(
        text=text,
        created_at=now or utcnow(),
        author_name=author_name,
        author_role=author_role,
    )
    answer = lesson.answer_for(task_id) or AnswerRecord(task_id=task_id)
    channel = channel_for_role(author_role)
    if channel == REVIEWER_SIDE:
        answer = replace(answer, review_comments=answer.review_comments + (msg,))
    else:
        answer = replace(answer, student_questions=answer.student_questions + (msg,))
    saved = await persist(store, lesson.with_answer(answer))
    logger.info(
        "chat_message_appended profile_id=%s lesson_num=%s task_id=%s channel=%s role=%s",
        saved.profile_id,
        saved.lesson_num,
        task_id,
        channel,
        author_role,
    )
    return saved
