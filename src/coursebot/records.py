"""Plain value types shared by the workflow, the store and the bot surface.

Records are frozen: every workflow operation builds a new record and hands it
to the store, so the caller's copy survives a failed save untouched.
"""
from __future__ import annotations

import datetime as dt
import json
import logging
from dataclasses import dataclass, replace
from typing import Any

logger = logging.getLogger(__name__)

UTC = dt.timezone.utc

# lesson-level statuses; None means unset
IN_PROGRESS = "in_progress"
DONE = "done"
REJECTED = "rejected"
CORRECTED = "corrected"
ACCEPTED = "accepted"
LESSON_STATUSES = (IN_PROGRESS, DONE, REJECTED, CORRECTED, ACCEPTED)
ANSWER_STATUSES = (DONE, CORRECTED, REJECTED, ACCEPTED)

LOCKED_BY_REVIEWER = "reviewer"

TASK_WRITE = "write"
TASK_READ = "read"
TASK_PIC = "pic"
TASK_TYPES = (TASK_WRITE, TASK_READ, TASK_PIC)

ROLE_LEARNER = "learner"
ROLE_REVIEWER = "reviewer"
ROLE_ADMIN = "admin"

_EPOCH = dt.datetime(1970, 1, 1, tzinfo=UTC)


def parse_timestamp(raw: object) -> dt.datetime:
    if isinstance(raw, dt.datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=UTC)
    if isinstance(raw, str) and raw:
        text = raw.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = dt.datetime.fromisoformat(text)
        except ValueError:
            return _EPOCH
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    return _EPOCH


def status_or_none(raw: object, allowed: tuple[str, ...]) -> str | None:
    """Stored status, or None when it is empty or not one we know."""
    if not raw:
        return None
    status = str(raw)
    if status not in allowed:
        logger.warning("unknown_status value=%r", status)
        return None
    return status


@dataclass(frozen=True)
class Message:
    text: str
    created_at: dt.datetime
    author_name: str
    author_role: str  # learner | reviewer | admin

    def to_json(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "created_at": self.created_at.isoformat(),
            "full_name": self.author_name,
            "role": self.author_role,
        }

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> "Message":
        return cls(
            text=str(raw.get("text") or ""),
            created_at=parse_timestamp(raw.get("created_at")),
            author_name=str(raw.get("full_name") or ""),
            author_role=str(raw.get("role") or ROLE_LEARNER),
        )


@dataclass(frozen=True)
class AnswerRecord:
    task_id: str
    value: str = ""
    status: str | None = None  # None | done | corrected | rejected | accepted
    review_comments: tuple[Message, ...] = ()
    student_questions: tuple[Message, ...] = ()

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.task_id,
            "answer": self.value,
            "status": self.status or "",
            "review_comments": [m.to_json() for m in self.review_comments],
            "student_questions": [m.to_json() for m in self.student_questions],
        }

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> "AnswerRecord":
        return cls(
            task_id=str(raw.get("id")),
            value=str(raw.get("answer") or ""),
            status=status_or_none(raw.get("status"), ANSWER_STATUSES),
            review_comments=tuple(
                Message.from_json(m) for m in (raw.get("review_comments") or []) if isinstance(m, dict)
            ),
            student_questions=tuple(
                Message.from_json(m) for m in (raw.get("student_questions") or []) if isinstance(m, dict)
            ),
        )


def answers_to_json(answers: tuple[AnswerRecord, ...] | list[AnswerRecord]) -> str:
    return json.dumps([a.to_json() for a in answers], ensure_ascii=False)


def answers_from_json(raw: str | None) -> tuple[AnswerRecord, ...]:
    if not raw:
        return ()
    try:
        data = json.loads(raw)
    except ValueError as exc:
        logger.warning("malformed_answers_json err=%s", exc)
        return ()
    if not isinstance(data, list):
        logger.warning("malformed_answers_json err=not_a_list")
        return ()
    return tuple(AnswerRecord.from_json(x) for x in data if isinstance(x, dict) and x.get("id") is not None)


@dataclass(frozen=True)
class LessonKey:
    course_ref_id: int
    profile_id: int
    lesson_num: int


@dataclass(frozen=True)
class LessonRecord:
    course_ref_id: int
    profile_id: int
    lesson_num: int
    status: str | None = None
    locked_by: str | None = None
    answers: tuple[AnswerRecord, ...] = ()
    org_id: int | None = None
    course_no: str | None = None
    version: int | None = None  # None until first persisted
    updated_at: dt.datetime | None = None

    @classmethod
    def new(cls, key: LessonKey, *, org_id: int | None = None, course_no: str | None = None) -> "LessonRecord":
        return cls(
            course_ref_id=key.course_ref_id,
            profile_id=key.profile_id,
            lesson_num=key.lesson_num,
            org_id=org_id,
            course_no=course_no,
        )

    @property
    def key(self) -> LessonKey:
        return LessonKey(self.course_ref_id, self.profile_id, self.lesson_num)

    def answer_for(self, task_id: str) -> AnswerRecord | None:
        for answer in self.answers:
            if answer.task_id == task_id:
                return answer
        return None

    def with_answer(self, answer: AnswerRecord) -> "LessonRecord":
        answers = list(self.answers)
        for idx, existing in enumerate(answers):
            if existing.task_id == answer.task_id:
                answers[idx] = answer
                break
        else:
            answers.append(answer)
        return replace(self, answers=tuple(answers))


@dataclass(frozen=True)
class TaskDefinition:
    id: str
    lesson_num: int
    type: str  # write | read | pic
    prompt: str
    num: int

    @classmethod
    def from_json(cls, raw: dict[str, Any]) -> "TaskDefinition":
        lesson_raw = raw.get("lesson_id", raw.get("lesson_num"))
        return cls(
            id=str(raw["id"]),
            lesson_num=int(lesson_raw),
            type=str(raw.get("type") or TASK_WRITE),
            prompt=str(raw.get("question") or raw.get("prompt") or ""),
            num=int(raw.get("num") or 0),
        )


def tasks_for_lesson(tasks: list[TaskDefinition], lesson_num: int) -> list[TaskDefinition]:
    return [t for t in tasks if t.lesson_num == lesson_num]
