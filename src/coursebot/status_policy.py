from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from .records import (
    ACCEPTED,
    CORRECTED,
    DONE,
    REJECTED,
    TASK_PIC,
    TASK_READ,
    TASK_WRITE,
    AnswerRecord,
    TaskDefinition,
)

_COMPLETE_STATUSES = frozenset({DONE, CORRECTED, ACCEPTED})
_GRADED_TYPES = frozenset({TASK_WRITE, TASK_PIC})


def compute_next_status(current_status: str | None, forced_status: str | None = None) -> str:
    if forced_status:
        return forced_status
    if current_status in (REJECTED, CORRECTED):
        return CORRECTED
    if current_status == ACCEPTED:
        return ACCEPTED
    return DONE


def _answers_by_task(answers: Iterable[AnswerRecord]) -> dict[str, AnswerRecord]:
    by_task: dict[str, AnswerRecord] = {}
    for answer in answers:
        by_task.setdefault(answer.task_id, answer)
    return by_task


def task_is_complete(task: TaskDefinition, answer: AnswerRecord | None) -> bool:
    if answer is None:
        return False
    if task.type in _GRADED_TYPES:
        return answer.status in _COMPLETE_STATUSES
    if task.type == TASK_READ:
        return answer.status == DONE
    return True


def incomplete_tasks(tasks: list[TaskDefinition], answers: Iterable[AnswerRecord]) -> list[str]:
    by_task = _answers_by_task(answers)
    return [t.id for t in tasks if not task_is_complete(t, by_task.get(t.id))]


def can_submit_lesson(tasks: list[TaskDefinition], answers: Iterable[AnswerRecord]) -> bool:
    return not incomplete_tasks(tasks, answers)


def incomplete_corrected_tasks(tasks: list[TaskDefinition], answers: Iterable[AnswerRecord]) -> list[str]:
    by_task = _answers_by_task(answers)
    out: list[str] = []
    for task in tasks:
        answer = by_task.get(task.id)
        if answer is None or answer.status not in _COMPLETE_STATUSES:
            out.append(task.id)
    return out


def can_submit_corrected_lesson(tasks: list[TaskDefinition], answers: Iterable[AnswerRecord]) -> bool:
    return bool(tasks) and not incomplete_corrected_tasks(tasks, answers)


def default_unset_to_done(
    tasks: list[TaskDefinition],
    answers: tuple[AnswerRecord, ...],
) -> tuple[AnswerRecord, ...]:
    """Submit pre-step: existing write/pic answers without a status count as done.

    Tasks with no answer record stay absent and still block submission, as do
    read answers, which are left alone.
    """
    graded = {t.id for t in tasks if t.type in _GRADED_TYPES}
    out: list[AnswerRecord] = []
    for answer in answers:
        if answer.task_id in graded and not answer.status:
            answer = replace(answer, status=DONE)
        out.append(answer)
    return tuple(out)
