from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .records import TASK_TYPES


@dataclass(frozen=True)
class ValidationIssue:
    severity: str  # "error" | "warning"
    message: str
    task_id: str | None = None
    lesson_num: int | None = None
    item_index: int | None = None


def _iter_tasks(tasks_json) -> Iterable[dict]:
    if isinstance(tasks_json, dict):
        tasks = tasks_json.get("tasks")
        if isinstance(tasks, list):
            return tasks
    if isinstance(tasks_json, list):
        return tasks_json
    return []


def _as_int(raw) -> int | None:
    if isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def validate_tasks(tasks_json) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    seen_ids: set[str] = set()
    nums_by_lesson: dict[int, set[int]] = {}
    lessons_seen: set[int] = set()
    for idx, task in enumerate(_iter_tasks(tasks_json), start=1):
        if not isinstance(task, dict):
            issues.append(ValidationIssue("error", "task is not an object", item_index=idx))
            continue
        raw_id = task.get("id")
        task_id = str(raw_id) if raw_id is not None else None
        lesson_num = _as_int(task.get("lesson_id", task.get("lesson_num")))
        if task_id is None:
            issues.append(ValidationIssue("error", "task id is missing", None, lesson_num, idx))
        elif task_id in seen_ids:
            issues.append(ValidationIssue("error", "duplicate task id", task_id, lesson_num, idx))
        else:
            seen_ids.add(task_id)
        if lesson_num is None or lesson_num <= 0:
            issues.append(
                ValidationIssue("error", "lesson number must be a positive integer", task_id, None, idx)
            )
        else:
            lessons_seen.add(lesson_num)
        task_type = task.get("type")
        if task_type not in TASK_TYPES:
            issues.append(
                ValidationIssue("error", "type must be write, read or pic", task_id, lesson_num, idx)
            )
        if not str(task.get("question") or task.get("prompt") or "").strip():
            issues.append(ValidationIssue("warning", "task has no prompt text", task_id, lesson_num, idx))
        num = _as_int(task.get("num"))
        if task_type != "read" and num is None:
            issues.append(ValidationIssue("warning", "task has no display number", task_id, lesson_num, idx))
        if num is not None and lesson_num is not None:
            nums = nums_by_lesson.setdefault(lesson_num, set())
            if num in nums:
                issues.append(
                    ValidationIssue("warning", "display number repeats within lesson", task_id, lesson_num, idx)
                )
            nums.add(num)
    if lessons_seen:
        missing = sorted(set(range(1, max(lessons_seen) + 1)) - lessons_seen)
        for lesson_num in missing:
            issues.append(ValidationIssue("warning", "lesson has no tasks", None, lesson_num, None))
    return issues
