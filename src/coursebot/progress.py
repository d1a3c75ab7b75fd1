from __future__ import annotations

from .records import ACCEPTED, CORRECTED, DONE, IN_PROGRESS, REJECTED
from .store import REVIEWABLE_STATUSES

STATUS_BADGES = {
    None: "⚪",
    IN_PROGRESS: "🔵",
    DONE: "🟢",
    ACCEPTED: "⭐",
    REJECTED: "🔴",
    CORRECTED: "🟣",
}


def badge(status: str | None) -> str:
    return STATUS_BADGES.get(status, STATUS_BADGES[None])


def detect_current_lesson(status_map: dict[int, str], total_lessons: int) -> int:
    # first lesson not started yet or sent back; otherwise the last one
    for lesson_num in range(1, total_lessons + 1):
        status = status_map.get(lesson_num)
        if not status or status == REJECTED:
            return lesson_num
    return max(total_lessons, 1)


def first_lesson_to_review(status_map: dict[int, str]) -> int | None:
    for lesson_num in sorted(status_map):
        if status_map[lesson_num] in REVIEWABLE_STATUSES:
            return lesson_num
    return None
