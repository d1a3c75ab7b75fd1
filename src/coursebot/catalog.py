from __future__ import annotations

import json
import logging
from pathlib import Path

from .records import TaskDefinition

logger = logging.getLogger(__name__)


class TaskCatalog:
    """Task definitions read from `<tasks_dir>/<lang>/<course_id>.json`.

    A language without a file for the course falls back to the default
    language; when neither exists the course simply has no tasks.
    """

    def __init__(self, tasks_dir: str | Path, default_lang: str = "ru"):
        self.tasks_dir = Path(tasks_dir)
        self.default_lang = default_lang
        self._cache: dict[tuple[str, str], list[TaskDefinition] | None] = {}

    def _load_file(self, lang: str, course_id: str) -> list[TaskDefinition] | None:
        cache_key = (lang, course_id)
        if cache_key in self._cache:
            return self._cache[cache_key]
        path = self.tasks_dir / lang / f"{course_id}.json"
        tasks: list[TaskDefinition] | None = None
        if path.exists():
            try:
                with path.open("r", encoding="utf-8") as handle:
                    data = json.load(handle)
                if isinstance(data, dict):
                    data = data.get("tasks", [])
                tasks = [TaskDefinition.from_json(item) for item in data if isinstance(item, dict)]
            except (OSError, ValueError, KeyError, TypeError) as exc:
                logger.warning("failed_to_load_tasks path=%s err=%s", path, exc)
                tasks = None
        self._cache[cache_key] = tasks
        return tasks

    def fetch_tasks(self, language: str, course_definition_id: str | int) -> list[TaskDefinition]:
        course_id = str(course_definition_id)
        tasks = self._load_file(language, course_id)
        if not tasks and language != self.default_lang:
            logger.info(
                "tasks_fallback course_id=%s lang=%s fallback=%s", course_id, language, self.default_lang
            )
            tasks = self._load_file(self.default_lang, course_id)
        return list(tasks or [])

    def total_lessons(self, language: str, course_definition_id: str | int) -> int:
        tasks = self.fetch_tasks(language, course_definition_id)
        return max((t.lesson_num for t in tasks), default=0)

    def clear_cache(self) -> None:
        self._cache.clear()
