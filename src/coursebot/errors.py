from __future__ import annotations

from .records import LessonKey


class LessonWorkflowError(Exception):
    """Base class for failures the bot reports back to the user."""

    i18n_key = "error_generic"


class LinkageError(LessonWorkflowError):
    """No organization could be resolved for the student; nothing was written."""

    i18n_key = "error_linkage"

    def __init__(self, profile_id: int):
        super().__init__(f"no organization linked to profile {profile_id}")
        self.profile_id = profile_id


class ReadinessError(LessonWorkflowError):
    i18n_key = "error_not_ready"

    def __init__(self, key: LessonKey, missing_task_ids: list[str]):
        super().__init__(
            f"lesson {key.lesson_num} is not ready to submit; incomplete tasks: {', '.join(missing_task_ids) or '-'}"
        )
        self.key = key
        self.missing_task_ids = missing_task_ids


class LessonStateError(LessonWorkflowError):
    i18n_key = "error_state"

    def __init__(self, key: LessonKey, status: str | None, action: str):
        super().__init__(f"cannot {action} lesson {key.lesson_num} in status {status or 'unset'}")
        self.key = key
        self.status = status
        self.action = action


class StaleLessonError(LessonWorkflowError):
    i18n_key = "error_stale"

    def __init__(self, key: LessonKey, expected_version: int | None):
        super().__init__(
            f"lesson {key.lesson_num} changed since it was loaded (expected version {expected_version})"
        )
        self.key = key
        self.expected_version = expected_version


class PersistenceError(LessonWorkflowError):
    i18n_key = "error_persistence"
