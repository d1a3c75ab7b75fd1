import pytest

pytest.importorskip("aiogram")

from coursebot.run import CRASH_NOTICE_LIMIT, crash_notice

def test_short_crash_notice_is_whole():
    notice = crash_notice("Traceback\nValueError: boom\n")
    assert notice.startswith("Course bot stopped with an error:")
    assert notice.endswith("ValueError: boom\n")

def test_long_crash_notice_keeps_the_tail():
    error_text = "frame\n" * 2000 + "StaleLessonError: lesson changed\n"
    notice = crash_notice(error_text)
    assert len(notice) == CRASH_NOTICE_LIMIT
    assert notice.endswith("StaleLessonError: lesson changed\n")
    assert "\n\n..." in notice
