from coursebot.progress import badge, detect_current_lesson, first_lesson_to_review

def test_current_lesson_is_first_open_one():
    assert detect_current_lesson({}, 5) == 1
    assert detect_current_lesson({1: "accepted", 2: "done"}, 5) == 3
    assert detect_current_lesson({1: "accepted", 2: "rejected", 3: "done"}, 5) == 2

def test_current_lesson_when_everything_is_started():
    assert detect_current_lesson({1: "done", 2: "accepted"}, 2) == 2
    assert detect_current_lesson({}, 0) == 1

def test_review_helpers():
    status_map = {3: "corrected", 1: "accepted", 2: "done", 4: "in_progress"}
    assert first_lesson_to_review(status_map) == 2
    assert first_lesson_to_review({1: "accepted"}) is None

def test_badges():
    assert badge(None) == "⚪"
    assert badge("accepted") == "⭐"
    assert badge("unknown") == badge(None)
