from coursebot.validation import validate_tasks

def _errors(issues):
    return [i.message for i in issues if i.severity == "error"]

def test_valid_file_has_no_errors():
    payload = {
        "tasks": [
            {"id": "r", "lesson_id": 1, "type": "read", "question": "Read this"},
            {"id": "w", "lesson_id": 1, "type": "write", "question": "Write", "num": 1},
            {"id": "p", "lesson_id": 2, "type": "pic", "question": "Draw", "num": 1},
        ]
    }
    assert validate_tasks(payload) == []

def test_validator_flags_broken_tasks():
    payload = [
        {"id": "a", "lesson_id": 1, "type": "write", "question": "q", "num": 1},
        {"id": "a", "lesson_id": 1, "type": "essay", "question": "q", "num": 2},
        {"lesson_id": 0, "type": "write", "question": "q", "num": 1},
        "oops",
    ]
    errors = _errors(validate_tasks(payload))
    assert "duplicate task id" in errors
    assert "type must be write, read or pic" in errors
    assert "task id is missing" in errors
    assert "lesson number must be a positive integer" in errors
    assert "task is not an object" in errors

def test_validator_warns_on_gaps_and_numbering():
    payload = [
        {"id": "a", "lesson_id": 1, "type": "write", "question": "q", "num": 1},
        {"id": "b", "lesson_id": 1, "type": "write", "question": "", "num": 1},
        {"id": "c", "lesson_id": 3, "type": "pic", "question": "q"},
    ]
    issues = validate_tasks(payload)
    assert not _errors(issues)
    warnings = {(i.message, i.task_id, i.lesson_num) for i in issues if i.severity == "warning"}
    assert ("display number repeats within lesson", "b", 1) in warnings
    assert ("task has no prompt text", "b", 1) in warnings
    assert ("task has no display number", "c", 3) in warnings
    assert ("lesson has no tasks", None, 2) in warnings
