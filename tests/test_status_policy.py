from coursebot.records import ACCEPTED, CORRECTED, DONE, IN_PROGRESS, REJECTED, AnswerRecord, TaskDefinition
from coursebot.status_policy import (
    can_submit_corrected_lesson,
    can_submit_lesson,
    compute_next_status,
    default_unset_to_done,
    incomplete_tasks,
    task_is_complete,
)

def _task(task_id: str, task_type: str = "write", lesson_num: int = 1) -> TaskDefinition:
    return TaskDefinition(id=task_id, lesson_num=lesson_num, type=task_type, prompt="p", num=1)

def test_next_status_table():
    assert compute_next_status(None) == DONE
    assert compute_next_status(IN_PROGRESS) == DONE
    assert compute_next_status(DONE) == DONE
    assert compute_next_status(REJECTED) == CORRECTED
    assert compute_next_status(CORRECTED) == CORRECTED
    assert compute_next_status(ACCEPTED) == ACCEPTED

def test_forced_status_wins():
    assert compute_next_status(ACCEPTED, REJECTED) == REJECTED
    assert compute_next_status(None, ACCEPTED) == ACCEPTED
    assert compute_next_status(REJECTED, DONE) == DONE

def test_task_completion_by_type():
    write = _task("w")
    read = _task("r", "read")
    assert not task_is_complete(write, None)
    assert not task_is_complete(write, AnswerRecord("w"))
    assert task_is_complete(write, AnswerRecord("w", status=CORRECTED))
    assert not task_is_complete(write, AnswerRecord("w", status=REJECTED))
    assert task_is_complete(read, AnswerRecord("r", status=DONE))
    assert not task_is_complete(read, AnswerRecord("r", status=ACCEPTED))

def test_submit_readiness_needs_every_task():
    tasks = [_task("w1"), _task("w2")]
    answers = [AnswerRecord("w1", "x", DONE)]
    assert incomplete_tasks(tasks, answers) == ["w2"]
    assert not can_submit_lesson(tasks, answers)
    assert can_submit_lesson(tasks, answers + [AnswerRecord("w2", "y", DONE)])

def test_corrected_submit_requires_tasks():
    assert not can_submit_corrected_lesson([], [])
    tasks = [_task("w1")]
    assert not can_submit_corrected_lesson(tasks, [AnswerRecord("w1", status=REJECTED)])
    assert can_submit_corrected_lesson(tasks, [AnswerRecord("w1", status=CORRECTED)])

def test_defaulting_touches_only_existing_graded_answers():
    tasks = [_task("w1"), _task("p1", "pic"), _task("r1", "read"), _task("w2")]
    answers = (
        AnswerRecord("w1", "text"),
        AnswerRecord("p1", "[]", REJECTED),
        AnswerRecord("r1"),
    )
    out = default_unset_to_done(tasks, answers)
    by_id = {a.task_id: a for a in out}
    assert by_id["w1"].status == DONE
    assert by_id["w1"].value == "text"
    assert by_id["p1"].status == REJECTED
    assert by_id["r1"].status is None
    assert "w2" not in by_id

def test_three_write_tasks_in_any_complete_state():
    tasks = [_task("w1"), _task("w2"), _task("w3")]
    answers = [
        AnswerRecord("w1", "a", DONE),
        AnswerRecord("w2", "b", CORRECTED),
        AnswerRecord("w3", "c", ACCEPTED),
    ]
    assert can_submit_lesson(tasks, answers)
    assert not can_submit_lesson(tasks, answers[:2])
