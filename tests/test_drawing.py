import json

from coursebot.drawing import StrokeBuffer
from coursebot.simplify import Point, Stroke

def _stroke(x: float) -> Stroke:
    return Stroke(points=(Point(x, 0), Point(x, 10)))

def test_undo_redo_add():
    buf = StrokeBuffer()
    buf.add_stroke(_stroke(1))
    buf.add_stroke(_stroke(2))
    assert len(buf.strokes) == 2
    assert buf.undo() is True
    assert buf.strokes == [_stroke(1)]
    assert buf.can_redo
    assert buf.redo() is True
    assert buf.strokes == [_stroke(1), _stroke(2)]
    assert buf.redo() is False

def test_clear_is_undoable():
    buf = StrokeBuffer([_stroke(1), _stroke(2)])
    assert not buf.dirty
    buf.clear()
    assert buf.strokes == []
    assert buf.dirty
    buf.undo()
    assert buf.strokes == [_stroke(1), _stroke(2)]

def test_clear_on_empty_canvas_records_nothing():
    buf = StrokeBuffer()
    buf.clear()
    assert not buf.can_undo

def test_new_stroke_drops_redo_history():
    buf = StrokeBuffer()
    buf.add_stroke(_stroke(1))
    buf.undo()
    buf.add_stroke(_stroke(3))
    assert not buf.can_redo
    assert buf.strokes == [_stroke(3)]

def test_from_answer_and_back():
    stored = json.dumps([{"paths": [{"x": 1, "y": 2}, {"x": 3, "y": 4}], "strokeColor": "red"}])
    buf = StrokeBuffer.from_answer(stored)
    assert len(buf.strokes) == 1
    buf.add_stroke(_stroke(5))
    data = json.loads(buf.to_answer_value())
    assert len(data) == 2
    assert data[0]["strokeColor"] == "red"

def test_from_malformed_answer_starts_empty():
    buf = StrokeBuffer.from_answer("{broken", context={"task_id": "p1"})
    assert buf.strokes == []
