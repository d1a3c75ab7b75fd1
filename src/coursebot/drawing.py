"""Unsaved drawing edits for a pic task, kept as an undo/redo command stack.

Nothing here touches storage; `to_answer_value` produces the compressed
payload that the caller saves as the task answer.
"""
from __future__ import annotations

from dataclasses import dataclass

from .simplify import Stroke, encode_drawing, parse_strokes


@dataclass(frozen=True)
class AddStroke:
    stroke: Stroke

    def apply(self, strokes: list[Stroke]) -> list[Stroke]:
        return strokes + [self.stroke]

    def revert(self, strokes: list[Stroke]) -> list[Stroke]:
        return strokes[:-1]


@dataclass(frozen=True)
class ClearCanvas:
    previous: tuple[Stroke, ...]

    def apply(self, strokes: list[Stroke]) -> list[Stroke]:
        return []

    def revert(self, strokes: list[Stroke]) -> list[Stroke]:
        return list(self.previous)


class StrokeBuffer:
    def __init__(self, initial: list[Stroke] | None = None):
        self._strokes: list[Stroke] = list(initial or [])
        self._done: list[AddStroke | ClearCanvas] = []
        self._undone: list[AddStroke | ClearCanvas] = []

    @classmethod
    def from_answer(cls, value: str | None, *, context: dict | None = None) -> "StrokeBuffer":
        return cls(parse_strokes(value, context=context))

    @property
    def strokes(self) -> list[Stroke]:
        return list(self._strokes)

    @property
    def dirty(self) -> bool:
        return bool(self._done)

    @property
    def can_undo(self) -> bool:
        return bool(self._done)

    @property
    def can_redo(self) -> bool:
        return bool(self._undone)

    def _run(self, command: AddStroke | ClearCanvas) -> None:
        self._strokes = command.apply(self._strokes)
        self._done.append(command)
        self._undone.clear()

    def add_stroke(self, stroke: Stroke) -> None:
        self._run(AddStroke(stroke))

    def clear(self) -> None:
        if self._strokes:
            self._run(ClearCanvas(tuple(self._strokes)))

    def undo(self) -> bool:
        if not self._done:
            return False
        command = self._done.pop()
        self._strokes = command.revert(self._strokes)
        self._undone.append(command)
        return True

    def redo(self) -> bool:
        if not self._undone:
            return False
        command = self._undone.pop()
        self._strokes = command.apply(self._strokes)
        self._done.append(command)
        return True

    def to_answer_value(self) -> str:
        return encode_drawing(self._strokes)
