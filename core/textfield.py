from __future__ import annotations

from enum import Enum
from typing import List

MAX_INPUT_LENGTH = 20


class EditKey(Enum):
    BACKSPACE = "Backspace"
    DELETE = "Delete"
    LEFT = "Left"
    RIGHT = "Right"
    HOME = "Home"
    END = "End"
    TAB = "Tab"
    RETURN = "Return"


class TextFieldEditor:
    """Single-line text buffer with a movable cursor.

    The buffer holds at most ``capacity - 1`` characters; the last slot is
    kept free the way a fixed, terminated character array would.
    """

    def __init__(self, capacity: int = MAX_INPUT_LENGTH) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._chars: List[str] = []
        self.cursor = 0

    @property
    def text(self) -> str:
        return "".join(self._chars)

    @property
    def length(self) -> int:
        return len(self._chars)

    @property
    def max_length(self) -> int:
        return self.capacity - 1

    def is_empty(self) -> bool:
        return not self._chars

    def insert(self, ch: str) -> bool:
        if len(ch) != 1:
            raise ValueError(f"Expected a single character, got {ch!r}")
        if self.length >= self.max_length:
            return False
        self._chars.insert(self.cursor, ch)
        self.cursor += 1
        return True

    def insert_text(self, text: str) -> int:
        inserted = 0
        for ch in text:
            if not self.insert(ch):
                break
            inserted += 1
        return inserted

    def delete_before(self) -> bool:
        if self.cursor == 0:
            return False
        del self._chars[self.cursor - 1]
        self.cursor -= 1
        return True

    def delete_at(self) -> bool:
        if self.cursor >= self.length:
            return False
        del self._chars[self.cursor]
        return True

    def move_left(self) -> None:
        if self.cursor > 0:
            self.cursor -= 1

    def move_right(self) -> None:
        if self.cursor < self.length:
            self.cursor += 1

    def move_home(self) -> None:
        self.cursor = 0

    def move_end(self) -> None:
        self.cursor = self.length

    def clear(self) -> None:
        self._chars = []
        self.cursor = 0

    def set_text(self, text: str) -> None:
        self._chars = list(text[: self.max_length])
        self.cursor = self.length

    def apply(self, key: EditKey) -> bool:
        """Apply an editing key. Returns False for keys the editor does not own."""
        if key == EditKey.BACKSPACE:
            self.delete_before()
        elif key == EditKey.DELETE:
            self.delete_at()
        elif key == EditKey.LEFT:
            self.move_left()
        elif key == EditKey.RIGHT:
            self.move_right()
        elif key == EditKey.HOME:
            self.move_home()
        elif key == EditKey.END:
            self.move_end()
        else:
            return False
        return True

    def __repr__(self) -> str:
        return f"TextFieldEditor(text={self.text!r}, cursor={self.cursor}, capacity={self.capacity})"
