from __future__ import annotations

from dataclasses import dataclass

VIEWPORT_LINES = 20
CODE_LOOK_BEHIND = 5


@dataclass(frozen=True)
class ViewWindow:
    start_index: int
    count: int

    @property
    def stop_index(self) -> int:
        return self.start_index + self.count

    def indices(self) -> range:
        return range(self.start_index, self.stop_index)

    def __contains__(self, index: object) -> bool:
        return isinstance(index, int) and self.start_index <= index < self.stop_index


def compute_window(focus_index: int, sequence_length: int, capacity: int, look_behind: int) -> ViewWindow:
    """Slice of a sequence starting ``look_behind`` items before the focus.

    Near the end of a sequence longer than the window the start is pulled
    back to ``sequence_length - capacity - 1`` so the window stays full.
    """
    if sequence_length <= 0 or capacity <= 0:
        return ViewWindow(0, 0)
    start = focus_index - look_behind
    if sequence_length > capacity:
        start = min(start, sequence_length - capacity - 1)
    start = min(max(0, start), sequence_length)
    return ViewWindow(start, min(capacity, sequence_length - start))


def code_window(
    focus_index: int,
    sequence_length: int,
    capacity: int = VIEWPORT_LINES,
    look_behind: int = CODE_LOOK_BEHIND,
) -> ViewWindow:
    """Window over the listing that keeps the next instruction below some context."""
    return compute_window(focus_index, sequence_length, capacity, look_behind)


def stack_window(sequence_length: int, capacity: int = VIEWPORT_LINES) -> ViewWindow:
    """Window anchored to the tail of the stack region."""
    if sequence_length <= 0 or capacity <= 0:
        return ViewWindow(0, 0)
    return ViewWindow(max(0, sequence_length - capacity), min(capacity, sequence_length))
