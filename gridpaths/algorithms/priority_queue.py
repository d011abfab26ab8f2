"""Array-backed binary min-heap used as the frontier of every search."""
from __future__ import annotations

from typing import Generic, List, Tuple, TypeVar

T = TypeVar("T")


class PriorityQueue(Generic[T]):
    """Min-heap keyed on a numeric priority.

    Items with equal priority come out in no particular order.
    """

    def __init__(self) -> None:
        self._data: List[Tuple[float, T]] = []

    def __len__(self) -> int:
        return len(self._data)

    def __bool__(self) -> bool:
        return bool(self._data)

    def is_empty(self) -> bool:
        return not self._data

    def push(self, item: T, priority: float) -> None:
        self._data.append((priority, item))
        self._bubble_up()

    def pop(self) -> T:
        if not self._data:
            raise IndexError("pop from empty priority queue")
        top = self._data[0][1]
        last = self._data.pop()
        if self._data:
            self._data[0] = last
            self._bubble_down()
        return top

    def peek(self) -> T:
        if not self._data:
            raise IndexError("peek at empty priority queue")
        return self._data[0][1]

    # --------------------------------------------------
    def _bubble_up(self) -> None:
        data = self._data
        idx = len(data) - 1
        entry = data[idx]
        while idx > 0:
            parent_idx = (idx - 1) // 2
            parent = data[parent_idx]
            if entry[0] >= parent[0]:
                break
            data[idx] = parent
            idx = parent_idx
        data[idx] = entry

    def _bubble_down(self) -> None:
        data = self._data
        n = len(data)
        idx = 0
        entry = data[0]
        while True:
            left = 2 * idx + 1
            right = left + 1
            smallest = idx
            smallest_priority = entry[0]
            if left < n and data[left][0] < smallest_priority:
                smallest = left
                smallest_priority = data[left][0]
            if right < n and data[right][0] < smallest_priority:
                smallest = right
            if smallest == idx:
                break
            data[idx] = data[smallest]
            idx = smallest
        data[idx] = entry
