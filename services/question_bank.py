"""
In-memory question bank for one working session.

Append-only apart from bulk replace (loading a stream) and clear.  Every
read hands out a copy so callers never observe a half-applied extend.
"""

import threading
from typing import Iterable, List

from generation.schemas import Question


class QuestionBank:
    def __init__(self, questions: Iterable[Question] = ()):
        self._lock = threading.Lock()
        self._items: List[Question] = list(questions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def append(self, question: Question) -> None:
        with self._lock:
            self._items.append(question)

    def extend(self, questions: Iterable[Question]) -> int:
        batch = list(questions)
        with self._lock:
            self._items.extend(batch)
        return len(batch)

    def replace(self, questions: Iterable[Question]) -> None:
        batch = list(questions)
        with self._lock:
            self._items = batch

    def clear(self) -> None:
        with self._lock:
            self._items = []

    def snapshot(self) -> List[Question]:
        with self._lock:
            return list(self._items)

    def since(self, offset: int) -> List[Question]:
        """Questions appended after the first `offset` entries."""
        with self._lock:
            return self._items[offset:]
