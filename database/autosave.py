"""
Auto-save — persists the unsaved suffix of the bank once it grows past a threshold.

Only the questions appended since the last successful save are written.  A
failed write leaves the offset where it was; the next trigger tries again
with the (now larger) suffix.
"""

import asyncio
import logging
import os
from typing import Optional

from database.store import QuestionStore
from generation.errors import PersistenceError
from services.question_bank import QuestionBank

log = logging.getLogger(__name__)

AUTO_SAVE_THRESHOLD = int(os.getenv("AUTO_SAVE_THRESHOLD", "10"))


class AutoSaveController:
    def __init__(
        self,
        bank: QuestionBank,
        store: Optional[QuestionStore],
        threshold: int = AUTO_SAVE_THRESHOLD,
    ):
        self.bank = bank
        self.store = store
        self.threshold = threshold
        self.last_saved = 0
        self._saving = False
        # Bumped whenever the bank is replaced or cleared; a save that started
        # under an older generation must not move the offset.
        self._generation = 0

    @property
    def is_saving(self) -> bool:
        return self._saving

    @property
    def unsaved_count(self) -> int:
        return max(0, len(self.bank) - self.last_saved)

    def mark_saved(self, count: int) -> None:
        """Everything up to `count` is already in the store (e.g. just loaded from it)."""
        self.last_saved = count
        self._generation += 1

    def reset(self) -> None:
        self.last_saved = 0
        self._generation += 1

    def _can_save(self) -> bool:
        return self.store is not None and self.store.is_connected and not self._saving

    async def maybe_save(self) -> int:
        """Save if the unsaved count reached the threshold. Returns questions written."""
        if self.unsaved_count < self.threshold or not self._can_save():
            return 0
        return await self.save_now()

    async def save_now(self) -> int:
        """
        Write the unsaved suffix regardless of the threshold.

        Concurrent calls while a save is in flight are no-ops. Raises
        PersistenceError when the store rejects the write.
        """
        if not self._can_save():
            return 0
        self._saving = True
        try:
            generation = self._generation
            end = len(self.bank)
            pending = self.bank.since(self.last_saved)[: end - self.last_saved]
            if not pending:
                return 0
            log.info("Auto-saving %d questions", len(pending))
            written = await asyncio.to_thread(self.store.upsert, pending)
            if generation == self._generation:
                self.last_saved = end
            else:
                log.info("Bank was replaced during save, keeping offset %d", self.last_saved)
            return written
        finally:
            self._saving = False

    async def trigger(self) -> int:
        """maybe_save() that logs persistence failures instead of raising."""
        try:
            return await self.maybe_save()
        except PersistenceError as exc:
            log.error("Auto-save failed, will retry on next trigger: %s", exc)
            return 0
