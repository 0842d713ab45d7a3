"""
Cleaning pipeline — drains the ingestion queue through the classifier.

Chunks are processed strictly one at a time with a fixed pause between them
(rate limiting toward the AI provider).  One bad chunk never stops the run:
its failure is recorded on the chunk and the loop moves on.
"""

import asyncio
import logging
import os
from typing import Awaitable, Callable, List, Optional

from generation.schemas import ChunkStatus, ProcessingStats, Question, RawChunk
from ingestion.chunk_queue import IngestionQueue
from services.question_bank import QuestionBank

log = logging.getLogger(__name__)

CLEANING_DELAY_SECONDS = float(os.getenv("CLEANING_DELAY_SECONDS", "0.5"))

Classifier = Callable[[RawChunk], Awaitable[List[Question]]]
AfterChunk = Callable[[], Awaitable[object]]


class CleaningPipeline:
    def __init__(
        self,
        classify: Classifier,
        delay: float = CLEANING_DELAY_SECONDS,
        after_chunk: Optional[AfterChunk] = None,
    ):
        self.classify = classify
        self.delay = delay
        self.after_chunk = after_chunk

    async def run(self, queue: IngestionQueue, bank: QuestionBank) -> ProcessingStats:
        """
        Process every chunk that is pending when the run starts.

        Chunks added mid-run wait for the next run.  Questions are appended
        to the bank as soon as each chunk returns.
        """
        snapshot = queue.snapshot()
        todo = [c for c in snapshot if c.status == ChunkStatus.PENDING]
        stats = ProcessingStats(total_chunks=len(snapshot))
        log.info("Cleaning %d pending chunks (%d total)", len(todo), len(snapshot))

        for i, chunk in enumerate(todo):
            queue.set_status(chunk.id, ChunkStatus.PROCESSING)
            try:
                questions = await self.classify(chunk)
            except Exception as exc:
                log.error("Failed to clean chunk %s (%s): %s", chunk.id, chunk.source_name, exc)
                queue.set_status(chunk.id, ChunkStatus.FAILED, error=str(exc) or type(exc).__name__)
                stats.failed_chunks += 1
            else:
                bank.extend(questions)
                queue.set_status(chunk.id, ChunkStatus.COMPLETED)
                stats.questions_found += len(questions)
                if self.after_chunk is not None:
                    await self.after_chunk()
            stats.processed_chunks += 1

            if self.delay > 0 and i < len(todo) - 1:
                await asyncio.sleep(self.delay)

        log.info(
            "Cleaning finished: %d processed, %d failed, %d questions",
            stats.processed_chunks, stats.failed_chunks, stats.questions_found,
        )
        return stats
