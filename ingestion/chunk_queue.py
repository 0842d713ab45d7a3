"""
Ingestion queue — raw chunks awaiting AI cleaning, each with its own status.

Status changes are made by the cleaning pipeline (pending → processing →
completed | failed) and by an explicit requeue of failed chunks.  Collectors
may enqueue a chunk that is already failed so the failure stays visible.
"""

import logging
import threading
from collections import Counter
from typing import Dict, Iterable, List, Optional

from generation.schemas import ChunkStatus, RawChunk

log = logging.getLogger(__name__)


class IngestionQueue:
    def __init__(self):
        self._lock = threading.Lock()
        self._chunks: List[RawChunk] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._chunks)

    def add(self, chunks: Iterable[RawChunk]) -> int:
        batch = list(chunks)
        with self._lock:
            self._chunks.extend(batch)
        return len(batch)

    def snapshot(self) -> List[RawChunk]:
        with self._lock:
            return list(self._chunks)

    def get(self, chunk_id: str) -> Optional[RawChunk]:
        with self._lock:
            for chunk in self._chunks:
                if chunk.id == chunk_id:
                    return chunk
        return None

    def pending(self) -> List[RawChunk]:
        return [c for c in self.snapshot() if c.status == ChunkStatus.PENDING]

    def set_status(self, chunk_id: str, status: ChunkStatus, error: Optional[str] = None) -> None:
        with self._lock:
            for i, chunk in enumerate(self._chunks):
                if chunk.id == chunk_id:
                    self._chunks[i] = chunk.model_copy(update={"status": status, "error": error})
                    return
        log.warning("Status update for unknown chunk %s ignored", chunk_id)

    def requeue_failed(self) -> int:
        """Reset failed chunks to pending, counting the retry. Returns how many."""
        count = 0
        with self._lock:
            for i, chunk in enumerate(self._chunks):
                if chunk.status == ChunkStatus.FAILED:
                    self._chunks[i] = chunk.model_copy(update={
                        "status": ChunkStatus.PENDING,
                        "error": None,
                        "retry_count": chunk.retry_count + 1,
                    })
                    count += 1
        if count:
            log.info("Re-queued %d failed chunks", count)
        return count

    def counts(self) -> Dict[str, int]:
        by_status = Counter(c.status.value for c in self.snapshot())
        return {status.value: by_status.get(status.value, 0) for status in ChunkStatus}

    def clear(self) -> None:
        with self._lock:
            self._chunks = []
