"""
Run log — keeps this session's log records so they can be downloaded as CSV.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

MAX_ENTRIES = 5000


class RunLogHandler(logging.Handler):
    """
    Logging handler that remembers records as plain dicts
    (timestamp, level, source, message, meta).

    Attach to the root logger; `extra={"meta": {...}}` on a log call is
    serialised into the meta column.
    """

    def __init__(self, level: int = logging.INFO, max_entries: int = MAX_ENTRIES):
        super().__init__(level)
        self.max_entries = max_entries
        self._entries: List[Dict[str, Optional[str]]] = []
        self._entries_lock = threading.Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            meta = getattr(record, "meta", None)
            entry = {
                "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": record.levelname,
                "source": record.name,
                "message": record.getMessage(),
                "meta": json.dumps(meta, default=str) if meta is not None else None,
            }
        except Exception:
            self.handleError(record)
            return
        with self._entries_lock:
            self._entries.append(entry)
            if len(self._entries) > self.max_entries:
                del self._entries[: len(self._entries) - self.max_entries]

    def entries(self) -> List[Dict[str, Optional[str]]]:
        with self._entries_lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._entries_lock:
            self._entries = []
