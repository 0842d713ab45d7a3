"""
Bulk Generator — many papers in one go, bundled into a zip.

Two modes:
  - multi-stream: one paper + solutions per stream
  - multi-set:    N independently shuffled sets (A, B, C…) from one stream

A stream or set that fails is recorded in BulkResult.errors and the loop
moves on; only an empty result is an error for the caller.
"""

import logging
import random
import re
import zipfile
from datetime import date
from io import BytesIO
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from database.store import QuestionStore
from generation.errors import BulkGenerationError, ConfigMismatchError, PersistenceError
from generation.paper_exporter import RichContentRenderer, render_paper_pair
from generation.paper_selector import check_satisfiable, select_questions
from generation.schemas import PaperConfig, Question
from services.question_bank import QuestionBank

log = logging.getLogger(__name__)

CURRENT_SESSION = "Current Session"
CURRENT_SESSION_STEM = "Current_Session"
CURRENT_SESSION_SUBJECT = "Mixed Questions"


class BulkFile(BaseModel):
    filename: str
    content: bytes


class BulkResult(BaseModel):
    files: List[BulkFile] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    @property
    def paper_count(self) -> int:
        return len(self.files) // 2

    def raise_if_empty(self) -> "BulkResult":
        if not self.files:
            if self.errors:
                raise BulkGenerationError("Generation failed", errors=self.errors)
            raise BulkGenerationError("No files generated. Check logs.")
        return self


# ─── Helpers ───────────────────────────────────────────────────────────────────

def is_current_session(stream: str) -> bool:
    return CURRENT_SESSION in stream


def file_stem(stream: str) -> str:
    if is_current_session(stream):
        return CURRENT_SESSION_STEM
    return re.sub(r"\s+", "_", stream.strip())


def set_label(n: int) -> str:
    """1 → A, 26 → Z, 27 → AA."""
    label = ""
    while n > 0:
        n, rem = divmod(n - 1, 26)
        label = chr(65 + rem) + label
    return label


def bundle_name(on: Optional[date] = None) -> str:
    return f"Bulk_Question_Papers_{(on or date.today()).isoformat()}.zip"


def build_zip_bundle(files: List[BulkFile]) -> bytes:
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for f in files:
            zf.writestr(f.filename, f.content)
    return buffer.getvalue()


# ─── Controller ────────────────────────────────────────────────────────────────

class BulkGenerationController:
    def __init__(
        self,
        store: Optional[QuestionStore],
        bank: QuestionBank,
        rng: Optional[random.Random] = None,
        renderer: Optional[RichContentRenderer] = None,
    ):
        self.store = store
        self.bank = bank
        self.rng = rng or random.Random()
        self.renderer = renderer

    def _resolve_pool(self, stream: str) -> List[Question]:
        if is_current_session(stream):
            pool = self.bank.snapshot()
            log.info("BulkGen: Using Current Session (%d Qs)", len(pool))
            return pool
        if self.store is None or not self.store.is_connected:
            raise PersistenceError("Question store not configured")
        pool = self.store.fetch_by_stream(stream)
        log.info("BulkGen: Fetched %d Qs for %s", len(pool), stream)
        return pool

    def _render(self, config: PaperConfig, pool: List[Question]) -> Tuple[bytes, bytes]:
        selection = check_satisfiable(select_questions(pool, config, self.rng))
        return render_paper_pair(selection, config, renderer=self.renderer)

    def multi_stream(self, config: PaperConfig, streams: List[str]) -> BulkResult:
        log.info("Starting bulk generation (multi-stream, %d streams)", len(streams))
        result = BulkResult()
        for stream in streams:
            try:
                pool = self._resolve_pool(stream)
            except PersistenceError as exc:
                log.error("Fetch failed for %s: %s", stream, exc)
                result.errors.append(f"Stream '{stream}': Fetch failed ({exc})")
                continue
            if not pool:
                result.errors.append(f"Stream '{stream}': No questions found.")
                continue

            subject = CURRENT_SESSION_SUBJECT if is_current_session(stream) else stream
            try:
                qp, sol = self._render(config.renamed(subject), pool)
            except ConfigMismatchError as exc:
                result.errors.append(f"Stream '{stream}': {exc}")
                continue
            except Exception as exc:
                log.error("PDF generation failed for %s: %s", stream, exc)
                result.errors.append(f"Stream '{stream}': PDF Generation failed ({exc})")
                continue

            stem = file_stem(stream)
            result.files.append(BulkFile(filename=f"{stem}_QP.pdf", content=qp))
            result.files.append(BulkFile(filename=f"{stem}_SOL.pdf", content=sol))

        log.info("Bulk generation done: %d papers, %d errors", result.paper_count, len(result.errors))
        return result

    def multi_set(self, config: PaperConfig, target_stream: str, set_count: int) -> BulkResult:
        """
        N sets from one pool. An empty pool or a config that selects nothing
        raises ConfigMismatchError before any rendering starts.
        """
        log.info("Starting bulk generation (multi-set, %d sets of %s)", set_count, target_stream)
        pool = self._resolve_pool(target_stream)
        if not pool:
            raise ConfigMismatchError(f"No questions found for stream: {target_stream}.")

        check_satisfiable(select_questions(pool, config, self.rng))

        subject_base = CURRENT_SESSION_SUBJECT if is_current_session(target_stream) else target_stream
        stem = file_stem(target_stream)
        result = BulkResult()
        for i in range(1, set_count + 1):
            label = set_label(i)
            set_config = config.renamed(f"{subject_base} - Set {label}")
            try:
                qp, sol = self._render(set_config, pool)
            except Exception as exc:
                log.error("Failed to generate set %s: %s", label, exc)
                result.errors.append(f"Set {label}: {exc}")
                continue
            result.files.append(BulkFile(filename=f"{stem}_Set_{label}_QP.pdf", content=qp))
            result.files.append(BulkFile(filename=f"{stem}_Set_{label}_SOL.pdf", content=sol))

        log.info("Bulk generation done: %d sets, %d errors", result.paper_count, len(result.errors))
        return result
