"""
Bank session — the one object the HTTP layer talks to.

Owns the in-memory state of a working session (ingestion queue, question
bank, auto-save offset, active stream) and wires the pipelines to it.  The
question store is created outside and injected.
"""

import asyncio
import logging
import random
from typing import AsyncIterator, Dict, List, Literal, Optional

from pydantic import BaseModel

from database.autosave import AUTO_SAVE_THRESHOLD, AutoSaveController
from database.store import QuestionStore
from generation.bulk_generator import (
    BulkFile, BulkGenerationController, BulkResult, build_zip_bundle, bundle_name,
)
from generation.errors import ConfirmationRequiredError, NotFoundError, PersistenceError
from generation.paper_exporter import (
    RichContentRenderer, paper_file_stem, render_paper_pair,
)
from generation.paper_selector import check_satisfiable, require_complete, select_questions
from generation.schemas import PaperConfig, ProcessingStats, Question, RawChunk, SelectionResult
from generation.sheet_exporter import export_bank_csv, export_log_csv, export_paper_xlsx
from ingestion.chunk_queue import IngestionQueue
from ingestion.cleaning_pipeline import CLEANING_DELAY_SECONDS, Classifier, CleaningPipeline
from ingestion.pdf_collector import extract_chunks_from_pdf
from ingestion.scraper import ScraperConfig, scrape_urls
from ingestion.topic_generator import (
    TOPIC_BATCH_SIZE, TopicEvent, TopicGenerationOrchestrator, TopicGenerator, TopicPlanner,
)
from services.question_bank import QuestionBank
from services.run_log import RunLogHandler

log = logging.getLogger(__name__)

ZIP_MEDIA_TYPE = "application/zip"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class FileOutput(BaseModel):
    filename: str
    content: bytes
    media_type: str
    shortfall: Optional[str] = None  # set when fewer questions were available than requested


class SessionStatus(BaseModel):
    bank_size: int
    unsaved: int
    is_saving: bool
    is_processing: bool
    active_stream: Optional[str]
    store_connected: bool
    chunks: Dict[str, int]


class BankSession:
    def __init__(
        self,
        store: Optional[QuestionStore],
        classify: Classifier,
        generate_for_topic: TopicGenerator,
        plan_topics: Optional[TopicPlanner] = None,
        rng: Optional[random.Random] = None,
        renderer: Optional[RichContentRenderer] = None,
        run_log: Optional[RunLogHandler] = None,
        cleaning_delay: float = CLEANING_DELAY_SECONDS,
        batch_size: int = TOPIC_BATCH_SIZE,
        auto_save_threshold: int = AUTO_SAVE_THRESHOLD,
    ):
        self.store = store
        self.rng = rng or random.Random()
        self.renderer = renderer
        self.run_log = run_log or RunLogHandler()
        self.queue = IngestionQueue()
        self.bank = QuestionBank()
        self.active_stream: Optional[str] = None

        self.autosave = AutoSaveController(self.bank, store, threshold=auto_save_threshold)
        self.pipeline = CleaningPipeline(classify, delay=cleaning_delay, after_chunk=self.autosave.trigger)
        self.topics = TopicGenerationOrchestrator(
            generate_for_topic, plan_topics, batch_size=batch_size, rng=self.rng,
        )
        self.bulk = BulkGenerationController(store, self.bank, rng=self.rng, renderer=renderer)
        self._cleaning = asyncio.Lock()

    # ─── Ingestion ─────────────────────────────────────────────────────────────

    def add_chunks(self, chunks: List[RawChunk]) -> int:
        added = self.queue.add(chunks)
        log.info("Added %d chunks to queue", added)
        return added

    async def add_pdf(self, data: bytes, name: str) -> int:
        """Parse off the event loop; PyMuPDF holds the thread for the whole document."""
        chunks = await asyncio.to_thread(extract_chunks_from_pdf, data, name)
        return self.add_chunks(chunks)

    async def add_scraped(self, urls: List[str], config: Optional[ScraperConfig] = None) -> int:
        return self.add_chunks(await scrape_urls(urls, config))

    async def add_questions(self, questions: List[Question]) -> int:
        """Already-classified questions go straight into the bank."""
        added = self.bank.extend(questions)
        if questions and questions[0].stream:
            self.active_stream = questions[0].stream
        log.info("Added %d direct questions", added)
        await self.autosave.trigger()
        return added

    @property
    def is_processing(self) -> bool:
        return self._cleaning.locked()

    async def start_cleaning(self) -> ProcessingStats:
        """Run the cleaning pipeline; overlapping calls queue behind the running one."""
        async with self._cleaning:
            log.info("Started batch processing")
            stats = await self.pipeline.run(self.queue, self.bank)
        await self.autosave.trigger()
        return stats

    def requeue_failed(self) -> int:
        return self.queue.requeue_failed()

    # ─── Topic generation ──────────────────────────────────────────────────────

    async def topic_events(self, stream: str, topics: Optional[List[str]] = None) -> AsyncIterator[TopicEvent]:
        """Generate by topic, adding each result to the bank before passing it on."""
        self.active_stream = stream
        async for event in self.topics.stream(stream, topics):
            if event.kind == "questions":
                self.bank.extend(event.questions)
                await self.autosave.trigger()
            yield event

    # ─── Persistence ───────────────────────────────────────────────────────────

    def _require_store(self) -> QuestionStore:
        if self.store is None or not self.store.is_connected:
            raise PersistenceError("Question store not configured")
        return self.store

    def list_streams(self) -> List[str]:
        return self._require_store().list_streams()

    def load_stream(
        self,
        stream: str,
        mode: Literal["replace", "merge"] = "replace",
        confirm: bool = False,
    ) -> int:
        """
        Bring a persisted stream into the bank.

        replace: the bank becomes exactly the stream; needs confirm=True when
                 unsaved questions would be lost.
        merge:   stream questions not already in the bank are appended.
        """
        store = self._require_store()
        questions = store.fetch_by_stream(stream)
        if not questions:
            raise NotFoundError(f"No questions found in DB for stream '{stream}'")

        if mode == "merge":
            present = {q.qid for q in self.bank.snapshot()}
            added = self.bank.extend(q for q in questions if q.qid not in present)
            log.info("Merged %d questions from DB for %s", added, stream)
        else:
            if self.autosave.unsaved_count > 0 and not confirm:
                raise ConfirmationRequiredError(
                    f"Loading '{stream}' will discard {self.autosave.unsaved_count} unsaved questions"
                )
            self.bank.replace(questions)
            self.autosave.mark_saved(len(questions))
            added = len(questions)
            log.info("Loaded %d questions from DB for %s", added, stream)
        self.active_stream = stream
        return added

    async def save_now(self) -> int:
        self._require_store()
        return await self.autosave.save_now()

    # ─── Papers ────────────────────────────────────────────────────────────────

    def select(self, config: PaperConfig, require_full: bool = False) -> SelectionResult:
        selection = check_satisfiable(select_questions(self.bank.snapshot(), config, self.rng))
        if require_full:
            require_complete(selection)
        return selection

    def generate_paper(self, config: PaperConfig, fmt: Literal["pdf", "xlsx"] = "pdf",
                       require_full: bool = False) -> FileOutput:
        """PDF: zip of question paper + solutions. XLSX: the spreadsheet."""
        selection = self.select(config, require_full)
        shortfall = None
        if selection.is_short:
            shortfall = selection.shortfall_summary()
            log.warning(
                "Paper %s is short: %d of %d questions (%s)",
                config.subject_name, len(selection.questions), selection.total_requested, shortfall,
            )
        stem = paper_file_stem(config.subject_name)
        if fmt == "xlsx":
            return FileOutput(
                filename=f"{stem}.xlsx",
                content=export_paper_xlsx(selection, config),
                media_type=XLSX_MEDIA_TYPE,
                shortfall=shortfall,
            )
        qp, sol = render_paper_pair(selection, config, renderer=self.renderer)
        bundle = build_zip_bundle([
            BulkFile(filename=f"{stem}_QP.pdf", content=qp),
            BulkFile(filename=f"{stem}_SOLUTIONS.pdf", content=sol),
        ])
        return FileOutput(
            filename=f"{stem}.zip", content=bundle, media_type=ZIP_MEDIA_TYPE, shortfall=shortfall,
        )

    def bulk_multi_stream(self, config: PaperConfig, streams: List[str]) -> BulkResult:
        return self.bulk.multi_stream(config, streams).raise_if_empty()

    def bulk_multi_set(self, config: PaperConfig, target_stream: str, set_count: int) -> BulkResult:
        return self.bulk.multi_set(config, target_stream, set_count).raise_if_empty()

    @staticmethod
    def bundle(result: BulkResult) -> FileOutput:
        return FileOutput(
            filename=bundle_name(),
            content=build_zip_bundle(result.files),
            media_type=ZIP_MEDIA_TYPE,
        )

    # ─── Exports / housekeeping ────────────────────────────────────────────────

    def bank_csv(self) -> str:
        return export_bank_csv(self.bank.snapshot())

    def log_csv(self) -> str:
        return export_log_csv(self.run_log.entries())

    def clear(self) -> None:
        self.queue.clear()
        self.bank.clear()
        self.autosave.reset()
        self.run_log.clear()
        self.active_stream = None
        log.info("Session cleared")

    def status(self) -> SessionStatus:
        return SessionStatus(
            bank_size=len(self.bank),
            unsaved=self.autosave.unsaved_count,
            is_saving=self.autosave.is_saving,
            is_processing=self.is_processing,
            active_stream=self.active_stream,
            store_connected=self.store is not None and self.store.is_connected,
            chunks=self.queue.counts(),
        )
