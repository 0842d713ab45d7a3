"""
Question Store — persistence client for the question archive.

Constructed once per process and passed to whatever needs it (auto-save,
stream loading, bulk generation).  Connection changes are explicit:
connect / reconfigure / disconnect.  Nothing re-initialises implicitly.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from database import database
from database.database import Base
from database.models import QuestionRow
from generation.errors import PersistenceError
from generation.schemas import Question

log = logging.getLogger(__name__)


class QuestionStore:
    """Upsert / query access to the persisted question archive."""

    def __init__(self, url: Optional[str] = None):
        self._url: Optional[str] = None
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        if url:
            self.connect(url)

    @classmethod
    def from_env(cls) -> "QuestionStore":
        return cls(database.resolve_database_url())

    # ─── Connection lifecycle ──────────────────────────────────────────────────

    @property
    def url(self) -> Optional[str]:
        return self._url

    @property
    def is_connected(self) -> bool:
        return self._engine is not None

    def connect(self, url: str) -> None:
        """Open the engine and make sure the archive table exists."""
        try:
            engine = database.make_engine(url)
            Base.metadata.create_all(bind=engine)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not connect to question store: {exc}") from exc
        self._engine = engine
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        self._url = url
        log.info("Question store connected (%s)", engine.url.render_as_string(hide_password=True))

    def reconfigure(self, url: str) -> None:
        self.disconnect()
        self.connect(url)

    def disconnect(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            log.info("Question store disconnected")
        self._engine = None
        self._session_factory = None
        self._url = None

    @contextmanager
    def _session(self) -> Iterator[Session]:
        if self._session_factory is None:
            raise PersistenceError("Question store not configured")
        db = self._session_factory()
        try:
            yield db
        finally:
            db.close()

    # ─── Operations ────────────────────────────────────────────────────────────

    def upsert(self, questions: Sequence[Question]) -> int:
        """Insert or overwrite questions keyed by qid. Returns the number written."""
        if not questions:
            return 0
        log.info("Attempting to save %d questions to DB", len(questions))
        with self._session() as db:
            try:
                for q in questions:
                    db.merge(QuestionRow.from_question(q))
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                log.error("Failed to save questions: %s", exc)
                raise PersistenceError(f"Failed to save questions: {exc}") from exc
        log.info("Questions saved successfully")
        return len(questions)

    def fetch_by_stream(self, stream: str) -> List[Question]:
        """Case-insensitive partial match on the stream tag."""
        with self._session() as db:
            try:
                rows = db.execute(
                    select(QuestionRow)
                    .where(QuestionRow.stream.ilike(f"%{stream}%"))
                    .order_by(QuestionRow.created_at, QuestionRow.qid)
                ).scalars().all()
            except SQLAlchemyError as exc:
                log.error("Failed to fetch questions for %s: %s", stream, exc)
                raise PersistenceError(f"Failed to fetch questions: {exc}") from exc
            return [row.to_question() for row in rows]

    def list_streams(self) -> List[str]:
        with self._session() as db:
            try:
                streams = db.execute(
                    select(QuestionRow.stream).distinct().order_by(QuestionRow.stream)
                ).scalars().all()
            except SQLAlchemyError as exc:
                raise PersistenceError(f"Failed to list streams: {exc}") from exc
        return [s for s in streams if s]

    def count(self) -> int:
        with self._session() as db:
            return db.query(QuestionRow).count()
