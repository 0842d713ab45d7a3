"""
Pydantic schemas for the question bank and paper generation pipeline.

Layer 1: Question / RawChunk       — what ingestion produces and the bank stores
Layer 2: PaperConfig / PaperSection — what a user asks for
Layer 3: SelectionResult            — what the selector hands to the exporters
"""

import enum
import uuid
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def new_id() -> str:
    return uuid.uuid4().hex


# ─── Enums ─────────────────────────────────────────────────────────────────────

class QuestionKind(str, enum.Enum):
    """Question kind: single-answer choice, multi-answer choice, numerical."""
    MCQ = "MCQ"
    MSQ = "MSQ"
    NAT = "NAT"

    @property
    def has_options(self) -> bool:
        return self is not QuestionKind.NAT


class SourceType(str, enum.Enum):
    PDF = "PDF"
    WEB = "WEB"
    SCRAPER = "SCRAPER"
    DB = "DB"


class ChunkStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# ─── Questions ─────────────────────────────────────────────────────────────────

OPTION_KEYS = ("a", "b", "c", "d")


class Options(BaseModel):
    """The four fixed option slots. Values may be empty, keys never change."""
    model_config = ConfigDict(frozen=True)

    a: str = ""
    b: str = ""
    c: str = ""
    d: str = ""

    def labelled(self) -> List[tuple]:
        return [(key, getattr(self, key)) for key in OPTION_KEYS]

    @property
    def is_blank(self) -> bool:
        return not any(getattr(self, key).strip() for key in OPTION_KEYS)


class Question(BaseModel):
    """
    One classified exam item.

    Immutable once created: the bank is append-only and questions are never
    edited in place. NAT questions always carry blank options.
    """
    model_config = ConfigDict(frozen=True)

    qid: str = Field(default_factory=new_id)
    kind: QuestionKind = QuestionKind.MCQ
    stream: Optional[str] = None
    topic: Optional[str] = None
    question: str
    options: Options = Field(default_factory=Options)
    answer: Optional[str] = None
    explanation: Optional[str] = None
    source_type: SourceType
    source_name: str = ""
    page_or_url: str = ""
    image_url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _blank_nat_options(cls, data):
        if isinstance(data, dict) and data.get("kind") == QuestionKind.NAT:
            data = {**data, "options": Options()}
        return data

    def with_tags(self, stream: Optional[str] = None, topic: Optional[str] = None) -> "Question":
        """Copy with stream/topic tags replaced (creation-time enrichment only)."""
        update = {}
        if stream is not None:
            update["stream"] = stream
        if topic is not None:
            update["topic"] = topic
        return self.model_copy(update=update)


class RawChunk(BaseModel):
    """A unit of unprocessed source text awaiting AI cleaning."""
    id: str = Field(default_factory=new_id)
    text: str
    source_type: SourceType
    source_name: str = ""
    page_or_url: str = ""
    status: ChunkStatus = ChunkStatus.PENDING
    error: Optional[str] = None
    retry_count: int = 0


class ProcessingStats(BaseModel):
    total_chunks: int = 0
    processed_chunks: int = 0
    questions_found: int = 0
    failed_chunks: int = 0


# ─── Paper configuration ───────────────────────────────────────────────────────

class PaperSection(BaseModel):
    """One configured slice of a paper."""
    kind: QuestionKind
    count: int = Field(..., ge=0)
    marks_per_question: float = Field(1, ge=0)
    negative_marks: float = Field(0, ge=0)

    @property
    def section_marks(self) -> float:
        return self.count * self.marks_per_question


class PaperConfig(BaseModel):
    """Section order defines both selection order and rendering order."""
    subject_name: str
    duration_mins: int = Field(180, ge=0)
    sections: List[PaperSection] = Field(default_factory=list)

    @property
    def total_questions(self) -> int:
        return sum(s.count for s in self.sections)

    @property
    def total_marks(self) -> float:
        return sum(s.section_marks for s in self.sections)

    def renamed(self, subject_name: str) -> "PaperConfig":
        return self.model_copy(update={"subject_name": subject_name})


# ─── Selection output ──────────────────────────────────────────────────────────

class KindStats(BaseModel):
    available: int
    requested: int


class SectionSelection(BaseModel):
    """Questions drawn for one configured section."""
    index: int
    section: PaperSection
    questions: List[Question] = Field(default_factory=list)
    available: int = 0

    @property
    def is_short(self) -> bool:
        return len(self.questions) < self.section.count


class SelectionResult(BaseModel):
    sections: List[SectionSelection] = Field(default_factory=list)
    stats: Dict[QuestionKind, KindStats] = Field(default_factory=dict)

    @property
    def questions(self) -> List[Question]:
        """Flattened selection in section order."""
        return [q for sel in self.sections for q in sel.questions]

    @property
    def total_requested(self) -> int:
        return sum(sel.section.count for sel in self.sections)

    @property
    def is_empty(self) -> bool:
        return not any(sel.questions for sel in self.sections)

    @property
    def is_short(self) -> bool:
        return len(self.questions) < self.total_requested

    def shortfall_summary(self) -> str:
        """e.g. 'MCQ: Req 10/Avail 12, NAT: Req 5/Avail 3'."""
        return ", ".join(
            f"{kind.value}: Req {s.requested}/Avail {s.available}"
            for kind, s in self.stats.items()
        )
