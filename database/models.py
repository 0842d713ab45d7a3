"""
SQLAlchemy models for the persisted question archive.
"""

from sqlalchemy import Column, DateTime, JSON, String, Text
from sqlalchemy.sql import func

from database.database import Base
from generation.schemas import Options, Question, QuestionKind, SourceType

ARCHIVE_MARKER = "Database Archive"


class QuestionRow(Base):
    """
    One archived question. qid is the upsert key, so re-saving the same
    question overwrites rather than duplicates.
    """
    __tablename__ = "questions"

    qid = Column(String(64), primary_key=True)
    stream = Column(String(255), nullable=False, default="General", index=True)
    topic = Column(String(255), nullable=False, default="General")
    type = Column(String(8), nullable=False)
    question = Column(Text, nullable=False)
    options = Column(JSON, nullable=False)  # {"a": "...", "b": "...", "c": "...", "d": "..."}
    answer = Column(Text, nullable=True)
    explanation = Column(Text, nullable=True)
    source_name = Column(String(512), nullable=True)
    image_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @classmethod
    def from_question(cls, q: Question) -> "QuestionRow":
        return cls(
            qid=q.qid,
            stream=q.stream or "General",
            topic=q.topic or "General",
            type=q.kind.value,
            question=q.question,
            options=q.options.model_dump(),
            answer=q.answer,
            explanation=q.explanation,
            source_name=q.source_name,
            image_url=q.image_url,
        )

    def to_question(self) -> Question:
        return Question(
            qid=self.qid,
            kind=QuestionKind(self.type),
            stream=self.stream,
            topic=self.topic,
            question=self.question,
            options=Options(**(self.options or {})),
            answer=self.answer,
            explanation=self.explanation,
            source_type=SourceType.DB,
            source_name=self.source_name or "",
            page_or_url=ARCHIVE_MARKER,
            image_url=self.image_url,
        )

    def __repr__(self):
        return f"<QuestionRow(qid='{self.qid}', stream='{self.stream}', type='{self.type}')>"
