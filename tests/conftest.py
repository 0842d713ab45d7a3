"""
Shared fixtures: in-memory SQLite store, question factories and fake AI callables.
"""
import os
import random
from typing import List

# Point the app at an in-memory database before anything imports main.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("AUTOMCQ_SETTINGS_PATH", os.path.join(os.path.dirname(__file__), ".settings.json"))

import pytest  # noqa: E402

from database.store import QuestionStore  # noqa: E402
from generation.schemas import (  # noqa: E402
    Options, PaperConfig, PaperSection, Question, QuestionKind, RawChunk, SourceType,
)
from services.session import BankSession  # noqa: E402


def make_question(
    kind: QuestionKind = QuestionKind.MCQ,
    text: str = "What is 2 + 2?",
    stream: str = "GATE CSE",
    **kwargs,
) -> Question:
    options = kwargs.pop("options", Options(a="3", b="4", c="5", d="6"))
    return Question(
        kind=kind,
        question=text,
        stream=stream,
        topic=kwargs.pop("topic", "Arithmetic"),
        options=options,
        answer=kwargs.pop("answer", "b"),
        explanation=kwargs.pop("explanation", "Two plus two is four."),
        source_type=kwargs.pop("source_type", SourceType.PDF),
        source_name=kwargs.pop("source_name", "paper.pdf"),
        page_or_url=kwargs.pop("page_or_url", "1"),
        **kwargs,
    )


def make_pool(mcq: int = 0, msq: int = 0, nat: int = 0, stream: str = "GATE CSE") -> List[Question]:
    pool = [make_question(QuestionKind.MCQ, f"MCQ {i}", stream) for i in range(mcq)]
    pool += [make_question(QuestionKind.MSQ, f"MSQ {i}", stream) for i in range(msq)]
    pool += [make_question(QuestionKind.NAT, f"NAT {i}", stream, answer="4.5") for i in range(nat)]
    return pool


def make_config(*sections, subject: str = "GATE CSE") -> PaperConfig:
    return PaperConfig(
        subject_name=subject,
        duration_mins=180,
        sections=[
            PaperSection(kind=kind, count=count, marks_per_question=marks, negative_marks=neg)
            for kind, count, marks, neg in sections
        ],
    )


def make_chunk(text: str = "Q1. What is 2+2? a) 3 b) 4 c) 5 d) 6 Ans: b", **kwargs) -> RawChunk:
    return RawChunk(
        text=text,
        source_type=kwargs.pop("source_type", SourceType.PDF),
        source_name=kwargs.pop("source_name", "paper.pdf"),
        page_or_url=kwargs.pop("page_or_url", "1"),
        **kwargs,
    )


async def fake_classify(chunk: RawChunk) -> List[Question]:
    """One MCQ per chunk, tagged with the chunk's provenance."""
    return [make_question(
        text=f"Cleaned: {chunk.text[:20]}",
        source_type=chunk.source_type,
        source_name=chunk.source_name,
        page_or_url=chunk.page_or_url,
    )]


async def fake_generate_for_topic(topic: str, stream: str) -> List[Question]:
    return [
        make_question(QuestionKind.NAT, f"{topic} numerical", stream, source_type=SourceType.WEB,
                      page_or_url="Web Search"),
        make_question(QuestionKind.MCQ, f"{topic} concept", stream, source_type=SourceType.WEB,
                      page_or_url="Web Search"),
    ]


async def fake_plan_topics(stream: str) -> List[str]:
    return [f"{stream} Topic {i}" for i in range(4)]


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def store():
    s = QuestionStore("sqlite://")
    yield s
    s.disconnect()


@pytest.fixture
def session(store, rng):
    return BankSession(
        store=store,
        classify=fake_classify,
        generate_for_topic=fake_generate_for_topic,
        plan_topics=fake_plan_topics,
        rng=rng,
        cleaning_delay=0,
        auto_save_threshold=10,
    )
