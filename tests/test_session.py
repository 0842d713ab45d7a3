"""Tests for the BankSession facade."""
import asyncio
import zipfile
from io import BytesIO

import fitz
import pytest

from conftest import make_chunk, make_config, make_pool
from generation.errors import (
    BulkGenerationError, ConfigMismatchError, ConfirmationRequiredError, NotFoundError,
    PersistenceError,
)
from generation.schemas import ChunkStatus, QuestionKind


@pytest.mark.asyncio
async def test_cleaning_fills_bank_and_autosaves(session, store):
    session.add_chunks([make_chunk(f"chunk {i}") for i in range(10)])

    stats = await session.start_cleaning()

    assert stats.processed_chunks == 10
    assert len(session.bank) == 10
    assert store.count() == 10
    assert session.autosave.unsaved_count == 0
    assert session.queue.counts()["completed"] == 10


@pytest.mark.asyncio
async def test_requeue_failed_then_clean_again(session):
    session.add_chunks([make_chunk("", status=ChunkStatus.FAILED, error="HTTP 500")])
    assert session.requeue_failed() == 1
    await session.start_cleaning()
    assert session.queue.counts()["completed"] == 1


@pytest.mark.asyncio
async def test_add_questions_sets_active_stream(session):
    added = await session.add_questions(make_pool(mcq=2, stream="GATE ME"))
    assert added == 2
    assert session.status().active_stream == "GATE ME"


@pytest.mark.asyncio
async def test_replace_load_requires_confirm_when_unsaved(session, store):
    store.upsert(make_pool(mcq=4, stream="GATE CSE"))
    await session.add_questions(make_pool(nat=2))

    with pytest.raises(ConfirmationRequiredError):
        session.load_stream("GATE CSE")
    assert len(session.bank) == 2

    assert session.load_stream("GATE CSE", confirm=True) == 4
    assert len(session.bank) == 4
    assert session.autosave.unsaved_count == 0


@pytest.mark.asyncio
async def test_merge_load_appends_new_questions_only(session, store):
    archived = make_pool(mcq=3, stream="GATE CSE")
    store.upsert(archived)
    session.load_stream("GATE CSE")
    await session.add_questions(make_pool(nat=1))

    assert session.load_stream("GATE CSE", mode="merge") == 0
    assert len(session.bank) == 4


def test_load_unknown_stream_is_not_found(session):
    with pytest.raises(NotFoundError):
        session.load_stream("Nothing Here")


def test_load_without_store_is_persistence_error(session):
    session.store.disconnect()
    with pytest.raises(PersistenceError):
        session.load_stream("GATE CSE")


@pytest.mark.asyncio
async def test_save_now_ignores_threshold(session, store):
    await session.add_questions(make_pool(mcq=2))
    assert await session.save_now() == 2
    assert store.count() == 2


@pytest.mark.asyncio
async def test_generate_paper_pdf_zip(session):
    await session.add_questions(make_pool(mcq=3, nat=2))
    output = session.generate_paper(make_config((QuestionKind.MCQ, 2, 1, 0), subject="Mock 1"))

    assert output.filename == "CGP_Paper_Mock_1.zip"
    with zipfile.ZipFile(BytesIO(output.content)) as zf:
        assert zf.namelist() == ["CGP_Paper_Mock_1_QP.pdf", "CGP_Paper_Mock_1_SOLUTIONS.pdf"]


@pytest.mark.asyncio
async def test_generate_paper_xlsx(session):
    await session.add_questions(make_pool(mcq=3))
    output = session.generate_paper(make_config((QuestionKind.MCQ, 2, 1, 0), subject="Mock"), fmt="xlsx")
    assert output.filename == "CGP_Paper_Mock.xlsx"
    assert output.content[:2] == b"PK"


@pytest.mark.asyncio
async def test_generate_paper_mismatch(session):
    await session.add_questions(make_pool(mcq=3))
    with pytest.raises(ConfigMismatchError):
        session.generate_paper(make_config((QuestionKind.NAT, 2, 1, 0)))
    with pytest.raises(ConfigMismatchError):
        session.generate_paper(make_config((QuestionKind.MCQ, 5, 1, 0)), require_full=True)


def test_bulk_with_nothing_raises(session):
    with pytest.raises(BulkGenerationError) as exc_info:
        session.bulk_multi_stream(make_config((QuestionKind.MCQ, 1, 1, 0)), ["Current Session (0 Qs)"])
    assert exc_info.value.errors == ["Stream 'Current Session (0 Qs)': No questions found."]


@pytest.mark.asyncio
async def test_topic_generation_streams_into_bank(session):
    events = [e async for e in session.topic_events("GATE CSE", topics=["GATE CSE Algorithms", "GATE CSE DBMS"])]

    question_events = [e for e in events if e.kind == "questions"]
    assert len(question_events) == 2
    assert len(session.bank) == 4
    assert events[-1].message == "Generation complete."


@pytest.mark.asyncio
async def test_clear_resets_everything(session):
    session.add_chunks([make_chunk()])
    await session.add_questions(make_pool(mcq=2, stream="GATE CSE"))
    session.clear()

    status = session.status()
    assert status.bank_size == 0
    assert status.unsaved == 0
    assert status.active_stream is None
    assert sum(status.chunks.values()) == 0


@pytest.mark.asyncio
async def test_bank_csv(session):
    await session.add_questions(make_pool(mcq=2))
    assert len(session.bank_csv().strip().splitlines()) == 3


@pytest.mark.asyncio
async def test_add_pdf_parses_off_the_event_loop(session, monkeypatch):
    offloaded = []
    original = asyncio.to_thread

    async def recording_to_thread(fn, *args):
        offloaded.append(fn.__name__)
        return await original(fn, *args)

    monkeypatch.setattr("services.session.asyncio.to_thread", recording_to_thread)
    doc = fitz.open()
    doc.new_page().insert_text((72, 72), "Q1. A capacitor of 2 uF is charged to 10 V. Find the stored energy.", fontsize=9)
    data = doc.tobytes()
    doc.close()

    assert await session.add_pdf(data, "caps.pdf") == 1
    assert offloaded == ["extract_chunks_from_pdf"]
    assert session.queue.counts()["pending"] == 1


@pytest.mark.asyncio
async def test_short_paper_reports_shortfall(session):
    await session.add_questions(make_pool(mcq=12, nat=3))
    config = make_config((QuestionKind.MCQ, 10, 1, 0), (QuestionKind.NAT, 5, 2, 0))

    output = session.generate_paper(config)
    assert output.shortfall == "MCQ: Req 10/Avail 12, NAT: Req 5/Avail 3"

    full = session.generate_paper(make_config((QuestionKind.MCQ, 10, 1, 0)), fmt="xlsx")
    assert full.shortfall is None
