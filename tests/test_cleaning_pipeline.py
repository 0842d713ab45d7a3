"""Tests for the ingestion queue and cleaning pipeline."""
import asyncio

import pytest

from conftest import fake_classify, make_chunk, make_question
from generation.errors import ClassificationError
from generation.schemas import ChunkStatus
from ingestion.chunk_queue import IngestionQueue
from ingestion.cleaning_pipeline import CleaningPipeline
from services.question_bank import QuestionBank


@pytest.mark.asyncio
async def test_failed_chunk_does_not_stop_later_chunks():
    queue = IngestionQueue()
    bad = make_chunk("timeout please")
    good = make_chunk("Q1 good")
    queue.add([bad, good])
    bank = QuestionBank()

    async def classify(chunk):
        if chunk.id == bad.id:
            raise asyncio.TimeoutError()
        return await fake_classify(chunk)

    stats = await CleaningPipeline(classify, delay=0).run(queue, bank)

    assert queue.get(bad.id).status == ChunkStatus.FAILED
    assert queue.get(bad.id).error
    assert queue.get(good.id).status == ChunkStatus.COMPLETED
    assert len(bank) == 1
    assert stats.failed_chunks == 1
    assert stats.processed_chunks == 2
    assert stats.questions_found == 1


@pytest.mark.asyncio
async def test_zero_questions_is_completed_without_bank_growth():
    queue = IngestionQueue()
    chunk = make_chunk("nothing useful here")
    queue.add([chunk])
    bank = QuestionBank()

    async def classify(_):
        return []

    await CleaningPipeline(classify, delay=0).run(queue, bank)

    assert queue.get(chunk.id).status == ChunkStatus.COMPLETED
    assert len(bank) == 0


@pytest.mark.asyncio
async def test_only_pending_chunks_are_processed():
    queue = IngestionQueue()
    done = make_chunk("already done", status=ChunkStatus.COMPLETED)
    failed = make_chunk("", status=ChunkStatus.FAILED, error="HTTP 404")
    pending = make_chunk("fresh")
    queue.add([done, failed, pending])
    seen = []

    async def classify(chunk):
        seen.append(chunk.id)
        return []

    stats = await CleaningPipeline(classify, delay=0).run(queue, QuestionBank())

    assert seen == [pending.id]
    assert stats.total_chunks == 3
    assert queue.get(failed.id).status == ChunkStatus.FAILED


@pytest.mark.asyncio
async def test_chunk_is_processing_during_classify():
    queue = IngestionQueue()
    chunk = make_chunk()
    queue.add([chunk])
    observed = []

    async def classify(c):
        observed.append(queue.get(c.id).status)
        return []

    await CleaningPipeline(classify, delay=0).run(queue, QuestionBank())
    assert observed == [ChunkStatus.PROCESSING]


@pytest.mark.asyncio
async def test_questions_appear_in_bank_as_each_chunk_finishes():
    queue = IngestionQueue()
    chunks = [make_chunk(f"chunk {i}") for i in range(3)]
    queue.add(chunks)
    bank = QuestionBank()
    sizes = []

    async def classify(chunk):
        sizes.append(len(bank))
        return [make_question(text=chunk.text)]

    await CleaningPipeline(classify, delay=0).run(queue, bank)
    assert sizes == [0, 1, 2]
    assert [q.question for q in bank.snapshot()] == ["chunk 0", "chunk 1", "chunk 2"]


@pytest.mark.asyncio
async def test_classification_error_message_is_recorded():
    queue = IngestionQueue()
    chunk = make_chunk()
    queue.add([chunk])

    async def classify(_):
        raise ClassificationError("Unparseable response")

    await CleaningPipeline(classify, delay=0).run(queue, QuestionBank())
    assert queue.get(chunk.id).error == "Unparseable response"


@pytest.mark.asyncio
async def test_delay_between_chunks(monkeypatch):
    queue = IngestionQueue()
    queue.add([make_chunk(f"c{i}") for i in range(3)])
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr("ingestion.cleaning_pipeline.asyncio.sleep", fake_sleep)
    await CleaningPipeline(fake_classify, delay=0.5).run(queue, QuestionBank())
    assert sleeps == [0.5, 0.5]


def test_requeue_failed_resets_status_and_counts_retry():
    queue = IngestionQueue()
    failed = make_chunk("", status=ChunkStatus.FAILED, error="boom")
    ok = make_chunk("ok", status=ChunkStatus.COMPLETED)
    queue.add([failed, ok])

    assert queue.requeue_failed() == 1

    again = queue.get(failed.id)
    assert again.status == ChunkStatus.PENDING
    assert again.error is None
    assert again.retry_count == 1
    assert queue.get(ok.id).status == ChunkStatus.COMPLETED
    assert queue.counts() == {"pending": 1, "processing": 0, "completed": 1, "failed": 0}
