"""Tests for batched topic generation."""
import asyncio
import random

import pytest

from conftest import fake_generate_for_topic, fake_plan_topics, make_question
from generation.schemas import QuestionKind
from ingestion.topic_generator import (
    TopicGenerationOrchestrator, fallback_topics, topic_label,
)
from services.question_bank import QuestionBank


@pytest.mark.asyncio
async def test_in_flight_calls_never_exceed_batch_size():
    in_flight = 0
    peak = 0

    async def generate(topic, stream):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return [make_question(text=topic)]

    topics = [f"T{i}" for i in range(7)]
    orchestrator = TopicGenerationOrchestrator(generate, batch_size=3, rng=random.Random(1))
    bank = QuestionBank()

    added = await orchestrator.generate("GATE CSE", bank, topics=topics)

    assert peak == 3
    assert added == 7
    assert sorted(q.question for q in bank.snapshot()) == sorted(topics)


@pytest.mark.asyncio
async def test_results_are_yielded_before_the_batch_settles():
    slow_release = asyncio.Event()

    async def generate(topic, stream):
        if topic == "slow":
            await slow_release.wait()
        return [make_question(text=topic)]

    orchestrator = TopicGenerationOrchestrator(generate, batch_size=2)
    stream = orchestrator.stream("S", topics=["fast", "slow"])

    received = []
    async for event in stream:
        if event.kind == "questions":
            received.append(event.topic)
            if len(received) == 1:
                # the slow topic is still pending when the fast one arrives
                assert received == ["fast"]
                slow_release.set()
    assert sorted(received) == ["fast", "slow"]


@pytest.mark.asyncio
async def test_next_batch_waits_for_current_batch():
    order = []

    async def generate(topic, stream):
        order.append(("start", topic))
        await asyncio.sleep(0.02 if topic == "A" else 0)
        order.append(("end", topic))
        return []

    orchestrator = TopicGenerationOrchestrator(generate, batch_size=2)
    await orchestrator.generate("S", QuestionBank(), topics=["A", "B", "C"])

    first_batch_ends = [i for i, (kind, _) in enumerate(order) if kind == "end"][:2]
    third_start = max(i for i, (kind, _) in enumerate(order) if kind == "start")
    assert third_start > max(first_batch_ends)


@pytest.mark.asyncio
async def test_failed_topic_contributes_nothing():
    async def generate(topic, stream):
        if topic == "broken":
            raise RuntimeError("rate limited")
        return [make_question(text=topic)]

    orchestrator = TopicGenerationOrchestrator(generate, batch_size=3)
    bank = QuestionBank()
    added = await orchestrator.generate("S", bank, topics=["ok1", "broken", "ok2"])

    assert added == 2
    assert sorted(q.question for q in bank.snapshot()) == ["ok1", "ok2"]


@pytest.mark.asyncio
async def test_questions_are_tagged_with_stream_and_stripped_topic():
    orchestrator = TopicGenerationOrchestrator(fake_generate_for_topic, batch_size=3)
    bank = QuestionBank()
    await orchestrator.generate("GATE CSE", bank, topics=["GATE CSE Algorithms"])

    questions = bank.snapshot()
    assert len(questions) == 2
    assert {q.topic for q in questions} == {"Algorithms"}
    assert {q.stream for q in questions} == {"GATE CSE"}
    nat = next(q for q in questions if q.kind == QuestionKind.NAT)
    assert nat.options.is_blank
    assert nat.page_or_url == "Web Search"


@pytest.mark.asyncio
async def test_planner_used_when_no_topics_given():
    seen = []

    async def generate(topic, stream):
        seen.append(topic)
        return []

    orchestrator = TopicGenerationOrchestrator(generate, fake_plan_topics, batch_size=3)
    await orchestrator.generate("GATE EEE", QuestionBank())
    assert sorted(seen) == sorted(await fake_plan_topics("GATE EEE"))


@pytest.mark.asyncio
async def test_planner_failure_falls_back_to_generic_topics():
    seen = []

    async def generate(topic, stream):
        seen.append(topic)
        return []

    async def broken_planner(stream):
        raise ValueError("not json")

    orchestrator = TopicGenerationOrchestrator(generate, broken_planner, batch_size=3)
    progress = []
    await orchestrator.generate("GATE ME", QuestionBank(), on_progress=progress.append)

    assert seen == fallback_topics("GATE ME")
    assert progress[-1] == "Generation complete."


def test_topic_label():
    assert topic_label("GATE CSE Algorithms", "GATE CSE") == "Algorithms"
    assert topic_label("GATE CSE", "GATE CSE") == "GATE CSE"
    assert topic_label("Thermodynamics", "") == "Thermodynamics"
