"""
Topic-based generation — fans generate_for_topic out over a topic list.

Topics run in batches of TOPIC_BATCH_SIZE: every topic of a batch is
requested concurrently, each result is yielded the moment it arrives, and the
next batch only starts once the whole current batch has settled.  A topic
that fails is logged and contributes nothing.
"""

import asyncio
import logging
import os
import random
from typing import AsyncIterator, Awaitable, Callable, List, Literal, Optional

from pydantic import BaseModel, Field

from generation.paper_selector import shuffled
from generation.schemas import Question
from services.question_bank import QuestionBank

log = logging.getLogger(__name__)

TOPIC_BATCH_SIZE = int(os.getenv("TOPIC_BATCH_SIZE", "3"))

TopicGenerator = Callable[[str, str], Awaitable[List[Question]]]
TopicPlanner = Callable[[str], Awaitable[List[str]]]


class TopicEvent(BaseModel):
    """Either a progress message or one topic's batch of questions."""
    kind: Literal["progress", "questions"]
    message: str = ""
    topic: Optional[str] = None
    questions: List[Question] = Field(default_factory=list)


def fallback_topics(stream: str) -> List[str]:
    return [
        f"{stream} Advanced Concepts",
        f"{stream} Complex Calculations",
        f"{stream} Application Problems",
    ]


def topic_label(topic: str, stream: str) -> str:
    """Topic name with the stream label removed, e.g. 'GATE CSE Algorithms' → 'Algorithms'."""
    if not stream:
        return topic
    return topic.replace(stream, "").strip() or topic


class TopicGenerationOrchestrator:
    def __init__(
        self,
        generate_for_topic: TopicGenerator,
        plan_topics: Optional[TopicPlanner] = None,
        batch_size: int = TOPIC_BATCH_SIZE,
        rng: Optional[random.Random] = None,
    ):
        self.generate_for_topic = generate_for_topic
        self.plan_topics = plan_topics
        self.batch_size = max(1, batch_size)
        self.rng = rng or random.Random()

    async def resolve_topics(self, stream: str, topics: Optional[List[str]] = None) -> List[str]:
        if topics:
            return shuffled(topics, self.rng)
        if self.plan_topics is not None:
            try:
                planned = await self.plan_topics(stream)
                if planned:
                    return shuffled(planned, self.rng)
                log.warning("Topic planner returned nothing for %s, using defaults", stream)
            except Exception as exc:
                log.error("Failed to plan topics for %s, falling back to defaults: %s", stream, exc)
        return fallback_topics(stream)

    async def _run_topic(self, topic: str, stream: str) -> TopicEvent:
        try:
            questions = await self.generate_for_topic(topic, stream)
        except Exception as exc:
            log.error("Failed topic %s: %s", topic, exc)
            questions = []
        label = topic_label(topic, stream)
        tagged = [q.with_tags(stream=stream, topic=label) for q in questions]
        return TopicEvent(kind="questions", topic=label, questions=tagged)

    async def stream(self, stream: str, topics: Optional[List[str]] = None) -> AsyncIterator[TopicEvent]:
        """Yield progress events and per-topic results as they become available."""
        if topics:
            yield TopicEvent(kind="progress", message=f"Using syllabus with {len(topics)} topics (randomized order)...")
        else:
            yield TopicEvent(kind="progress", message=f"Analyzing syllabus for {stream}...")
        ordered = await self.resolve_topics(stream, topics)
        yield TopicEvent(kind="progress", message=f"Processing {len(ordered)} topics...")

        for start in range(0, len(ordered), self.batch_size):
            batch = ordered[start:start + self.batch_size]
            number = start // self.batch_size + 1
            yield TopicEvent(kind="progress", message=f"Batch {number}: {', '.join(batch)}")

            tasks = [asyncio.ensure_future(self._run_topic(t, stream)) for t in batch]
            try:
                for next_done in asyncio.as_completed(tasks):
                    event = await next_done
                    if event.questions:
                        yield event
            finally:
                for task in tasks:
                    if not task.done():
                        task.cancel()

        yield TopicEvent(kind="progress", message="Generation complete.")

    async def generate(
        self,
        stream: str,
        bank: QuestionBank,
        topics: Optional[List[str]] = None,
        on_progress: Optional[Callable[[str], None]] = None,
        on_questions: Optional[Callable[[], Awaitable[object]]] = None,
    ) -> int:
        """Drain stream() into the bank. Returns the number of questions added."""
        added = 0
        async for event in self.stream(stream, topics):
            if event.kind == "progress":
                log.info(event.message)
                if on_progress is not None:
                    on_progress(event.message)
                continue
            added += bank.extend(event.questions)
            if on_questions is not None:
                await on_questions()
        return added
