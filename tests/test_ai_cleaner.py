"""Tests for AI response parsing (call_gpt is replaced; no network)."""
import json
from types import SimpleNamespace

import pytest

from conftest import make_chunk
from generation.errors import ClassificationError
from generation import gpt_client
from generation.gpt_client import extract_json
from generation.schemas import QuestionKind, SourceType
from ingestion import ai_cleaner

ITEMS = [
    {"type": "MCQ", "question": "Which is prime?", "a": "4", "b": "6", "c": "7", "d": "9",
     "answer": "c", "explanation": "7 has no divisors", "imageUrl": ""},
    {"type": "NAT", "question": "Compute $\\int_0^1 2x\\,dx$", "a": "x", "b": "y", "c": "", "d": "",
     "answer": "1"},
    {"type": "weird", "question": "Pick all even numbers", "a": "2", "b": "3", "c": "4", "d": "5"},
    {"type": "MCQ", "question": "   "},
]


def _patch_gpt(monkeypatch, reply):
    async def fake_call_gpt(prompt, **kwargs):
        if isinstance(reply, Exception):
            raise reply
        return reply

    monkeypatch.setattr(ai_cleaner, "call_gpt", fake_call_gpt)


def test_extract_json_handles_fences_and_chatter():
    raw = "Here you go:\n```json\n[{\"a\": 1}]\n```\nThanks!"
    assert extract_json(raw) == [{"a": 1}]
    assert extract_json('{"questions": []}') == {"questions": []}
    with pytest.raises(ValueError):
        extract_json("no json at all")


@pytest.mark.asyncio
async def test_classify_chunk_builds_questions_with_chunk_provenance(monkeypatch):
    _patch_gpt(monkeypatch, json.dumps(ITEMS))
    chunk = make_chunk(source_type=SourceType.SCRAPER, source_name="https://x.test", page_or_url="https://x.test")

    questions = await ai_cleaner.classify_chunk(chunk)

    assert len(questions) == 3
    assert [q.kind for q in questions] == [QuestionKind.MCQ, QuestionKind.NAT, QuestionKind.MCQ]
    assert questions[1].options.is_blank
    assert questions[0].answer == "c"
    assert questions[2].answer is None
    assert all(q.source_type == SourceType.SCRAPER for q in questions)
    assert all(q.page_or_url == "https://x.test" for q in questions)


@pytest.mark.asyncio
async def test_classify_chunk_unparseable_raises(monkeypatch):
    _patch_gpt(monkeypatch, "I could not find any questions.")
    with pytest.raises(ClassificationError):
        await ai_cleaner.classify_chunk(make_chunk())


@pytest.mark.asyncio
async def test_classify_chunk_api_failure_raises(monkeypatch):
    _patch_gpt(monkeypatch, RuntimeError("OPENAI_API_KEY is not set"))
    with pytest.raises(ClassificationError, match="OPENAI_API_KEY"):
        await ai_cleaner.classify_chunk(make_chunk())


@pytest.mark.asyncio
async def test_generate_for_topic_marks_source(monkeypatch):
    items = [dict(ITEMS[0], sourceUrl="https://gate.example/pyq"), ITEMS[1]]
    _patch_gpt(monkeypatch, json.dumps(items))

    questions = await ai_cleaner.generate_for_topic("Algorithms", "GATE CSE")

    assert [q.page_or_url for q in questions] == ["https://gate.example/pyq", "Web Search"]
    assert all(q.source_type == SourceType.WEB for q in questions)
    assert all(q.source_name == "AI: Algorithms" for q in questions)
    assert all(q.stream == "GATE CSE" for q in questions)


@pytest.mark.asyncio
async def test_plan_topics(monkeypatch):
    _patch_gpt(monkeypatch, '["Graph Theory", " ", "Automata"]')
    assert await ai_cleaner.plan_topics("GATE CSE") == ["Graph Theory", "Automata"]


class _FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        message = SimpleNamespace(content=self.content)
        usage = SimpleNamespace(prompt_tokens=10, completion_tokens=5)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=usage)


@pytest.mark.asyncio
async def test_call_gpt_sends_system_and_user_turns(monkeypatch):
    completions = _FakeCompletions('["ok"]')
    monkeypatch.setattr(gpt_client, "_client", SimpleNamespace(chat=SimpleNamespace(completions=completions)))

    assert await gpt_client.call_gpt("List topics", system="Be terse", max_tokens=100) == '["ok"]'
    assert completions.kwargs["model"] == gpt_client.GPT_MODEL
    assert completions.kwargs["messages"] == [
        {"role": "system", "content": "Be terse"},
        {"role": "user", "content": "List topics"},
    ]
    assert completions.kwargs["max_tokens"] == 100


@pytest.mark.asyncio
async def test_call_gpt_without_key_fails_and_cleaning_reports_it(monkeypatch):
    monkeypatch.setattr(gpt_client, "_client", None)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
        await gpt_client.call_gpt("hello")
    with pytest.raises(ClassificationError, match="OPENAI_API_KEY"):
        await ai_cleaner.classify_chunk(make_chunk())
