"""
AI cleaning — turns raw exam text into structured questions, and generates
fresh questions per topic.

Three capabilities, all backed by call_gpt:
  - classify_chunk(chunk)             → List[Question]   (Cleaning Pipeline)
  - plan_topics(stream)               → List[str]        (Topic Orchestrator)
  - generate_for_topic(topic, stream) → List[Question]   (Topic Orchestrator)
"""

import logging
import time
from typing import List, Optional

from generation.errors import ClassificationError
from generation.gpt_client import call_gpt, extract_json
from generation.schemas import Options, Question, QuestionKind, RawChunk, SourceType

log = logging.getLogger(__name__)

WEB_SEARCH_MARKER = "Web Search"


# ─── Prompts ───────────────────────────────────────────────────────────────────

CLEANING_SYSTEM = """You are a High-Performance Educational Content Extraction Engine.
Your goal is to extract MAXIMAL VALID QUESTIONS from the provided text.

INPUT: Raw, messy text from PDFs or web pages (exam papers, coaching material).
OUTPUT: A clean JSON array of questions.

CLASSIFICATION RULES:
1. MCQ: Standard Multiple Choice (4 options). One correct answer.
2. MSQ: Multiple Select Question (4 options). One OR MORE correct answers.
3. NAT: Numerical Answer Type. Asks for a number/value. NO OPTIONS; set a,b,c,d to "".

EXTRACTION RULES:
1. Do not drop a question for minor formatting issues. Fix grammar.
2. Look for answer keys / solutions ("Ans:", "Key:", "Sol:"). If found, fill 'answer'
   and 'explanation'. If NOT found, leave them empty. DO NOT HALLUCINATE ANSWERS.
3. Remove junk: "Join Telegram", headers, footers, watermarks.
4. Remove "a)", "A.", "1." prefixes from option text.
5. Drop trivial, incomplete or elementary questions.

FORMATTING RULES:
1. Convert ALL mathematical notation to LaTeX enclosed in $$...$$.
2. You are writing JSON: DOUBLE-ESCAPE BACKSLASHES ("$$ \\\\frac{a}{b} $$").

JSON SCHEMA (respond with ONLY the array):
[
  {
    "type": "MCQ" | "MSQ" | "NAT",
    "question": "...",
    "a": "...", "b": "...", "c": "...", "d": "...",
    "answer": "...",
    "explanation": "...",
    "imageUrl": "URL of any relevant diagram (optional)"
  }
]
"""

CLEANING_PROMPT = """EXTRACT ALL QUESTIONS (MCQ, MSQ, NAT) FROM THIS TEXT. RECONSTRUCT BROKEN MATH SYMBOLS INTO VALID LATEX ($$...$$). REMEMBER TO DOUBLE-ESCAPE BACKSLASHES:

{text}
"""

PLAN_PROMPT = """List the top 10 most complex, high-difficulty topics for the "{stream}" competitive exam (GATE/NET). Return ONLY a JSON array of strings."""

TOPIC_SYSTEM = (
    "You are an elite academic examiner. You DO NOT generate simple questions. "
    "You prioritize lengthy, complex problems that test deep understanding. "
    "You ALWAYS use LaTeX for math and double-escape backslashes in JSON."
)

TOPIC_PROMPT = """Role: Senior Professor setting the HARDEST section of the GATE/NET exam for {stream}.
Topic: "{topic}"

Create 8-12 HIGH-COMPLEXITY, TIME-CONSUMING questions.

DIFFICULTY RULES:
1. No direct recall. Every question needs at least 2 distinct logical steps or formulas.
2. NAT problems involve real calculation (integration, differential equations, circuit/system
   analysis); inputs are not simple integers.
3. MCQ distractors represent common calculation errors or misconceptions.
4. Problem statements are detailed (3-5 sentences) and set up a specific scenario.

REQUIRED MIX: 40% NAT, 30% MSQ, 30% MCQ.

Stay strictly inside the {stream} syllabus; frame generic topics in its context.
If you base a question on a specific public source, put its URL in "sourceUrl".

Respond with ONLY a JSON array using this schema:
[
  {{
    "type": "MCQ" | "MSQ" | "NAT",
    "question": "...",
    "a": "...", "b": "...", "c": "...", "d": "...",
    "answer": "...",
    "explanation": "...",
    "imageUrl": "",
    "sourceUrl": ""
  }}
]
"""


# ─── Parsing ───────────────────────────────────────────────────────────────────

def _parse_kind(value) -> QuestionKind:
    try:
        return QuestionKind(str(value or "MCQ").strip().upper())
    except ValueError:
        return QuestionKind.MCQ


def _text(item: dict, key: str) -> str:
    value = item.get(key)
    return str(value).strip() if value is not None else ""


def build_question(
    item: dict,
    source_type: SourceType,
    source_name: str,
    page_or_url: str,
    stream: Optional[str] = None,
    topic: Optional[str] = None,
) -> Optional[Question]:
    """One model item → Question, or None if it has no question text."""
    text = _text(item, "question")
    if not text:
        return None
    return Question(
        kind=_parse_kind(item.get("type")),
        stream=stream,
        topic=topic,
        question=text,
        options=Options(a=_text(item, "a"), b=_text(item, "b"), c=_text(item, "c"), d=_text(item, "d")),
        answer=_text(item, "answer") or None,
        explanation=_text(item, "explanation") or None,
        source_type=source_type,
        source_name=source_name,
        page_or_url=page_or_url,
        image_url=_text(item, "imageUrl") or None,
    )


def parse_question_array(raw: str) -> List[dict]:
    """Model response → list of item dicts. Raises ValueError on anything else."""
    data = extract_json(raw)
    if isinstance(data, dict):
        data = data.get("questions", [])
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array of questions")
    return [item for item in data if isinstance(item, dict)]


# ─── Capabilities ──────────────────────────────────────────────────────────────

async def classify_chunk(chunk: RawChunk) -> List[Question]:
    """Extract every question found in one raw chunk."""
    start = time.monotonic()
    try:
        raw = await call_gpt(
            CLEANING_PROMPT.format(text=chunk.text),
            system=CLEANING_SYSTEM,
            temperature=0.2,
        )
        items = parse_question_array(raw)
    except ValueError as exc:
        raise ClassificationError(f"Unparseable response for chunk {chunk.id}: {exc}") from exc
    except Exception as exc:
        raise ClassificationError(f"AI processing failed for chunk {chunk.id}: {exc}") from exc

    questions = []
    for item in items:
        q = build_question(item, chunk.source_type, chunk.source_name, chunk.page_or_url)
        if q is not None:
            questions.append(q)
    log.info(
        "Cleaned chunk %s. Found %d items in %.1fs",
        chunk.id, len(questions), time.monotonic() - start,
    )
    return questions


async def plan_topics(stream: str) -> List[str]:
    raw = await call_gpt(PLAN_PROMPT.format(stream=stream), temperature=0.3, max_tokens=1024)
    data = extract_json(raw)
    if not isinstance(data, list):
        raise ValueError("Expected a JSON array of topic names")
    topics = [str(t).strip() for t in data if str(t).strip()]
    log.info("Identified %d topics for %s", len(topics), stream)
    return topics


async def generate_for_topic(topic: str, stream: str) -> List[Question]:
    """Fresh questions for one topic; page_or_url is the cited source or the generic marker."""
    raw = await call_gpt(
        TOPIC_PROMPT.format(topic=topic, stream=stream or "Engineering"),
        system=TOPIC_SYSTEM,
        temperature=0.7,
        max_tokens=8192,
    )
    items = parse_question_array(raw)
    questions = []
    for item in items:
        q = build_question(
            item,
            SourceType.WEB,
            f"AI: {topic}",
            _text(item, "sourceUrl") or WEB_SEARCH_MARKER,
            stream=stream,
            topic=topic,
        )
        if q is not None:
            questions.append(q)
    return questions
