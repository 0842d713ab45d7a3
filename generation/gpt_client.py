"""
OpenAI access for AutoMCQ.

Every model call in the service goes through call_gpt; the callers live in
ingestion/ai_cleaner.py:
  - classify_chunk       raw PDF / scraped text → question array
  - plan_topics          stream name → hardest-topics list
  - generate_for_topic   one topic → fresh question array

Responses are expected to be JSON; extract_json tolerates code fences and
chatter around the payload.

Env: OPENAI_API_KEY (required), GPT_MODEL (default gpt-4o-mini),
     OPENAI_TIMEOUT seconds per request (default 120).
"""

import json
import logging
import os
import re
from typing import Optional, Union

from openai import AsyncOpenAI

log = logging.getLogger(__name__)

GPT_MODEL = os.getenv("GPT_MODEL", "gpt-4o-mini")
OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "120"))

DEFAULT_SYSTEM = "You extract and write exam questions. Output only what is asked."

_client: Optional[AsyncOpenAI] = None


def _get_client() -> AsyncOpenAI:
    """Created on first use so the app starts (and tests run) without a key."""
    global _client
    if _client is None:
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is not set. Add it to your .env file.")
        _client = AsyncOpenAI(api_key=api_key, timeout=OPENAI_TIMEOUT)
    return _client


async def call_gpt(
    prompt: str,
    system: str = DEFAULT_SYSTEM,
    temperature: float = 0.4,
    max_tokens: int = 4096,
) -> str:
    """Single-turn chat completion; returns the message text ("" if the model sent none)."""
    response = await _get_client().chat.completions.create(
        model=GPT_MODEL,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
        temperature=temperature,
        max_tokens=max_tokens,
    )
    usage = getattr(response, "usage", None)
    if usage is not None:
        log.debug("%s used %s prompt / %s completion tokens",
                  GPT_MODEL, usage.prompt_tokens, usage.completion_tokens)
    return response.choices[0].message.content or ""


# ─── JSON extraction ───────────────────────────────────────────────────────────

def extract_json(raw: str) -> Union[list, dict]:
    """
    Pull the first JSON array or object out of a model response, tolerating
    ```json fences and chatter around it. Raises ValueError if none parses.
    """
    raw = raw.strip()
    raw = re.sub(r"^```(?:json)?\s*", "", raw, flags=re.MULTILINE)
    raw = re.sub(r"\s*```$", "", raw, flags=re.MULTILINE)

    starts = [i for i in (raw.find("["), raw.find("{")) if i != -1]
    if not starts:
        raise ValueError(f"No JSON found: {raw[:200]}")
    start = min(starts)
    closer = "]" if raw[start] == "[" else "}"
    end = raw.rfind(closer) + 1
    if end == 0:
        raise ValueError(f"Unterminated JSON: {raw[:200]}")
    return json.loads(raw[start:end])
