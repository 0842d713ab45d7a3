"""
Topics Router — /topics

Endpoints:
  GET  /topics/syllabus/{exam}/{stream}  — built-in topic list
  POST /topics/generate                  — topic-based generation, streamed as NDJSON
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from ingestion.syllabus import get_exam_topics
from routers.deps import get_session
from services.session import BankSession

router = APIRouter(prefix="/topics", tags=["topics"])

log = logging.getLogger(__name__)


class TopicGenerateRequest(BaseModel):
    stream: str = Field(..., min_length=1)
    topics: Optional[List[str]] = None
    exam: Optional[str] = None  # use the built-in syllabus for (exam, syllabus_stream)
    syllabus_stream: Optional[str] = None


@router.get("/syllabus/{exam}/{stream}", response_model=List[str])
def syllabus(exam: str, stream: str):
    topics = get_exam_topics(exam, stream)
    if not topics:
        raise HTTPException(status_code=404, detail=f"No syllabus for {exam}/{stream}")
    return topics


@router.post("/generate")
async def generate(request: TopicGenerateRequest, session: BankSession = Depends(get_session)):
    """
    One JSON object per line: progress events ({"kind": "progress", "message": ...})
    and topic results ({"kind": "questions", "topic": ..., "questions": [...]}).
    Questions are already in the bank when their line is sent.
    """
    topics = request.topics
    if not topics and request.exam and request.syllabus_stream:
        topics = get_exam_topics(request.exam, request.syllabus_stream)

    async def lines():
        async for event in session.topic_events(request.stream, topics):
            yield event.model_dump_json() + "\n"

    return StreamingResponse(lines(), media_type="application/x-ndjson")
