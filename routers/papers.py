"""
Papers Router — /papers

Endpoints:
  POST /papers/preview      — selection counts / shortfall for a config (no rendering)
  POST /papers/generate     — single paper from the bank (PDF zip or xlsx);
                              a short paper carries X-Selection-Shortfall
  POST /papers/bulk         — multi-stream / multi-set zip bundle
"""

import logging
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field, model_validator

from generation.errors import AutoMCQError
from generation.paper_selector import select_questions
from generation.schemas import KindStats, PaperConfig, QuestionKind
from routers.deps import get_session, http_error
from services.session import BankSession, FileOutput

router = APIRouter(prefix="/papers", tags=["papers"])

log = logging.getLogger(__name__)


class GenerateRequest(BaseModel):
    config: PaperConfig
    format: Literal["pdf", "xlsx"] = "pdf"
    require_full: bool = False


class BulkRequest(BaseModel):
    mode: Literal["multi_stream", "multi_set"]
    config: PaperConfig
    streams: List[str] = Field(default_factory=list)
    target_stream: Optional[str] = None
    set_count: int = Field(2, ge=1, le=26)

    @model_validator(mode="after")
    def _check_mode_fields(self):
        if self.mode == "multi_stream" and not self.streams:
            raise ValueError("multi_stream mode needs at least one stream")
        if self.mode == "multi_set" and not self.target_stream:
            raise ValueError("multi_set mode needs target_stream")
        return self


class PreviewResponse(BaseModel):
    selected: int
    requested: int
    is_short: bool
    summary: str
    stats: Dict[QuestionKind, KindStats]


def _file_response(output: FileOutput, headers: Optional[Dict[str, str]] = None) -> Response:
    return Response(
        content=output.content,
        media_type=output.media_type,
        headers={"Content-Disposition": f'attachment; filename="{output.filename}"', **(headers or {})},
    )


@router.post("/preview", response_model=PreviewResponse)
def preview(config: PaperConfig, session: BankSession = Depends(get_session)):
    result = select_questions(session.bank.snapshot(), config, session.rng)
    return PreviewResponse(
        selected=len(result.questions),
        requested=result.total_requested,
        is_short=result.is_short,
        summary=result.shortfall_summary(),
        stats=result.stats,
    )


@router.post("/generate")
def generate(request: GenerateRequest, session: BankSession = Depends(get_session)):
    if not request.config.sections:
        raise HTTPException(status_code=400, detail="Paper config has no sections")
    try:
        output = session.generate_paper(request.config, request.format, request.require_full)
    except AutoMCQError as exc:
        raise http_error(exc) from exc
    headers = {"X-Selection-Shortfall": output.shortfall} if output.shortfall else None
    return _file_response(output, headers)


@router.post("/bulk")
def bulk(request: BulkRequest, session: BankSession = Depends(get_session)):
    try:
        if request.mode == "multi_stream":
            result = session.bulk_multi_stream(request.config, request.streams)
        else:
            result = session.bulk_multi_set(request.config, request.target_stream, request.set_count)
    except AutoMCQError as exc:
        raise http_error(exc) from exc

    headers = {
        "X-Papers-Generated": str(result.paper_count),
        "X-Bulk-Errors": str(len(result.errors)),
    }
    if result.errors:
        log.warning("Bulk generation finished with errors: %s", "; ".join(result.errors))
    return _file_response(session.bundle(result), headers)
