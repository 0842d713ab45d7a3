"""
Bank Router — /bank

Session state: raw chunk ingestion, cleaning, the question bank and the
persisted archive.
Endpoints:
  POST /bank/chunks            — add raw text chunks
  POST /bank/upload-pdf        — PDF → one chunk per page
  POST /bank/scrape            — URLs → chunks
  POST /bank/questions         — add already-classified questions
  POST /bank/clean             — run the cleaning pipeline
  POST /bank/requeue-failed    — reset failed chunks to pending
  GET  /bank/chunks            — queue contents
  GET  /bank/questions         — bank contents
  GET  /bank/status            — counters
  GET  /bank/streams           — persisted stream names
  POST /bank/load              — load a persisted stream (replace | merge)
  POST /bank/save              — save the unsaved suffix now
  POST /bank/store             — connect / reconfigure the question store
  DELETE /bank/store           — disconnect the question store
  GET  /bank/export/csv        — clean_questions.csv
  GET  /bank/export/logs       — run log CSV
  DELETE /bank                 — clear everything
"""

import logging
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field

from database import database
from generation.errors import AutoMCQError
from generation.schemas import ProcessingStats, Question, RawChunk, SourceType
from ingestion.scraper import ScraperConfig
from routers.deps import get_session, http_error
from services.session import BankSession, SessionStatus

router = APIRouter(prefix="/bank", tags=["bank"])

log = logging.getLogger(__name__)


# ─── Request / response models ─────────────────────────────────────────────────

class ChunkIn(BaseModel):
    text: str = Field(..., min_length=1)
    source_type: SourceType = SourceType.PDF
    source_name: str = ""
    page_or_url: str = ""


class ScrapeRequest(BaseModel):
    urls: List[str] = Field(..., min_length=1)
    config: Optional[ScraperConfig] = None


class LoadRequest(BaseModel):
    stream: str
    mode: Literal["replace", "merge"] = "replace"
    confirm: bool = False


class StoreRequest(BaseModel):
    url: str
    remember: bool = False


class CountResponse(BaseModel):
    count: int


# ─── Ingestion ─────────────────────────────────────────────────────────────────

@router.post("/chunks", response_model=CountResponse)
def add_chunks(chunks: List[ChunkIn], session: BankSession = Depends(get_session)):
    raw = [RawChunk(**c.model_dump()) for c in chunks]
    return CountResponse(count=session.add_chunks(raw))


@router.get("/chunks", response_model=List[RawChunk])
def list_chunks(session: BankSession = Depends(get_session)):
    return session.queue.snapshot()


@router.post("/upload-pdf", response_model=CountResponse)
async def upload_pdf(file: UploadFile = File(...), session: BankSession = Depends(get_session)):
    if not (file.filename or "").lower().endswith(".pdf"):
        raise HTTPException(status_code=400, detail="Only .pdf files are accepted")
    data = await file.read()
    try:
        count = await session.add_pdf(data, file.filename)
    except (RuntimeError, ValueError) as exc:
        log.error("PDF parse failed for %s: %s", file.filename, exc)
        raise HTTPException(status_code=400, detail=f"Could not read PDF: {exc}")
    return CountResponse(count=count)


@router.post("/scrape", response_model=CountResponse)
async def scrape(request: ScrapeRequest, session: BankSession = Depends(get_session)):
    return CountResponse(count=await session.add_scraped(request.urls, request.config))


@router.post("/questions", response_model=CountResponse)
async def add_questions(questions: List[Question], session: BankSession = Depends(get_session)):
    return CountResponse(count=await session.add_questions(questions))


@router.get("/questions", response_model=List[Question])
def list_questions(session: BankSession = Depends(get_session)):
    return session.bank.snapshot()


@router.post("/clean", response_model=ProcessingStats)
async def clean(session: BankSession = Depends(get_session)):
    return await session.start_cleaning()


@router.post("/requeue-failed", response_model=CountResponse)
def requeue_failed(session: BankSession = Depends(get_session)):
    return CountResponse(count=session.requeue_failed())


@router.get("/status", response_model=SessionStatus)
def status(session: BankSession = Depends(get_session)):
    return session.status()


# ─── Persistence ───────────────────────────────────────────────────────────────

@router.get("/streams", response_model=List[str])
def list_streams(session: BankSession = Depends(get_session)):
    try:
        return session.list_streams()
    except AutoMCQError as exc:
        raise http_error(exc) from exc


@router.post("/load", response_model=CountResponse)
def load_stream(request: LoadRequest, session: BankSession = Depends(get_session)):
    try:
        count = session.load_stream(request.stream, mode=request.mode, confirm=request.confirm)
    except AutoMCQError as exc:
        raise http_error(exc) from exc
    return CountResponse(count=count)


@router.post("/save", response_model=CountResponse)
async def save_now(session: BankSession = Depends(get_session)):
    try:
        return CountResponse(count=await session.save_now())
    except AutoMCQError as exc:
        raise http_error(exc) from exc


@router.post("/store", response_model=SessionStatus)
def connect_store(request: StoreRequest, session: BankSession = Depends(get_session)):
    try:
        session.store.reconfigure(request.url)
    except AutoMCQError as exc:
        raise http_error(exc) from exc
    if request.remember:
        database.save_url(request.url)
    return session.status()


@router.delete("/store", response_model=SessionStatus)
def disconnect_store(session: BankSession = Depends(get_session)):
    session.store.disconnect()
    database.forget_saved_url()
    return session.status()


# ─── Exports / housekeeping ────────────────────────────────────────────────────

@router.get("/export/csv")
def export_csv(session: BankSession = Depends(get_session)):
    return Response(
        content=session.bank_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="clean_questions.csv"'},
    )


@router.get("/export/logs")
def export_logs(session: BankSession = Depends(get_session)):
    stamp = datetime.now().strftime("%Y-%m-%dT%H-%M-%S")
    return Response(
        content=session.log_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="automcq_logs_{stamp}.csv"'},
    )


@router.delete("", response_model=SessionStatus)
def clear(session: BankSession = Depends(get_session)):
    session.clear()
    return session.status()
