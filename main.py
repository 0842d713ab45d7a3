"""
AutoMCQ API — Main Application
FastAPI application for the AutoMCQ question bank.
Ingests exam material, cleans it into MCQ / MSQ / NAT questions with AI,
and exports question papers (PDF, Excel) and bulk paper bundles.
"""

from dotenv import load_dotenv
load_dotenv()

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from database.store import QuestionStore
from generation.errors import PersistenceError
from ingestion.ai_cleaner import classify_chunk, generate_for_topic, plan_topics
from routers import bank, papers, topics
from services.run_log import RunLogHandler
from services.session import BankSession

logging.basicConfig(level=logging.INFO, format="%(asctime)s  %(levelname)s  %(name)s  %(message)s")
# Quiet per-request chatter from the HTTP client
logging.getLogger("httpx").setLevel(logging.WARNING)

log = logging.getLogger("automcq")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: connect the question store (creates tables) and build the session."""
    run_log = RunLogHandler()
    logging.getLogger().addHandler(run_log)

    store = QuestionStore()
    try:
        store = QuestionStore.from_env()
    except PersistenceError as exc:
        log.error("Question store unavailable, continuing without persistence: %s", exc)

    app.state.session = BankSession(
        store=store,
        classify=classify_chunk,
        generate_for_topic=generate_for_topic,
        plan_topics=plan_topics,
        run_log=run_log,
    )
    yield
    store.disconnect()
    logging.getLogger().removeHandler(run_log)


app = FastAPI(
    title="AutoMCQ API",
    description="Question bank ingestion, AI cleaning and exam paper generation",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[
        "Content-Disposition", "X-Papers-Generated", "X-Bulk-Errors", "X-Selection-Shortfall",
    ],
)

# ─── Routers ───────────────────────────────────────────────────────────────────

app.include_router(bank.router)      # /bank/*
app.include_router(papers.router)    # /papers/*
app.include_router(topics.router)    # /topics/*


@app.get("/")
def root():
    return {
        "name": "AutoMCQ API",
        "version": "1.0.0",
        "endpoints": {
            "docs": "/docs",
            "bank": "/bank",
            "papers": "/papers",
            "topics": "/topics",
        },
    }


@app.get("/health")
def health():
    session = app.state.session
    return {
        "status": "ok",
        "store_connected": session.store is not None and session.store.is_connected,
    }
