"""
HTML scraper — turns question pages into raw chunks.

With a container selector, each matching block (optionally narrowed to a
question selector, with option selectors appended) becomes a labelled
QUESTION BLOCK.  Without one, the page body text is taken after dropping
script/style/nav/header/footer.  A URL that cannot be fetched still yields a
chunk, already failed, carrying the error.
"""

import asyncio
import logging
import os
import re
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel

from generation.schemas import ChunkStatus, RawChunk, SourceType

log = logging.getLogger(__name__)

SCRAPER_RATE_LIMIT_MS = int(os.getenv("SCRAPER_RATE_LIMIT_MS", "1000"))
SCRAPER_TIMEOUT = 30.0
USER_AGENT = "Mozilla/5.0 (compatible; AutoMCQ/1.0)"
MIN_BLOCK_CHARS = 10
LOW_CONTENT_CHARS = 50


class ScraperConfig(BaseModel):
    rate_limit_ms: int = SCRAPER_RATE_LIMIT_MS
    container_selector: Optional[str] = None
    question_selector: Optional[str] = None
    option_selector: Optional[str] = None


def extract_text(html: str, config: ScraperConfig) -> str:
    soup = BeautifulSoup(html, "html.parser")

    if config.container_selector:
        containers = soup.select(config.container_selector)
        log.info("Found %d containers using selector '%s'", len(containers), config.container_selector)
        blocks = []
        for idx, container in enumerate(containers):
            if config.question_selector:
                q_el = container.select_one(config.question_selector)
                q_text = q_el.get_text(" ", strip=True) if q_el else ""
            else:
                q_text = container.get_text(" ", strip=True)
            if config.option_selector:
                for opt in container.select(config.option_selector):
                    q_text += f"\nOption: {opt.get_text(' ', strip=True)}"
            if len(q_text) > MIN_BLOCK_CHARS:
                blocks.append(f"\n--- QUESTION BLOCK {idx} ---\n{q_text}\n")
        return "".join(blocks)

    for el in soup(["script", "style", "nav", "footer", "header"]):
        el.decompose()
    body = soup.body or soup
    text = body.get_text("\n")
    return re.sub(r"\n\s*\n", "\n\n", text).strip()


async def scrape_url(client: httpx.AsyncClient, url: str, config: ScraperConfig) -> RawChunk:
    try:
        response = await client.get(url)
        response.raise_for_status()
        text = extract_text(response.text, config)
    except (httpx.HTTPError, ValueError) as exc:
        log.error("Failed to scrape %s: %s", url, exc)
        return RawChunk(
            text="",
            source_type=SourceType.SCRAPER,
            source_name=url,
            page_or_url=url,
            status=ChunkStatus.FAILED,
            error=str(exc) or type(exc).__name__,
        )

    if len(text) < LOW_CONTENT_CHARS:
        log.warning("Low content extracted from %s (%d chars)", url, len(text))
    log.info("Successfully extracted content from %s", url)
    return RawChunk(
        text=text,
        source_type=SourceType.SCRAPER,
        source_name=url,
        page_or_url=url,
    )


async def scrape_urls(urls: List[str], config: Optional[ScraperConfig] = None) -> List[RawChunk]:
    """Fetch each URL in order, pausing rate_limit_ms before every request."""
    config = config or ScraperConfig()
    chunks: List[RawChunk] = []
    async with httpx.AsyncClient(
        timeout=SCRAPER_TIMEOUT,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    ) as client:
        for raw_url in urls:
            url = raw_url.strip()
            if not url:
                continue
            log.info("Starting scrape for: %s", url)
            if config.rate_limit_ms > 0:
                await asyncio.sleep(config.rate_limit_ms / 1000)
            chunks.append(await scrape_url(client, url, config))
    return chunks
