"""
PDF collector — one raw chunk per page of extractable text.

PyMuPDF (fitz) pulls the page text; pages with 50 characters or fewer are
treated as blank/scanned and skipped.
"""

import logging
from typing import List, Union

import fitz  # PyMuPDF

from generation.schemas import RawChunk, SourceType

log = logging.getLogger(__name__)

MIN_PAGE_CHARS = 50


def extract_chunks_from_pdf(source: Union[str, bytes], name: str) -> List[RawChunk]:
    """
    Args:
        source: Path to the PDF, or its raw bytes (uploads)
        name:   Original filename, kept as the chunk's source_name

    Returns:
        Pending chunks, page_or_url set to the 1-based page number
    """
    log.info("Parsing PDF %s", name)
    if isinstance(source, (bytes, bytearray)):
        doc = fitz.open(stream=bytes(source), filetype="pdf")
    else:
        doc = fitz.open(source)

    chunks: List[RawChunk] = []
    try:
        for page_no, page in enumerate(doc, start=1):
            text = page.get_text("text").strip()
            if len(text) <= MIN_PAGE_CHARS:
                continue
            chunks.append(RawChunk(
                text=text,
                source_type=SourceType.PDF,
                source_name=name,
                page_or_url=str(page_no),
            ))
        log.info("Extracted %d chunks from %s (%d pages)", len(chunks), name, len(doc))
    finally:
        doc.close()
    return chunks
