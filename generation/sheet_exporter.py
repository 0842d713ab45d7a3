"""
Tabular exports — spreadsheet of a selected paper, CSV dumps of the bank and run log.

Row building is kept separate from serialisation so the same selection always
yields the same rows (independent of the PDF renderer).
"""

import logging
from io import BytesIO
from typing import Dict, List, Sequence

import pandas as pd

from generation.schemas import PaperConfig, Question, SelectionResult

log = logging.getLogger(__name__)

PAPER_COLUMNS = [
    "Section", "Question ID", "Type", "Question Text",
    "Option A", "Option B", "Option C", "Option D",
    "Answer Key", "Explanation", "Image URL",
    "Marks", "Negative Marks", "Source",
]

BANK_CSV_COLUMNS = [
    "qid", "question", "a", "b", "c", "d",
    "source_type", "source_name", "page_or_url",
]

LOG_CSV_COLUMNS = ["timestamp", "level", "source", "message", "meta"]


# ─── Question paper spreadsheet ────────────────────────────────────────────────

def build_paper_rows(selection: SelectionResult) -> List[Dict]:
    """One row per selected question, section by section."""
    rows = []
    for sel in selection.sections:
        for q in sel.questions:
            rows.append({
                "Section": sel.section.kind.value,
                "Question ID": q.qid,
                "Type": q.kind.value,
                "Question Text": q.question,
                "Option A": q.options.a,
                "Option B": q.options.b,
                "Option C": q.options.c,
                "Option D": q.options.d,
                "Answer Key": q.answer or "",
                "Explanation": q.explanation or "",
                "Image URL": q.image_url or "",
                "Marks": sel.section.marks_per_question,
                "Negative Marks": sel.section.negative_marks,
                "Source": q.source_name,
            })
    return rows


def export_paper_xlsx(selection: SelectionResult, config: PaperConfig) -> bytes:
    """Spreadsheet with one sheet, 'Question Paper'."""
    log.info("Starting Excel generation for %s", config.subject_name)
    df = pd.DataFrame(build_paper_rows(selection), columns=PAPER_COLUMNS)
    buffer = BytesIO()
    df.to_excel(buffer, sheet_name="Question Paper", index=False, engine="openpyxl")
    log.info("Excel generation complete (%d rows)", len(df))
    return buffer.getvalue()


# ─── CSV dumps ─────────────────────────────────────────────────────────────────

def build_bank_rows(questions: Sequence[Question]) -> List[Dict]:
    return [
        {
            "qid": q.qid,
            "question": q.question,
            "a": q.options.a,
            "b": q.options.b,
            "c": q.options.c,
            "d": q.options.d,
            "source_type": q.source_type.value,
            "source_name": q.source_name,
            "page_or_url": q.page_or_url,
        }
        for q in questions
    ]


def export_bank_csv(questions: Sequence[Question]) -> str:
    """clean_questions.csv — fixed columns, one row per bank question."""
    return pd.DataFrame(build_bank_rows(questions), columns=BANK_CSV_COLUMNS).to_csv(index=False)


def export_log_csv(entries: Sequence[Dict]) -> str:
    return pd.DataFrame(list(entries), columns=LOG_CSV_COLUMNS).to_csv(index=False)
