"""
Paper Export Service - PDF Generation

Exports selected questions as an exam paper in coaching-institute format:
- Branding header + paper title + duration
- Section summary table (count, marks, negative marks, totals)
- Instructions to candidates, then a page break
- One banner per section followed by its questions
  (choice sections: four options a)–d); NAT sections: an answer box)
- A separate key & solutions document (tabulated)

Mathematical expressions ($…$, $$…$$, \\( … \\), \\[ … \\]) are rendered to PNG
images via matplotlib mathtext and embedded inline.  Markdown image references
and question image URLs are fetched and placed below the question text.
Any per-question rendering failure falls back to plain wrapped text; only a
failure of the document build itself raises RenderError.
"""

import base64
import logging
import os
import re
import tempfile
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Protocol, Tuple

import httpx
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY, TA_LEFT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import (
    Flowable, Image as RLImage, KeepTogether, PageBreak, Paragraph,
    SimpleDocTemplate, Spacer, Table, TableStyle,
)

from generation import math_renderer
from generation.errors import NetworkError, RenderError
from generation.schemas import (
    PaperConfig, PaperSection, Question, QuestionKind, SelectionResult,
)

log = logging.getLogger(__name__)


# ─── Configuration ──────────────────────────────────────────────────────────────

BRAND_NAME = os.getenv("BRAND_NAME", "CGP Career Avenues")
BRAND_TAGLINE = os.getenv("BRAND_TAGLINE", "Gateway to IITs")
BRAND_COLOR = colors.Color(0, 102 / 255, 204 / 255)

DEFAULT_INSTRUCTIONS = [
    "This question paper contains multiple sections as detailed above.",
    "NAT questions require a specific value.",
    "MSQ may have one or more correct options.",
    "Diagrams are included where necessary.",
    "Do not close the browser window.",
]

PAGE_MARGIN = 2 * cm
CONTENT_WIDTH = A4[0] - 2 * PAGE_MARGIN

FIGURE_MAX_HEIGHT_CM = 10
IMAGE_FETCH_TIMEOUT = float(os.getenv("IMAGE_FETCH_TIMEOUT", "15"))
EXPLANATION_CELL_LIMIT = 100
NOT_AVAILABLE = "N/A"


# ─── Text helpers ───────────────────────────────────────────────────────────────

def _escape_html(text: str) -> str:
    """Escape HTML special characters so ReportLab Paragraph treats them as literal text."""
    if not text:
        return text or ""
    text = text.replace("&", "&amp;")
    text = text.replace("<", "&lt;")
    text = text.replace(">", "&gt;")
    return text


def _reflow(chunk: str) -> str:
    """Double newlines become <br/> paragraph breaks; single newlines become spaces."""
    chunk = re.sub(r'\n{2,}', '<br/>', chunk)
    return chunk.replace('\n', ' ')


def _plain_markup(text: str) -> str:
    return _reflow(_escape_html(math_renderer.strip_markup(text)))


def _fmt_marks(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def truncate_explanation(text: Optional[str], limit: int = EXPLANATION_CELL_LIMIT) -> str:
    text = text or "No explanation provided."
    return text[:limit] + ("..." if len(text) > limit else "")


def paper_file_stem(subject_name: str) -> str:
    """'GATE CSE - Set A' → 'CGP_Paper_GATE_CSE_-_Set_A'."""
    return "CGP_Paper_" + re.sub(r"\s+", "_", subject_name.strip())


# ─── Images ─────────────────────────────────────────────────────────────────────

def fetch_image_bytes(src: str) -> BytesIO:
    """Resolve an image reference (http(s) URL, data URI or local path) to bytes."""
    if src.startswith(("http://", "https://")):
        try:
            response = httpx.get(src, timeout=IMAGE_FETCH_TIMEOUT, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise NetworkError(f"Could not fetch image {src}: {exc}") from exc
        return BytesIO(response.content)
    if src.startswith("data:image"):
        _, _, payload = src.partition(",")
        return BytesIO(base64.b64decode(payload))
    path = Path(src)
    if path.exists():
        return BytesIO(path.read_bytes())
    raise NetworkError(f"Image not found: {src}")


def load_image_flowable(
    src: str,
    max_width: float = CONTENT_WIDTH,
    max_height: float = FIGURE_MAX_HEIGHT_CM * cm,
) -> Optional[RLImage]:
    """Return a scaled image flowable, or None if the image cannot be loaded."""
    try:
        data = fetch_image_bytes(src)
        iw, ih = ImageReader(data).getSize()
        data.seek(0)
        scale = min(max_width / iw, max_height / ih, 1.0)
        return RLImage(data, width=iw * scale, height=ih * scale)
    except Exception as exc:
        log.warning("paper_exporter: could not load image %s: %s", src[:80], exc)
        return None


# ─── Rich content rendering ─────────────────────────────────────────────────────

class RichContentRenderer(Protocol):
    """
    Converts mixed math/image markup into flowables.

    Returns None when the renderer is unavailable, in which case the caller
    lays the text out as plain wrapped text.
    """

    def render(self, markup: str, width: float, style: ParagraphStyle,
               prefix: str = "") -> Optional[List[Flowable]]:
        ...


class MathtextRenderer:
    """Default renderer: matplotlib mathtext for formulas, reportlab images for diagrams."""

    def __init__(self, out_dir: Optional[str] = None):
        self.out_dir = out_dir

    def _math_markup(self, text: str, fontsize: float) -> Tuple[str, List[str]]:
        """Return (paragraph markup, image sources found in the text)."""
        parts: List[str] = []
        images: List[str] = []

        for span in math_renderer.extract_rich_spans(text):
            if span["type"] == "text":
                parts.append(_reflow(_escape_html(span["content"])))
            elif span["type"] == "image":
                images.append(span["src"])
            else:
                rendered = math_renderer.render_latex_to_png_safe(
                    span["expr"],
                    fontsize=int(fontsize),
                    display=span["display"],
                    out_dir=self.out_dir,
                )
                if rendered is None:
                    parts.append(f"[{_escape_html(span['expr'])}]")
                    continue
                png_path, w_pts, h_pts = rendered
                # Cap height so large display formulas don't overflow a line
                max_h = fontsize * 3.0
                if h_pts > max_h:
                    scale = max_h / h_pts
                    w_pts *= scale
                    h_pts = max_h
                img_tag = (
                    f'<img src="{png_path}" width="{w_pts:.1f}" '
                    f'height="{h_pts:.1f}" valign="middle"/>'
                )
                parts.append(f"<br/>{img_tag}<br/>" if span["display"] else img_tag)

        return "".join(parts), images

    def render(self, markup: str, width: float, style: ParagraphStyle,
               prefix: str = "") -> Optional[List[Flowable]]:
        text_markup, images = self._math_markup(markup, style.fontSize)
        flowables: List[Flowable] = [Paragraph(prefix + text_markup, style)]
        for src in images:
            img = load_image_flowable(src, max_width=width)
            if img is not None:
                flowables += [Spacer(1, 0.2 * cm), img]
            else:
                flowables.append(Paragraph(f"[Image: {_escape_html(src)}]", style))
        return flowables


# ─── Custom Flowables ───────────────────────────────────────────────────────────

class HorizontalLine(Flowable):
    """Draw a horizontal line across the page."""

    def __init__(self, width, thickness=1, color=colors.black):
        Flowable.__init__(self)
        self.width = width
        self.thickness = thickness
        self.color = color

    def draw(self):
        self.canv.setStrokeColor(self.color)
        self.canv.setLineWidth(self.thickness)
        self.canv.line(0, 0, self.width, 0)


# ─── Style Definitions ──────────────────────────────────────────────────────────

def get_custom_styles():
    """Define custom paragraph styles for the exam paper."""
    styles = getSampleStyleSheet()

    styles.add(ParagraphStyle(
        name='BrandName',
        parent=styles['Heading1'],
        fontSize=22,
        textColor=BRAND_COLOR,
        alignment=TA_LEFT,
        spaceAfter=2,
        fontName='Helvetica-Bold',
    ))

    styles.add(ParagraphStyle(
        name='BrandTagline',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor("#505050"),
        alignment=TA_LEFT,
        spaceAfter=4,
        fontName='Helvetica',
    ))

    styles.add(ParagraphStyle(
        name='PaperTitle',
        parent=styles['Heading2'],
        fontSize=16,
        textColor=colors.black,
        alignment=TA_CENTER,
        spaceAfter=4,
        fontName='Helvetica-Bold',
    ))

    styles.add(ParagraphStyle(
        name='ExamDetails',
        parent=styles['Normal'],
        fontSize=12,
        textColor=colors.black,
        alignment=TA_CENTER,
        spaceAfter=12,
        fontName='Helvetica',
    ))

    styles.add(ParagraphStyle(
        name='SectionBanner',
        parent=styles['Normal'],
        fontSize=11,
        textColor=colors.black,
        alignment=TA_LEFT,
        fontName='Helvetica-Bold',
    ))

    styles.add(ParagraphStyle(
        name='QuestionText',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.black,
        alignment=TA_JUSTIFY,
        spaceAfter=6,
        fontName='Helvetica',
        leading=14,
    ))

    styles.add(ParagraphStyle(
        name='MCQOption',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.black,
        alignment=TA_LEFT,
        leftIndent=20,
        spaceAfter=3,
        fontName='Helvetica',
    ))

    styles.add(ParagraphStyle(
        name='Instructions',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.black,
        alignment=TA_LEFT,
        spaceAfter=4,
        fontName='Helvetica',
    ))

    styles.add(ParagraphStyle(
        name='Cell',
        parent=styles['Normal'],
        fontSize=9,
        leading=11,
        alignment=TA_LEFT,
        fontName='Helvetica',
    ))

    return styles


# ─── Shared building blocks ─────────────────────────────────────────────────────

def _new_doc(buffer: BytesIO, title: str) -> SimpleDocTemplate:
    return SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=PAGE_MARGIN,
        leftMargin=PAGE_MARGIN,
        topMargin=PAGE_MARGIN,
        bottomMargin=PAGE_MARGIN,
        title=title,
        author=BRAND_NAME,
    )


def _branding_header(story: list, styles) -> None:
    story.append(Paragraph(_escape_html(BRAND_NAME), styles['BrandName']))
    story.append(Paragraph(_escape_html(BRAND_TAGLINE), styles['BrandTagline']))
    story.append(HorizontalLine(width=CONTENT_WIDTH, thickness=0.5))
    story.append(Spacer(1, 0.8 * cm))


def _build(doc: SimpleDocTemplate, story: list, buffer: BytesIO, what: str) -> bytes:
    try:
        doc.build(story)
    except Exception as exc:
        log.error("paper_exporter: %s build failed: %s", what, exc, exc_info=True)
        raise RenderError(f"{what} generation failed: {exc}") from exc
    return buffer.getvalue()


def summary_table_rows(config: PaperConfig) -> List[List[str]]:
    """Header, one row per section, and the TOTAL row of the summary table."""
    rows = [['Section Type', 'No. of Questions', 'Marks / Q', 'Negative Marks', 'Total Marks']]
    for sec in config.sections:
        rows.append([
            sec.kind.value,
            str(sec.count),
            _fmt_marks(sec.marks_per_question),
            _fmt_marks(sec.negative_marks),
            _fmt_marks(sec.section_marks),
        ])
    rows.append(['TOTAL', str(config.total_questions), '-', '-', _fmt_marks(config.total_marks)])
    return rows


def _summary_table(config: PaperConfig) -> Table:
    tbl = Table(summary_table_rows(config), colWidths=[CONTENT_WIDTH / 5] * 5)
    tbl.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), BRAND_COLOR),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
        ('TOPPADDING', (0, 0), (-1, -1), 5),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
    ]))
    return tbl


def _section_banner(number: int, section: PaperSection, styles) -> Table:
    text = f"SECTION {number}: {section.kind.value} ({_fmt_marks(section.marks_per_question)} Marks)"
    banner = Table([[Paragraph(text, styles['SectionBanner'])]], colWidths=[CONTENT_WIDTH])
    banner.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, -1), colors.HexColor("#f0f0f0")),
        ('TOPPADDING', (0, 0), (-1, -1), 4),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
    ]))
    return banner


def _answer_box(styles) -> Table:
    box = Table(
        [[Paragraph("Answer:", styles['MCQOption']), ""]],
        colWidths=[2.5 * cm, 4 * cm],
        rowHeights=[0.8 * cm],
        hAlign='LEFT',
    )
    box.setStyle(TableStyle([
        ('BOX', (1, 0), (1, 0), 0.8, colors.grey),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]))
    return box


# ─── Question entries ───────────────────────────────────────────────────────────

def _rich_or_plain(
    renderer: Optional[RichContentRenderer],
    text: str,
    style: ParagraphStyle,
    prefix: str = "",
) -> List[Flowable]:
    if renderer is not None and math_renderer.has_rich_content(text):
        rendered = renderer.render(text, CONTENT_WIDTH, style, prefix=prefix)
        if rendered:
            return rendered
    return [Paragraph(prefix + _plain_markup(text), style)]


def _question_flowables(
    number: int,
    q: Question,
    section: PaperSection,
    styles,
    renderer: Optional[RichContentRenderer],
) -> List[Flowable]:
    flow = _rich_or_plain(renderer, q.question, styles['QuestionText'], prefix=f"<b>Q.{number}</b>&nbsp;&nbsp;")

    if q.image_url:
        img = load_image_flowable(q.image_url) if renderer is not None else None
        if img is not None:
            flow += [Spacer(1, 0.2 * cm), img]
        else:
            flow.append(Paragraph(f"[Image: {_escape_html(q.image_url)}]", styles['QuestionText']))

    if section.kind is QuestionKind.NAT:
        flow += [Spacer(1, 0.1 * cm), _answer_box(styles)]
    else:
        for label, text in q.options.labelled():
            flow += _rich_or_plain(renderer, text, styles['MCQOption'], prefix=f"<b>{label})</b> ")

    flow.append(Spacer(1, 0.4 * cm))
    return flow


def _question_entry(
    number: int,
    q: Question,
    section: PaperSection,
    styles,
    renderer: Optional[RichContentRenderer],
) -> KeepTogether:
    """One question block; degrades to plain text if rich rendering fails."""
    try:
        flow = _question_flowables(number, q, section, styles, renderer)
    except Exception as exc:
        log.warning("paper_exporter: rich render failed for question %s, using plain text: %s", q.qid, exc)
        flow = _question_flowables(number, q, section, styles, None)
    return KeepTogether(flow)


# ─── Question Paper Generator ───────────────────────────────────────────────────

def generate_question_paper(
    selection: SelectionResult,
    config: PaperConfig,
    renderer: Optional[RichContentRenderer] = None,
    instructions: Optional[List[str]] = None,
) -> bytes:
    """
    Generate the question paper PDF (questions only, no answers).

    Sections are laid out in configuration order, each followed by exactly
    the questions the selector drew for it.  Question numbers run
    continuously across sections.

    Returns the PDF bytes.  Raises RenderError if the document cannot be built.
    """
    log.info("Starting PDF generation for %s. Qs: %d", config.subject_name, len(selection.questions))
    buffer = BytesIO()
    doc = _new_doc(buffer, f"{config.subject_name} — Question Paper")
    styles = get_custom_styles()
    story = []

    with tempfile.TemporaryDirectory(prefix="automcq_math_") as math_dir:
        if renderer is None:
            renderer = MathtextRenderer(out_dir=math_dir)

        # ─── Header ─────────────────────────────────────────────────────────────
        _branding_header(story, styles)
        story.append(Paragraph(
            f"MODEL QUESTION PAPER: {_escape_html(config.subject_name.upper())}", styles['PaperTitle']
        ))
        story.append(Paragraph(f"Duration: {config.duration_mins} Minutes", styles['ExamDetails']))
        story.append(Spacer(1, 0.4 * cm))
        story.append(_summary_table(config))
        story.append(Spacer(1, 0.6 * cm))

        # ─── Instructions ───────────────────────────────────────────────────────
        story.append(Paragraph("<b>INSTRUCTIONS:</b>", styles['Normal']))
        story.append(Spacer(1, 0.2 * cm))
        for i, instruction in enumerate(instructions or DEFAULT_INSTRUCTIONS, 1):
            story.append(Paragraph(f"{i}. {_escape_html(instruction)}", styles['Instructions']))
        story.append(PageBreak())

        # ─── Questions ──────────────────────────────────────────────────────────
        number = 0
        for sel in selection.sections:
            banner = _section_banner(sel.index + 1, sel.section, styles)
            entries = []
            for q in sel.questions:
                number += 1
                entries.append(_question_entry(number, q, sel.section, styles, renderer))

            # keep the banner on the same page as its first question
            if entries:
                story.append(KeepTogether([banner, Spacer(1, 0.3 * cm), entries[0]]))
                story.extend(entries[1:])
            else:
                story += [banner, Spacer(1, 0.3 * cm)]
            story.append(Spacer(1, 0.3 * cm))

        return _build(doc, story, buffer, "Question paper PDF")


# ─── Solutions Generator ────────────────────────────────────────────────────────

def solutions_table_rows(selection: SelectionResult) -> List[List[str]]:
    rows = [['Q.No', 'Type', 'Answer Key', 'Explanation / Solution']]
    for idx, q in enumerate(selection.questions, 1):
        rows.append([
            str(idx),
            q.kind.value,
            q.answer or NOT_AVAILABLE,
            truncate_explanation(q.explanation),
        ])
    return rows


def generate_solutions(selection: SelectionResult, config: PaperConfig) -> bytes:
    """
    Generate the key & solutions PDF: one table row per question in
    selection order.

    Returns the PDF bytes.  Raises RenderError if the document cannot be built.
    """
    log.info("Starting Solutions PDF generation for %s", config.subject_name)
    buffer = BytesIO()
    doc = _new_doc(buffer, f"{config.subject_name} — Key & Solutions")
    styles = get_custom_styles()
    cell = styles['Cell']
    story = []

    _branding_header(story, styles)
    story.append(Paragraph(
        f"KEY &amp; SOLUTIONS: {_escape_html(config.subject_name.upper())}", styles['PaperTitle']
    ))
    story.append(Spacer(1, 0.5 * cm))

    rows = solutions_table_rows(selection)
    header_cell = ParagraphStyle(name='HeaderCell', parent=cell, textColor=colors.white)
    table_data = [[Paragraph(f"<b>{h}</b>", header_cell) for h in rows[0]]]
    for row in rows[1:]:
        table_data.append([Paragraph(_plain_markup(value), cell) for value in row])

    tbl = Table(
        table_data,
        colWidths=[1.5 * cm, 1.5 * cm, 2.5 * cm, CONTENT_WIDTH - 5.5 * cm],
        repeatRows=1,
    )
    tbl.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), BRAND_COLOR),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor("#f5f5f5")]),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
        ('TOPPADDING', (0, 0), (-1, -1), 5),
    ]))
    story.append(tbl)

    return _build(doc, story, buffer, "Solutions PDF")


def render_paper_pair(
    selection: SelectionResult,
    config: PaperConfig,
    renderer: Optional[RichContentRenderer] = None,
) -> Tuple[bytes, bytes]:
    """(question paper PDF, solutions PDF) for one selection."""
    return (
        generate_question_paper(selection, config, renderer=renderer),
        generate_solutions(selection, config),
    )


def write_paper_files(
    selection: SelectionResult,
    config: PaperConfig,
    out_dir: Path,
    renderer: Optional[RichContentRenderer] = None,
) -> Tuple[Path, Path]:
    """Write CGP_Paper_<Subject>_QP.pdf and ..._SOLUTIONS.pdf into out_dir."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    qp_bytes, sol_bytes = render_paper_pair(selection, config, renderer=renderer)
    stem = paper_file_stem(config.subject_name)
    qp_path = out_dir / f"{stem}_QP.pdf"
    sol_path = out_dir / f"{stem}_SOLUTIONS.pdf"
    qp_path.write_bytes(qp_bytes)
    sol_path.write_bytes(sol_bytes)
    log.info("Wrote %s and %s", qp_path.name, sol_path.name)
    return qp_path, sol_path
