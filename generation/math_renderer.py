"""
Math Renderer — LaTeX spans in question text to PNG (matplotlib mathtext)

Cleaned questions use four math delimiters:
    $$ ... $$   display      \\[ ... \\]   display
    $ ... $     inline       \\( ... \\)   inline
and markdown image references  ![alt](url)  for diagrams.

mathtext covers the subset of TeX that exam questions use (fractions,
integrals, greek, sub/superscripts), so no LaTeX installation is needed.
"""

import logging
import re
import tempfile
from typing import Dict, List, Optional, Tuple

import matplotlib
matplotlib.use("Agg")
from matplotlib import mathtext  # noqa: E402
from matplotlib.font_manager import FontProperties  # noqa: E402
from PIL import Image  # noqa: E402

log = logging.getLogger(__name__)

DEFAULT_DPI = 150

# $$ must be tried before $, otherwise a display block splits into two inline spans.
_MATH = r'\$\$.+?\$\$|\\\[.+?\\\]|\\\(.+?\\\)|\$[^$\n]+\$'
_IMAGE = r'!\[(.*?)\]\((.*?)\)'

_MATH_PATTERN = re.compile(_MATH, re.DOTALL)
_IMAGE_PATTERN = re.compile(_IMAGE)
_RICH_PATTERN = re.compile(rf'({_IMAGE}|{_MATH})', re.DOTALL)

_DELIMITERS = (("$$", True), (r"\[", True), (r"\(", False), ("$", False))


def has_math(text: str) -> bool:
    return bool(text) and _MATH_PATTERN.search(text) is not None


def has_rich_content(text: str) -> bool:
    return has_math(text) or (bool(text) and _IMAGE_PATTERN.search(text) is not None)


def _unwrap_math(raw: str) -> Tuple[str, bool]:
    for opener, display in _DELIMITERS:
        if raw.startswith(opener):
            size = len(opener)
            return raw[size:-size].strip(), display
    return raw, False


def extract_rich_spans(text: str) -> List[Dict]:
    """
    Split text into plain, math and image spans, in order:

      {"type": "text",  "content": "Solve "}
      {"type": "math",  "expr": "x^2 + 1 = 0", "display": False, "raw": "$x^2 + 1 = 0$"}
      {"type": "image", "alt": "circuit", "src": "fig.png", "raw": "![circuit](fig.png)"}
    """
    if not text:
        return [{"type": "text", "content": ""}]

    spans: List[Dict] = []
    pos = 0
    for match in _RICH_PATTERN.finditer(text):
        if match.start() > pos:
            spans.append({"type": "text", "content": text[pos:match.start()]})
        raw = match.group(0)
        if match.group(2) is not None:
            spans.append({"type": "image", "alt": match.group(2).strip(),
                          "src": match.group(3).strip(), "raw": raw})
        else:
            expr, display = _unwrap_math(raw)
            spans.append({"type": "math", "expr": expr, "display": display, "raw": raw})
        pos = match.end()
    if pos < len(text):
        spans.append({"type": "text", "content": text[pos:]})
    return spans


def strip_markup(text: str) -> str:
    """Plain-text fallback: delimiters dropped, expressions kept, images described."""
    if not text:
        return ""
    parts = []
    for span in extract_rich_spans(text):
        if span["type"] == "text":
            parts.append(span["content"])
        elif span["type"] == "math":
            parts.append(span["expr"])
        else:
            parts.append(f"[Image: {span['alt'] or span['src']}]")
    return re.sub(r"\s+", " ", "".join(parts)).strip()


# ─── Rendering ─────────────────────────────────────────────────────────────────

def render_latex_to_png(
    expr: str,
    fontsize: int = 11,
    display: bool = False,
    dpi: int = DEFAULT_DPI,
    out_dir: Optional[str] = None,
) -> Tuple[str, float, float]:
    """
    Render one expression (no outer delimiters) to a PNG file.

    Returns (png_path, width_pts, height_pts), sized in ReportLab points.
    Raises ValueError when mathtext cannot parse the expression.
    """
    prop = FontProperties(size=fontsize + 2 if display else fontsize)
    tmp = tempfile.NamedTemporaryFile(suffix=".png", delete=False, dir=out_dir)
    tmp.close()
    try:
        mathtext.math_to_image(f"${expr}$", tmp.name, prop=prop, dpi=dpi, format="png")
    except Exception as exc:
        raise ValueError(f"Failed to render LaTeX expression '{expr}': {exc}") from exc

    with Image.open(tmp.name) as img:
        width_px, height_px = img.size
    return tmp.name, width_px / dpi * 72, height_px / dpi * 72


def render_latex_to_png_safe(
    expr: str,
    fontsize: int = 11,
    display: bool = False,
    dpi: int = DEFAULT_DPI,
    out_dir: Optional[str] = None,
) -> Optional[Tuple[str, float, float]]:
    """render_latex_to_png, or None so the caller can print the expression as text."""
    try:
        return render_latex_to_png(expr, fontsize=fontsize, display=display, dpi=dpi, out_dir=out_dir)
    except ValueError as exc:
        log.debug("Math render failed for '%s': %s", expr[:60], exc)
        return None
