"""Render document templates to PDF with reportlab.

Templates use a pdfme-style layout, measured in millimetres from the
top-left corner of the page:

    {"basePdf": {"width": 210, "height": 297},          # optional, A4 default
     "schemas": [                                       # one entry per page
        {"title": {"type": "text", "position": {"x": 20, "y": 20},
                   "width": 170, "height": 12, "fontSize": 18}},
        ...
     ]}

A page may also be given as a list of field dicts carrying ``name``.
Text is wrapped to the field width and clipped to its height. Data keys
without a field in the layout are not printed; a template without any
fields gets a plain key/value listing instead.
"""

import io
import logging

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
DEFAULT_FONT_SIZE = 11
LINE_SPACING = 1.25
MARGIN_MM = 20


def _page_size(layout: dict) -> tuple[float, float]:
    base = layout.get("basePdf")
    if isinstance(base, dict) and base.get("width") and base.get("height"):
        return float(base["width"]) * mm, float(base["height"]) * mm
    return A4


def _page_fields(page) -> list[tuple[str, dict]]:
    if isinstance(page, dict):
        return [(name, field) for name, field in page.items() if isinstance(field, dict)]
    if isinstance(page, list):
        return [(field["name"], field) for field in page if isinstance(field, dict) and field.get("name")]
    return []


def _wrap(text: str, font: str, size: float, width: float) -> list[str]:
    lines = []
    for paragraph in str(text).split("\n"):
        lines.extend(simpleSplit(paragraph, font, size, width) or [""])
    return lines


def _draw_field(pdf, page_height: float, field: dict, value) -> None:
    position = field.get("position") or {}
    x = float(position.get("x", MARGIN_MM)) * mm
    top = page_height - float(position.get("y", MARGIN_MM)) * mm
    width = float(field.get("width", 100)) * mm
    height = float(field.get("height", 10)) * mm
    size = float(field.get("fontSize", DEFAULT_FONT_SIZE))
    font = FONT_BOLD if field.get("bold") else FONT
    leading = size * LINE_SPACING

    pdf.setFont(font, size)
    y = top - size
    for line in _wrap(value, font, size, width):
        if y < top - height:
            break
        pdf.drawString(x, y, line)
        y -= leading


def _draw_listing(pdf, page_size, data: dict) -> None:
    """Flowing ``key: value`` layout used when the template defines no fields."""
    width, height = page_size
    text_width = width - 2 * MARGIN_MM * mm
    leading = DEFAULT_FONT_SIZE * LINE_SPACING
    y = height - MARGIN_MM * mm

    def newline():
        nonlocal y
        y -= leading
        if y < MARGIN_MM * mm:
            pdf.showPage()
            y = height - MARGIN_MM * mm - leading

    for key, value in data.items():
        newline()
        pdf.setFont(FONT_BOLD, DEFAULT_FONT_SIZE)
        pdf.drawString(MARGIN_MM * mm, y, str(key))
        pdf.setFont(FONT, DEFAULT_FONT_SIZE)
        for line in _wrap(value if value is not None else "", FONT, DEFAULT_FONT_SIZE, text_width):
            newline()
            pdf.drawString(MARGIN_MM * mm, y, line)
        newline()


def render_pdf(layout: dict | None, data: dict | None, *, title: str = "") -> bytes:
    """Render ``data`` into ``layout`` and return the PDF bytes."""
    layout = layout or {}
    data = data or {}
    page_size = _page_size(layout)
    pages = [_page_fields(p) for p in layout.get("schemas") or []]

    buf = io.BytesIO()
    pdf = canvas.Canvas(buf, pagesize=page_size)
    if title:
        pdf.setTitle(title)

    if not any(pages):
        _draw_listing(pdf, page_size, data)
        pdf.showPage()
    else:
        for fields in pages:
            for name, field in fields:
                value = data.get(name, field.get("content", ""))
                if value in (None, ""):
                    continue
                _draw_field(pdf, page_size[1], field, value)
            pdf.showPage()

    pdf.save()
    logger.debug("Rendered PDF %r: %d page(s)", title, max(len(pages), 1))
    return buf.getvalue()
