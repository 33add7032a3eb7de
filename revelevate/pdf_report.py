"""Plain PDF exports of a strategic plan or an assistant transcript.

The writer emits PDF 1.4 objects directly (Helvetica only) so exports need no
rendering dependency.
"""
from __future__ import annotations

import re
import textwrap
import unicodedata
from io import BytesIO
from typing import Iterable, List, Sequence, Tuple

from .models import ChatMessage, StrategicPlan


BRAND = "RevElevate AI"
LINES_PER_PAGE = 48
WRAP_WIDTH = 92

PUNCT_TRANSLATION = {
    ord("‐"): "-",
    ord("‑"): "-",
    ord("–"): "-",
    ord("—"): "-",
    ord("−"): "-",
    ord("“"): '"',
    ord("”"): '"',
    ord("‘"): "'",
    ord("’"): "'",
    ord("•"): "-",
    ord("…"): "...",
    ord(" "): " ",
}

# (text, bold)
PdfLine = Tuple[str, bool]


def wrap_text(text: str, width: int = WRAP_WIDTH, indent: str = "") -> List[str]:
    wrapper = textwrap.TextWrapper(
        width=max(width, len(indent) + 1),
        initial_indent=indent,
        subsequent_indent=indent,
    )
    lines: List[str] = []
    for block in text.splitlines() or [""]:
        lines.extend(wrapper.wrap(block) or [""])
    return lines


def strip_markdown(line: str) -> str:
    cleaned = line.replace("**", "").replace("__", "").replace("`", "")
    cleaned = re.sub(r"^\s*#{1,6}\s?", "", cleaned)
    cleaned = re.sub(r"^(\s*)[-*]\s", r"\1- ", cleaned)
    return cleaned


def sanitize_pdf_line(line: str) -> str:
    safe = unicodedata.normalize("NFKC", line).translate(PUNCT_TRANSLATION)
    safe = safe.replace("\r", "").encode("latin-1", "replace").decode("latin-1")
    return safe.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def split_markdown_tables(text: str) -> List[Tuple[str, object]]:
    """Split a reply into ("text", str) and ("table", (headers, rows)) blocks."""

    blocks: List[Tuple[str, object]] = []
    prose: List[str] = []
    table: List[str] = []

    def flush_table() -> None:
        if len(table) >= 2:
            if prose:
                blocks.append(("text", "\n".join(prose)))
                prose.clear()
            cells = [[cell.strip() for cell in row.strip("|").split("|")] for row in table]
            blocks.append(("table", (cells[0], cells[2:])))
        else:
            prose.extend(table)
        table.clear()

    for raw in text.split("\n"):
        line = raw.strip()
        if line.startswith("|") and line.endswith("|"):
            table.append(line)
            continue
        if table:
            flush_table()
        prose.append(raw)

    if table:
        flush_table()
    if prose:
        blocks.append(("text", "\n".join(prose)))
    return blocks


def _table_lines(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> List[PdfLine]:
    lines: List[PdfLine] = [(" | ".join(headers), True)]
    for row in rows:
        for wrapped in wrap_text(" | ".join(row), indent="  "):
            lines.append((wrapped, False))
    return lines


def build_pdf_document(lines: Iterable[PdfLine], footer: str = BRAND) -> bytes:
    """Lay the lines out over as many Letter pages as needed."""

    content = [(sanitize_pdf_line(text) or " ", bold) for text, bold in lines] or [(" ", False)]
    pages = [content[i : i + LINES_PER_PAGE] for i in range(0, len(content), LINES_PER_PAGE)]
    page_count = len(pages)

    regular_font = 3 + 2 * page_count
    bold_font = regular_font + 1
    kids = " ".join(f"{3 + 2 * idx} 0 R" for idx in range(page_count))

    objects = [
        "1 0 obj << /Type /Catalog /Pages 2 0 R >> endobj\n",
        f"2 0 obj << /Type /Pages /Kids [{kids}] /Count {page_count} >> endobj\n",
    ]
    for number, page in enumerate(pages, start=1):
        stream = ["BT", "14 TL", "1 0 0 1 50 750 Tm"]
        current_bold = None
        for idx, (text, bold) in enumerate(page):
            if bold != current_bold:
                stream.append("/F2 11 Tf" if bold else "/F1 10 Tf")
                current_bold = bold
            if idx:
                stream.append("T*")
            stream.append(f"({text}) Tj")
        stream.append("ET")
        footer_text = sanitize_pdf_line(f"{footer} - Page {number} of {page_count}")
        stream.extend(["BT", "/F1 8 Tf", "1 0 0 1 230 30 Tm", f"({footer_text}) Tj", "ET"])
        body = "\n".join(stream)

        page_obj = 1 + 2 * number
        objects.append(
            f"{page_obj} 0 obj << /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            f"/Contents {page_obj + 1} 0 R /Resources << /Font << /F1 {regular_font} 0 R "
            f"/F2 {bold_font} 0 R >> >> >> endobj\n"
        )
        objects.append(
            f"{page_obj + 1} 0 obj << /Length {len(body.encode('latin-1'))} >> stream\n"
            f"{body}\nendstream\nendobj\n"
        )
    objects.append(
        f"{regular_font} 0 obj << /Type /Font /Subtype /Type1 /BaseFont /Helvetica >> endobj\n"
    )
    objects.append(
        f"{bold_font} 0 obj << /Type /Font /Subtype /Type1 /BaseFont /Helvetica-Bold >> endobj\n"
    )

    buffer = BytesIO()
    buffer.write(b"%PDF-1.4\n")
    offsets = []
    for obj in objects:
        offsets.append(buffer.tell())
        buffer.write(obj.encode("latin-1"))

    xref_start = buffer.tell()
    buffer.write(f"xref\n0 {len(objects) + 1}\n0000000000 65535 f \n".encode("latin-1"))
    for offset in offsets:
        buffer.write(f"{offset:010d} 00000 n \n".encode("latin-1"))
    buffer.write(
        f"trailer << /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_start}\n%%EOF".encode("latin-1")
    )
    return buffer.getvalue()


def plan_report_lines(plan: StrategicPlan, target_growth: int, timeline_months: int) -> List[PdfLine]:
    lines: List[PdfLine] = [
        (f"{BRAND} - Strategic Profitability Roadmap", True),
        (f"Target: +{target_growth}% Profit in {timeline_months} Months", False),
        ("", False),
        ("Executive Summary", True),
    ]
    lines.extend((line, False) for line in wrap_text(plan.summary))
    lines.append(("", False))

    lines.append(("Strategic Action Items", True))
    for rec in plan.recommendations:
        heading = f"[{rec.priority}] {rec.category}: {rec.action} ({rec.estimated_impact})"
        lines.extend((line, True) for line in wrap_text(heading))
        if rec.detailed_action:
            lines.extend((line, False) for line in wrap_text(rec.detailed_action, indent="    "))
        lines.extend((line, False) for line in wrap_text(f"Goal: {rec.goal}", indent="    "))
        if rec.example:
            lines.extend((line, False) for line in wrap_text(f"Example: {rec.example}", indent="    "))
    lines.append(("", False))

    if plan.projected_profitability:
        lines.append(("Projected Profitability", True))
        months = ", ".join(
            f"M{idx}: {value:.1f}%" for idx, value in enumerate(plan.projected_profitability, 1)
        )
        lines.extend((line, False) for line in wrap_text(months))
        lines.append(("", False))

    if plan.consumer_insights:
        lines.append(("Consumer Usage / Demand", True))
        for insight in plan.consumer_insights:
            lines.append((f"- {insight.category} ({insight.type}): {insight.usage_score}/100", False))
        lines.append(("", False))

    investment = plan.recommended_investment
    if investment:
        lines.append(("Recommended Investment", True))
        lines.append((f"{investment.amount} over {investment.period}", False))
        lines.extend((line, False) for line in wrap_text(investment.rationale, indent="    "))
        lines.append(("", False))

    if plan.operational_cost_projections:
        lines.append(("Operational Cost Projections", True))
        lines.extend(
            _table_lines(
                ["Month", "Cost", "Savings", "Profit Impact"],
                [
                    [p.month, f"${p.cost:,.0f}", f"${p.savings_opportunity:,.0f}", p.impact_on_profit]
                    for p in plan.operational_cost_projections
                ],
            )
        )
        lines.append(("", False))

    if plan.sources:
        lines.append(("Sources", True))
        for source in plan.sources:
            lines.extend((line, False) for line in wrap_text(f"- {source.title}: {source.uri}"))
    return lines


def build_plan_pdf(plan: StrategicPlan, target_growth: int, timeline_months: int) -> bytes:
    return build_pdf_document(plan_report_lines(plan, target_growth, timeline_months))


def build_chat_pdf(messages: Sequence[ChatMessage]) -> bytes:
    lines: List[PdfLine] = [(f"{BRAND} - Strategy Consultation", True), ("", False)]
    for message in messages:
        lines.append(("You" if message.is_user else "AI Strategist", True))
        for kind, block in split_markdown_tables(message.text):
            if kind == "table":
                headers, rows = block
                lines.extend(_table_lines(headers, rows))
                continue
            for raw_line in str(block).splitlines():
                lines.extend((line, False) for line in wrap_text(strip_markdown(raw_line)))
        for source in message.sources:
            note = f"Source: {source.title} ({source.uri})"
            lines.extend((line, False) for line in wrap_text(note, indent="  "))
        lines.append(("", False))
    return build_pdf_document(lines, footer=BRAND)
