"""
storage/export.py

PDF report for a case: patient-summary header followed by the full chat
transcript, paginated by reportlab.

Dependencies
------------
- reportlab  (PDF generation)
"""

from __future__ import annotations

import html
import logging
from datetime import date, datetime
from io import BytesIO

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from storage.models import Case, Sender

logger = logging.getLogger(__name__)

DISCLAIMER = (
    "AI-generated guidance for health professionals. It does not replace "
    "professional clinical judgment and is not a medical record."
)


def report_filename(on: date | None = None) -> str:
    """``Report_<YYYY-MM-DD>.pdf`` for *on* (default: today)."""
    return f"Report_{(on or date.today()).isoformat()}.pdf"


def _para_text(text: str) -> str:
    """Escape for reportlab's mini-markup and keep line breaks."""
    return html.escape(text or "").replace("\n", "<br/>")


def _format_time(iso: str) -> str:
    try:
        return datetime.fromisoformat(iso).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return iso


def export_pdf(case: Case) -> bytes:
    """
    Render *case* to PDF.

    Returns:
        The PDF document as ``bytes``.
    """
    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=18 * mm,
        rightMargin=18 * mm,
        topMargin=18 * mm,
        bottomMargin=18 * mm,
        title=f"Suma report: {case.title}",
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "ReportTitle",
        parent=styles["Title"],
        fontSize=18,
        textColor=colors.HexColor("#1a3a5c"),
        spaceAfter=4,
    )
    heading_style = ParagraphStyle(
        "ReportHeading",
        parent=styles["Heading2"],
        fontSize=12,
        textColor=colors.HexColor("#1a3a5c"),
        spaceBefore=10,
        spaceAfter=4,
    )
    normal = styles["Normal"]
    small = ParagraphStyle("Small", parent=normal, fontSize=8, textColor=colors.grey)
    user_style = ParagraphStyle(
        "UserMessage",
        parent=normal,
        backColor=colors.HexColor("#E8F5E8"),
        borderPadding=6,
        leftIndent=40,
        spaceAfter=10,
    )
    ai_style = ParagraphStyle(
        "AIMessage",
        parent=normal,
        backColor=colors.HexColor("#E1F5FE"),
        textColor=colors.HexColor("#0d3c61"),
        borderPadding=6,
        rightIndent=40,
        spaceAfter=10,
    )

    story = []

    # ---- Header ----
    story.append(Paragraph("Case Report", title_style))
    story.append(Paragraph(_para_text(_format_time(case.start_time)), small))
    story.append(Spacer(1, 4 * mm))

    # ---- Patient summary ----
    story.append(Paragraph("Patient Summary", heading_style))
    summary = [
        ["Professional role", case.role.value],
        ["Patient", f"{case.sex} {case.age}".strip()],
        ["Background", case.background],
        ["Medications", case.medications],
        ["Main symptoms", case.symptoms],
    ]
    summary_table = Table(
        [[label, Paragraph(_para_text(value or "-"), normal)] for label, value in summary],
        colWidths=[40 * mm, 134 * mm],
    )
    summary_table.setStyle(
        TableStyle([
            ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("ROWBACKGROUNDS", (0, 0), (-1, -1), [colors.white, colors.HexColor("#f0f4f8")]),
            ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#cccccc")),
            ("LEFTPADDING", (0, 0), (-1, -1), 6),
            ("TOPPADDING", (0, 0), (-1, -1), 4),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
        ])
    )
    story.append(summary_table)

    # ---- Transcript ----
    story.append(Paragraph("Conversation", heading_style))
    if not case.chat:
        story.append(Paragraph("No messages.", small))
    for message in case.chat:
        style = user_style if message.sender == Sender.user else ai_style
        story.append(Paragraph(_para_text(message.text), style))

    story.append(Spacer(1, 6 * mm))
    story.append(Paragraph(DISCLAIMER, small))

    doc.build(story)
    logger.info("PDF report built for case %s (%d messages)", case.id, len(case.chat))
    return buf.getvalue()
