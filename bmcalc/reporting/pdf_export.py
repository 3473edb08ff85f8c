"""PDF export of measurement bulletins (landscape A4, ReportLab)."""

from __future__ import annotations

from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from bmcalc.reporting.templates import (
    SIGNATURES,
    Bulletin,
    format_currency,
    format_date,
    format_number,
)

# Styles
styles = getSampleStyleSheet()
title_style = ParagraphStyle(
    "BulletinTitle",
    parent=styles["Heading1"],
    fontSize=16,
    alignment=1,
    spaceAfter=12,
    textColor=colors.HexColor("#2d3748"),
)
normal_style = ParagraphStyle(
    "BulletinNormal",
    parent=styles["Normal"],
    fontSize=9,
    leading=12,
    textColor=colors.HexColor("#2d3748"),
)
cell_style = ParagraphStyle("BulletinCell", parent=normal_style, fontSize=8, leading=10)
footer_style = ParagraphStyle("BulletinFooter", parent=normal_style, fontSize=7)

MAX_DESCRIPTION = 60


def _truncate(text: str, limit: int = MAX_DESCRIPTION) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


def render_bulletin_pdf(bulletin: Bulletin) -> bytes:
    """Render ``bulletin`` to PDF bytes; formal templates get signature lines."""
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        rightMargin=15 * mm,
        leftMargin=15 * mm,
        topMargin=15 * mm,
        bottomMargin=15 * mm,
        title=bulletin.config.heading,
    )

    config = bulletin.config
    period = bulletin.period
    story = [Paragraph(escape(config.heading), title_style)]

    header = Table(
        [
            [f"Contratante: {config.client or '-'}", f"Medição Nº: {config.number}"],
            [
                f"Contratada: {bulletin.contractor or '-'}",
                f"Período: {format_date(period.start)} a {format_date(period.end)}",
            ],
            [f"Contrato: {config.contract or '-'}", ""],
        ],
        colWidths=[doc.width / 2, doc.width / 2],
    )
    header.setStyle(
        TableStyle(
            [
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
            ]
        )
    )
    story.append(header)
    story.append(Spacer(1, 6 * mm))

    data = [["ITEM", "CÓDIGO", "DESCRIÇÃO DO SERVIÇO", "UN", "QUANTIDADE", "P. UNITÁRIO", "VALOR TOTAL"]]
    for index, rollup in enumerate(bulletin.rollups, 1):
        data.append(
            [
                str(index),
                rollup.code,
                Paragraph(escape(_truncate(rollup.description)), cell_style),
                rollup.unit,
                format_number(rollup.quantity),
                format_currency(rollup.unit_price),
                format_currency(rollup.total_value),
            ]
        )

    t = Table(
        data,
        colWidths=[12 * mm, 25 * mm, 90 * mm, 15 * mm, 25 * mm, 30 * mm, 35 * mm],
        repeatRows=1,
    )
    t.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#2980b9")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("ALIGN", (0, 0), (0, -1), "CENTER"),
                ("ALIGN", (3, 0), (3, -1), "CENTER"),
                ("ALIGN", (4, 1), (-1, -1), "RIGHT"),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f5f5f5")]),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#e2e8f0")),
            ]
        )
    )
    story.append(t)
    story.append(Spacer(1, 4 * mm))
    story.append(
        Paragraph(
            f"<b>VALOR TOTAL: {format_currency(bulletin.total_value)}</b>",
            ParagraphStyle("BulletinTotal", parent=normal_style, fontSize=11, alignment=2),
        )
    )

    if config.template.formal:
        story.append(Spacer(1, 20 * mm))
        story.append(_signature_block(doc.width))

    story.append(Spacer(1, 6 * mm))
    story.append(
        Paragraph(
            f"Gerado em {bulletin.generated_at.strftime('%d/%m/%Y às %H:%M')}",
            footer_style,
        )
    )

    doc.build(story)
    return buffer.getvalue()


def _signature_block(width: float) -> Table:
    column = width / len(SIGNATURES)
    block = Table(
        [["" for _ in SIGNATURES], list(SIGNATURES)],
        colWidths=[column] * len(SIGNATURES),
        rowHeights=[10 * mm, 6 * mm],
    )
    style = [
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
    ]
    for col in range(len(SIGNATURES)):
        style.append(("LINEBELOW", (col, 0), (col, 0), 0.8, colors.black))
        style.append(("LEFTPADDING", (col, 0), (col, -1), 10 * mm))
        style.append(("RIGHTPADDING", (col, 0), (col, -1), 10 * mm))
    block.setStyle(TableStyle(style))
    return block
