from __future__ import annotations

from io import BytesIO
from typing import Any
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

DEFAULT_COPIES = ["Vendor copy", "Logistics copy"]


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            "title",
            parent=base["Title"],
            fontName="Helvetica-Bold",
            fontSize=20,
            leading=24,
            alignment=1,
            spaceAfter=4,
        ),
        "subtitle": ParagraphStyle(
            "subtitle",
            parent=base["Normal"],
            fontName="Helvetica-Bold",
            fontSize=12,
            leading=14,
            alignment=1,
            spaceAfter=4,
        ),
        "copy_tag": ParagraphStyle(
            "copy_tag",
            parent=base["Normal"],
            fontName="Helvetica-Bold",
            fontSize=10,
            alignment=2,
            textColor=colors.HexColor("#444444"),
            spaceAfter=8,
        ),
        "section": ParagraphStyle(
            "section",
            parent=base["Normal"],
            fontName="Helvetica-Bold",
            fontSize=11,
            leading=13,
            spaceBefore=6,
            spaceAfter=3,
        ),
        "normal": ParagraphStyle(
            "normal",
            parent=base["Normal"],
            fontName="Helvetica",
            fontSize=10,
            leading=12,
        ),
        "small": ParagraphStyle(
            "small",
            parent=base["Normal"],
            fontName="Helvetica",
            fontSize=9,
            leading=11,
        ),
    }


def _header_table(order: dict[str, Any]) -> Table:
    rows = [
        ["Order", order.get("order_id", ""), "Status", str(order.get("status", "")).capitalize()],
        ["Vendor", order.get("vendor_name", ""), "Phone", order.get("phone_number", "")],
        ["Dropping point", order.get("location_name", ""), "Address", order.get("address", "")],
        ["Requested at", order.get("created_at", ""), "Assigned to", order.get("assigned_to_name", "")],
    ]
    table = Table(rows, colWidths=[30 * mm, 65 * mm, 30 * mm, 65 * mm])
    table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ("GRID", (0, 0), (-1, -1), 0.4, colors.black),
                ("BACKGROUND", (0, 0), (0, -1), colors.HexColor("#f6f6f6")),
                ("BACKGROUND", (2, 0), (2, -1), colors.HexColor("#f6f6f6")),
                ("LEFTPADDING", (0, 0), (-1, -1), 4),
                ("RIGHTPADDING", (0, 0), (-1, -1), 4),
                ("TOPPADDING", (0, 0), (-1, -1), 4),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ]
        )
    )
    return table


def _material_table(order: dict[str, Any]) -> Table:
    data = [
        ["Category", "Quantity", "Unit price", "Total"],
        [
            str(order.get("category", "")).capitalize(),
            str(order.get("quantity", "")),
            order.get("unit_price", ""),
            order.get("price", ""),
        ],
    ]
    table = Table(data, colWidths=[60 * mm, 40 * mm, 45 * mm, 45 * mm])
    table.setStyle(
        TableStyle(
            [
                ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#ececec")),
                ("ALIGN", (1, 1), (-1, -1), "RIGHT"),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                ("TOPPADDING", (0, 0), (-1, -1), 4),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
            ]
        )
    )
    return table


def _completion_block(order: dict[str, Any], styles: dict[str, ParagraphStyle]) -> list[Any]:
    story: list[Any] = [Paragraph("Completion", styles["section"])]
    completion = order.get("completion")
    if not completion:
        story.append(Paragraph("Not completed yet.", styles["small"]))
        return story
    story.append(
        Paragraph(
            f"Completed at {completion.get('completed_at', '')} by {escape(str(completion.get('completed_by_name', '')))}.",
            styles["small"],
        )
    )
    notes = completion.get("completion_notes") or "No notes."
    story.append(Paragraph(escape(notes), styles["normal"]))
    return story


def _signature_table() -> Table:
    table = Table(
        [
            ["", ""],
            ["Vendor", "Collector / Logistics"],
        ],
        colWidths=[95 * mm, 95 * mm],
        rowHeights=[13 * mm, 7 * mm],
    )
    table.setStyle(
        TableStyle(
            [
                ("LINEABOVE", (0, 0), (0, 0), 0.8, colors.black),
                ("LINEABOVE", (1, 0), (1, 0), 0.8, colors.black),
                ("FONTNAME", (0, 1), (-1, 1), "Helvetica"),
                ("FONTSIZE", (0, 1), (-1, 1), 9),
                ("ALIGN", (0, 1), (-1, 1), "CENTER"),
                ("LEFTPADDING", (0, 0), (-1, -1), 3),
                ("RIGHTPADDING", (0, 0), (-1, -1), 3),
            ]
        )
    )
    return table


def _copy_story(order: dict[str, Any], copy_tag: str, styles: dict[str, ParagraphStyle]) -> list[Any]:
    story: list[Any] = []
    story.append(Paragraph("Pickup Order", styles["title"]))
    story.append(Paragraph(order.get("company_name", "Recycle Hub"), styles["subtitle"]))
    story.append(Paragraph(copy_tag, styles["copy_tag"]))

    story.append(_header_table(order))
    story.append(Spacer(1, 6))

    story.append(Paragraph("Material", styles["section"]))
    story.append(_material_table(order))
    story.append(Spacer(1, 6))

    story.append(Paragraph("Comment", styles["section"]))
    story.append(Paragraph(escape(order.get("comment") or "No comment."), styles["normal"]))
    story.append(Spacer(1, 6))

    story.extend(_completion_block(order, styles))
    story.append(Spacer(1, 16))
    story.append(_signature_table())
    story.append(Spacer(1, 8))
    story.append(Paragraph(f"Generated at: {order.get('generated_at', '')}", styles["small"]))
    return story


def build_pickup_order_pdf(order: dict[str, Any]) -> bytes:
    output = BytesIO()
    document = SimpleDocTemplate(
        output,
        pagesize=A4,
        leftMargin=10 * mm,
        rightMargin=10 * mm,
        topMargin=10 * mm,
        bottomMargin=10 * mm,
        title=f"Pickup Order {order.get('order_id', '')}",
    )

    styles = _styles()
    story: list[Any] = []
    copies = order.get("copies", DEFAULT_COPIES)
    for index, copy_tag in enumerate(copies):
        story.extend(_copy_story(order, copy_tag, styles))
        if index < len(copies) - 1:
            story.append(PageBreak())

    document.build(story)
    return output.getvalue()
