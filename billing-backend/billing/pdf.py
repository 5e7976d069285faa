# billing/pdf.py
import io

from django.utils.html import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from billing.services.totals import money


def _fmt(amount, currency: str) -> str:
    return f"{currency} {money(amount):,.2f}"


def render_document_pdf(document, title: str) -> bytes:
    """
    Render a saved invoice or quotation to PDF bytes.

    ``document`` must expose ``number``, ``currency``, ``issue_date``, the
    stored totals and an ``items`` relation.
    """
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=0.75 * inch,
        rightMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
        title=f"{title} {document.number}",
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "DocTitle",
        parent=styles["Title"],
        fontSize=20,
        textColor=colors.HexColor("#1E293B"),
        spaceAfter=6,
    )
    normal = styles["Normal"]
    currency = document.currency

    story = [Paragraph(f"{title} {escape(document.number)}", title_style)]
    meta = [f"Issue date: {document.issue_date:%Y-%m-%d}"]
    due = getattr(document, "due_date", None) or getattr(document, "valid_until", None)
    if due:
        label = "Due date" if hasattr(document, "due_date") else "Valid until"
        meta.append(f"{label}: {due:%Y-%m-%d}")
    if document.client_id:
        client = document.client
        meta.append(f"Bill to: {escape(client.display_name)}")
        if client.email:
            meta.append(escape(client.email))
    for line in meta:
        story.append(Paragraph(line, normal))
    story.append(Spacer(1, 0.3 * inch))

    rows = [["Item", "Qty", "Unit", "Rate", "Amount"]]
    for item in document.items.all().order_by("position", "id"):
        name = escape(item.product_name)
        if item.description:
            name = f"{name}<br/><font size=8>{escape(item.description)}</font>"
        rows.append([
            Paragraph(name, normal),
            f"{item.quantity.normalize():f}",
            item.unit,
            _fmt(item.rate, currency),
            _fmt(item.amount, currency),
        ])

    table = Table(rows, colWidths=[2.8 * inch, 0.7 * inch, 0.6 * inch, 1.2 * inch, 1.2 * inch], repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#E2E8F0")),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("ALIGN", (1, 1), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.HexColor("#CBD5E1")),
    ]))
    story.append(table)
    story.append(Spacer(1, 0.25 * inch))

    totals = [
        ["Subtotal", _fmt(document.subtotal, currency)],
        ["Discount", f"-{_fmt(document.discount_amount, currency)}"],
        ["Tax", _fmt(document.tax_amount, currency)],
        ["Shipping", _fmt(document.shipping_charge, currency)],
        ["Total", _fmt(document.total_amount, currency)],
    ]
    if hasattr(document, "paid_amount"):
        totals.append(["Paid", _fmt(document.paid_amount, currency)])
        totals.append(["Balance due", _fmt(document.balance_due, currency)])
    totals_table = Table(totals, colWidths=[1.5 * inch, 1.5 * inch], hAlign="RIGHT")
    totals_table.setStyle(TableStyle([
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("FONTNAME", (0, 4), (-1, 4), "Helvetica-Bold"),
        ("LINEABOVE", (0, 4), (-1, 4), 0.5, colors.black),
    ]))
    story.append(totals_table)

    if document.notes:
        story.append(Spacer(1, 0.3 * inch))
        story.append(Paragraph("Notes", styles["Heading4"]))
        story.append(Paragraph(escape(document.notes), normal))
    if document.terms:
        story.append(Paragraph("Terms", styles["Heading4"]))
        story.append(Paragraph(escape(document.terms), normal))

    doc.build(story)
    return buf.getvalue()
