"""ReportLab proforma renderer"""

from decimal import Decimal
from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from src.app.services.pdf_service import PdfService, ProformaDocument

INK = colors.HexColor("#1F2933")
MUTED = colors.HexColor("#616E7C")
RULE = colors.HexColor("#CBD2D9")
STRIPE = colors.HexColor("#F5F7FA")
WATERMARK = colors.HexColor("#C0392B")

ROW_WIDTHS = [86 * mm, 22 * mm, 30 * mm, 32 * mm]


def format_cents(amount_cents: int) -> str:
    """1234 -> '$12.34', -500 -> '-$5.00'"""
    sign = "-" if amount_cents < 0 else ""
    return f"{sign}${abs(amount_cents) / 100:,.2f}"


def format_quantity(quantity) -> str:
    text = f"{Decimal(str(quantity)):,.4f}".rstrip("0").rstrip(".")
    return text or "0"


class ReportLabPdfService(PdfService):
    """Letter-size single document: issuer, summary, bill-to, rows, totals"""

    def __init__(self):
        base = getSampleStyleSheet()
        self.styles = {
            "issuer": ParagraphStyle("issuer", parent=base["Heading1"], fontSize=20, textColor=INK, spaceAfter=4),
            "address": ParagraphStyle("address", parent=base["Normal"], fontSize=9, textColor=MUTED),
            "banner": ParagraphStyle("banner", parent=base["Heading2"], fontSize=13, textColor=WATERMARK),
            "label": ParagraphStyle("label", parent=base["Normal"], fontSize=10, fontName="Helvetica-Bold"),
            "body": ParagraphStyle("body", parent=base["Normal"], fontSize=9.5),
            "note": ParagraphStyle("note", parent=base["Italic"], fontSize=8.5, textColor=MUTED),
        }

    def render_proforma(self, document: ProformaDocument) -> bytes:
        buffer = BytesIO()
        page = SimpleDocTemplate(
            buffer,
            pagesize=LETTER,
            title=f"Proforma {document.invoice_number}",
            leftMargin=18 * mm,
            rightMargin=18 * mm,
            topMargin=16 * mm,
            bottomMargin=16 * mm,
        )
        flowables = (
            self._issuer(document)
            + self._summary(document)
            + self._bill_to(document)
            + [self._rows(document), Spacer(1, 4 * mm), self._totals(document), Spacer(1, 12 * mm)]
            + [Paragraph(
                "Preview only. Amounts may change until the invoice is finalized.",
                self.styles["note"],
            )]
        )
        page.build(flowables)
        try:
            return buffer.getvalue()
        finally:
            buffer.close()

    def _issuer(self, document: ProformaDocument) -> list:
        parts = [Paragraph(escape(document.issuer_name), self.styles["issuer"])]
        for line in filter(None, document.issuer_address.splitlines()):
            parts.append(Paragraph(escape(line), self.styles["address"]))
        parts += [Spacer(1, 8 * mm), Paragraph("PROFORMA", self.styles["banner"]), Spacer(1, 3 * mm)]
        return parts

    def _summary(self, document: ProformaDocument) -> list:
        pairs = [
            ("Number", document.invoice_number),
            ("Status", document.status.upper()),
            ("Collection", document.collection_method.replace("_", " ")),
            ("Issued", document.issued_at.strftime("%Y-%m-%d")),
        ]
        if document.due_date is not None:
            pairs.append(("Due", document.due_date.isoformat()))

        table = Table([[label, value] for label, value in pairs], colWidths=[30 * mm, 90 * mm])
        table.setStyle(TableStyle([
            ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
            ("TEXTCOLOR", (0, 0), (0, -1), MUTED),
            ("FONTSIZE", (0, 0), (-1, -1), 9.5),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
        ]))
        return [table, Spacer(1, 8 * mm)]

    def _bill_to(self, document: ProformaDocument) -> list:
        parts = [Paragraph("Bill to", self.styles["label"])]
        parts += [Paragraph(escape(line), self.styles["body"]) for line in document.bill_to]
        parts.append(Spacer(1, 8 * mm))
        return parts

    def _rows(self, document: ProformaDocument) -> Table:
        data = [["Description", "Qty", "Unit price", "Amount"]]
        for row in document.rows:
            data.append([
                Paragraph(escape(row.description), self.styles["body"]),
                format_quantity(row.quantity),
                format_cents(row.unit_price_cents),
                format_cents(row.amount_cents),
            ])

        table = Table(data, colWidths=ROW_WIDTHS, repeatRows=1)
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), INK),
            ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ("LINEBELOW", (0, 0), (-1, -1), 0.4, RULE),
            ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, STRIPE]),
            ("TOPPADDING", (0, 0), (-1, -1), 5),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
        ]))
        return table

    def _totals(self, document: ProformaDocument) -> Table:
        data = [["Subtotal", format_cents(document.subtotal_cents)]]
        if document.processing_fee_cents:
            data.append(["Processing fee", format_cents(document.processing_fee_cents)])
        if document.tax_cents:
            data.append(["Tax", format_cents(document.tax_cents)])
        data.append(["Total due", format_cents(document.total_cents)])

        table = Table(data, colWidths=[ROW_WIDTHS[2], ROW_WIDTHS[3]], hAlign="RIGHT")
        table.setStyle(TableStyle([
            ("ALIGN", (0, 0), (-1, -1), "RIGHT"),
            ("FONTSIZE", (0, 0), (-1, -1), 10),
            ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
            ("LINEABOVE", (0, -1), (-1, -1), 1.2, INK),
            ("TOPPADDING", (0, 0), (-1, -1), 4),
        ]))
        return table
