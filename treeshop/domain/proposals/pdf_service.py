"""
Proposal PDF renderer
Generates the branded customer proposal: project details, investment
breakdown, terms and the acceptance block
"""

import hashlib
import io
import logging
from dataclasses import dataclass
from datetime import datetime

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    KeepTogether,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from ...config import BUSINESS_NAME, BUSINESS_PHONE
from ...utils.sanitization import sanitize_string, strip_html
from .schemas import ComputedTotals, ProposalCustomer, ProposalInputs, ProposalSnapshotView

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProposalDocument:
    """Everything the PDF shows, taken from the proposal's own snapshot"""

    proposal_id: str
    version: int
    customer: ProposalCustomer
    inputs: ProposalInputs
    computed: ComputedTotals
    snapshot: ProposalSnapshotView
    issued_at: datetime


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _text(value) -> str:
    """Escape free text for ReportLab's paragraph markup"""
    return sanitize_string(str(value)) if value is not None else ""


class ProposalPDFRenderer:
    """Render proposal PDFs with ReportLab"""

    def __init__(self, business_name: str = BUSINESS_NAME, business_phone: str = BUSINESS_PHONE):
        self.business_name = business_name
        self.business_phone = business_phone

        # PDF settings
        self.page_width, self.page_height = letter
        self.margin = 0.75 * inch
        self.content_width = self.page_width - (2 * self.margin)

        # Brand color (forest green)
        self.brand_color = colors.HexColor("#15803d")
        self.dark_gray = colors.HexColor("#1e293b")
        self.light_gray = colors.HexColor("#f1f5f9")

    def render(self, document: ProposalDocument) -> bytes:
        """Generate PDF and return bytes"""
        logger.info(f"📄 Generating proposal PDF for {document.proposal_id} v{document.version}")

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            rightMargin=self.margin,
            leftMargin=self.margin,
            topMargin=self.margin,
            bottomMargin=self.margin,
            title=f"Proposal - {document.customer.name}",
        )

        styles = getSampleStyleSheet()
        title_style = ParagraphStyle(
            "ProposalTitle",
            parent=styles["Heading1"],
            fontSize=22,
            textColor=self.brand_color,
            spaceAfter=6,
            alignment=1,
        )
        heading_style = ParagraphStyle(
            "ProposalHeading",
            parent=styles["Heading2"],
            fontSize=14,
            textColor=self.dark_gray,
            spaceAfter=8,
            spaceBefore=16,
        )
        body_style = ParagraphStyle(
            "ProposalBody",
            parent=styles["Normal"],
            fontSize=10,
            textColor=self.dark_gray,
            spaceAfter=6,
        )
        small_style = ParagraphStyle(
            "ProposalSmall", parent=body_style, fontSize=8, textColor=colors.grey
        )

        template = document.snapshot.template or {}
        story = [
            Paragraph(_text(self.business_name), title_style),
            Paragraph(_text(template.get("name", "Project Proposal")), body_style),
            Spacer(1, 0.25 * inch),
        ]

        story.append(self._info_table(document))
        story.append(Spacer(1, 0.3 * inch))

        story.append(Paragraph("INVESTMENT", heading_style))
        story.append(self._line_item_table(document.computed))
        story.append(Spacer(1, 0.15 * inch))
        story.append(self._totals_table(document.computed))

        if document.inputs.obstacles:
            story.append(Spacer(1, 0.1 * inch))
            story.append(
                Paragraph(
                    f"Site obstacles noted: {_text(', '.join(document.inputs.obstacles))}",
                    small_style,
                )
            )

        if document.inputs.notes:
            story.append(Paragraph("NOTES", heading_style))
            story.append(Paragraph(_text(document.inputs.notes), body_style))

        terms = document.snapshot.legalTerms
        if terms:
            story.append(Paragraph(_text(terms.get("title", "TERMS & CONDITIONS")).upper(), heading_style))
            for line in strip_html(terms.get("bodyRich")).splitlines():
                story.append(Paragraph(_text(line), body_style))
            if terms.get("shortDisclosure"):
                story.append(Paragraph(f"<i>{_text(terms['shortDisclosure'])}</i>", body_style))
            for disclaimer in terms.get("disclaimers") or []:
                story.append(Paragraph(f"• {_text(disclaimer)}", small_style))

        story.append(Spacer(1, 0.3 * inch))
        story.append(
            KeepTogether(
                [
                    Paragraph("ACCEPTANCE", heading_style),
                    Paragraph(
                        "This proposal is accepted online through the secure approval link sent "
                        "by e-mail. Acceptance records the signer's typed name, date and time.",
                        body_style,
                    ),
                    Paragraph(
                        f"Deposit due on acceptance: <b>{_money(document.computed.depositAmount)}</b>",
                        body_style,
                    ),
                ]
            )
        )

        story.append(Spacer(1, 0.4 * inch))
        story.append(
            Paragraph(
                f"<i>Questions? Call {_text(self.business_phone)}. "
                f"Reference {document.proposal_id} · version {document.version}.</i>",
                ParagraphStyle("Footer", parent=small_style, alignment=1),
            )
        )

        doc.build(story, onFirstPage=self._add_page_number, onLaterPages=self._add_page_number)

        pdf_bytes = buffer.getvalue()
        buffer.close()

        logger.info(f"✅ Generated proposal PDF ({len(pdf_bytes)} bytes)")
        return pdf_bytes

    def _info_table(self, document: ProposalDocument) -> Table:
        inputs = document.inputs
        computed = document.computed
        info_data = [
            ["Prepared for:", document.customer.name],
            ["Email:", document.customer.email],
            ["Property Address:", inputs.address],
            ["Acreage:", f"{inputs.acreage:g} acres"],
            ["Package:", f"{computed.packageDbh} DBH".strip() if computed.packageDbh else "-"],
            ["Date:", document.issued_at.strftime("%B %d, %Y")],
        ]
        if document.customer.phone:
            info_data.insert(2, ["Phone:", document.customer.phone])

        table = Table(info_data, colWidths=[1.5 * inch, self.content_width - 1.5 * inch])
        table.setStyle(
            TableStyle(
                [
                    ("FONT", (0, 0), (0, -1), "Helvetica-Bold", 10),
                    ("FONT", (1, 0), (1, -1), "Helvetica", 10),
                    ("TEXTCOLOR", (0, 0), (-1, -1), self.dark_gray),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
                ]
            )
        )
        return table

    def _line_item_table(self, computed: ComputedTotals) -> Table:
        cell_style = ParagraphStyle("Cell", fontName="Helvetica", fontSize=9, leading=11)
        table_data = [["Item", "Qty", "Rate", "Amount"]]
        for item in computed.breakdown:
            label = f"<b>{_text(item.serviceName)}</b>"
            if item.description:
                label += f"<br/>{_text(item.description)}"
            table_data.append(
                [
                    Paragraph(label, cell_style),
                    f"{item.quantity:g}",
                    _money(item.rate),
                    _money(item.total),
                ]
            )

        table = Table(
            table_data,
            colWidths=[3.6 * inch, 0.8 * inch, 1.0 * inch, 1.1 * inch],
            repeatRows=1,
        )
        table.setStyle(
            TableStyle(
                [
                    # Header row
                    ("BACKGROUND", (0, 0), (-1, 0), self.brand_color),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                    ("FONT", (0, 0), (-1, 0), "Helvetica-Bold", 10),
                    ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
                    ("TOPPADDING", (0, 0), (-1, 0), 8),
                    # Data rows
                    ("FONT", (1, 1), (-1, -1), "Helvetica", 9),
                    ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
                    ("VALIGN", (0, 1), (-1, -1), "TOP"),
                    ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, self.light_gray]),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ]
            )
        )
        return table

    def _totals_table(self, computed: ComputedTotals) -> Table:
        rows = [["Subtotal", _money(computed.subtotal)]]
        if computed.obstacleAdjustment:
            rows.append(["Obstacle adjustment", _money(computed.obstacleAdjustment)])
        if computed.travelSurcharge:
            rows.append(["Travel surcharge", _money(computed.travelSurcharge)])
        if computed.tax:
            rows.append(["Tax", _money(computed.tax)])
        rows.append(["Total", _money(computed.total)])
        rows.append(["Deposit due on acceptance", _money(computed.depositAmount)])
        rows.append(["Balance due on completion", _money(computed.balance)])

        total_row = len(rows) - 3
        table = Table(rows, colWidths=[self.content_width - 1.6 * inch, 1.6 * inch])
        table.setStyle(
            TableStyle(
                [
                    ("FONT", (0, 0), (-1, -1), "Helvetica", 10),
                    ("FONT", (0, total_row), (-1, total_row), "Helvetica-Bold", 12),
                    ("LINEABOVE", (0, total_row), (-1, total_row), 1, self.dark_gray),
                    ("TEXTCOLOR", (0, 0), (-1, -1), self.dark_gray),
                    ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                ]
            )
        )
        return table

    def _add_page_number(self, canvas_obj, doc):
        """Add page numbers to PDF"""
        page_num = canvas_obj.getPageNumber()
        canvas_obj.setFont("Helvetica", 9)
        canvas_obj.setFillColor(colors.grey)
        canvas_obj.drawRightString(
            self.page_width - self.margin, self.margin / 2, f"Page {page_num}"
        )

    @staticmethod
    def calculate_hash(pdf_bytes: bytes) -> str:
        """Calculate SHA-256 hash of PDF"""
        return hashlib.sha256(pdf_bytes).hexdigest()
