"""
PDF Generation Service.
Renders customer-facing quote PDFs using ReportLab.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import (
    SimpleDocTemplate,
    Paragraph,
    Spacer,
    Table,
    TableStyle,
)
from reportlab.lib.enums import TA_RIGHT

from app.gateways.base import DocumentOptions
from app.models.base import as_utc
from app.models.quote import Quote


class QuotePDFRenderer:
    """Builds the PDF version of a quote."""

    def __init__(self, storage_path: str):
        self.storage_path = Path(storage_path)

        self.primary_color = colors.HexColor("#059669")  # Green
        self.secondary_color = colors.HexColor("#047857")
        self.gray_color = colors.HexColor("#6B7280")
        self.light_gray = colors.HexColor("#F3F4F6")
        self.border_color = colors.HexColor("#E5E7EB")

    def _get_styles(self):
        """Get custom paragraph styles."""
        styles = getSampleStyleSheet()

        styles.add(ParagraphStyle(
            name='QuoteTitle',
            parent=styles['Heading1'],
            fontSize=24,
            textColor=self.primary_color,
            spaceAfter=6*mm,
        ))
        styles.add(ParagraphStyle(
            name='QuoteSubtitle',
            parent=styles['Normal'],
            fontSize=10,
            textColor=self.gray_color,
        ))
        styles.add(ParagraphStyle(
            name='SectionHeader',
            parent=styles['Heading2'],
            fontSize=12,
            textColor=self.secondary_color,
            spaceBefore=4*mm,
            spaceAfter=2*mm,
        ))
        styles.add(ParagraphStyle(
            name='NormalText',
            parent=styles['Normal'],
            fontSize=10,
            textColor=colors.black,
        ))
        styles.add(ParagraphStyle(
            name='SmallText',
            parent=styles['Normal'],
            fontSize=8,
            textColor=self.gray_color,
        ))
        styles.add(ParagraphStyle(
            name='RightAlign',
            parent=styles['Normal'],
            fontSize=10,
            alignment=TA_RIGHT,
        ))
        styles.add(ParagraphStyle(
            name='BoldText',
            parent=styles['Normal'],
            fontSize=10,
            fontName='Helvetica-Bold',
        ))

        return styles

    @staticmethod
    def format_currency(amount: Decimal) -> str:
        return f"${amount:,.2f}"

    @staticmethod
    def format_date(value: Optional[datetime]) -> str:
        if value is None:
            return "N/A"
        return value.strftime("%B %d, %Y")

    def filename_for(self, quote: Quote, generated_at: datetime) -> str:
        number = quote.quote_number.replace("/", "-")
        return f"quote_{number}_{generated_at.strftime('%Y%m%d%H%M%S')}.pdf"

    def _build(self, quote: Quote, filepath: Path, options: DocumentOptions, generated_at: datetime) -> None:
        styles = self._get_styles()

        doc = SimpleDocTemplate(
            str(filepath),
            pagesize=LETTER,
            rightMargin=20*mm,
            leftMargin=20*mm,
            topMargin=20*mm,
            bottomMargin=20*mm,
        )
        elements = []

        # ===== HEADER =====
        owner = quote.owner
        business_name = owner.display_name if owner else ""
        business_style = styles['QuoteTitle'] if options.include_company_logo else styles['BoldText']
        header_data = [
            [
                Paragraph(f"<b>{business_name}</b>", business_style),
                Paragraph("<b>QUOTE</b>", styles['QuoteTitle']),
            ],
            [
                Paragraph((owner.business_address or "") if owner else "", styles['SmallText']),
                Paragraph(f"# {quote.quote_number}", styles['QuoteSubtitle']),
            ],
            [
                Paragraph(f"Phone: {(owner.business_phone if owner else None) or 'N/A'}", styles['SmallText']),
                Paragraph(f"Date: {self.format_date(as_utc(quote.sent_at) or generated_at)}", styles['SmallText']),
            ],
            [
                Paragraph(f"Email: {(owner.business_email or owner.email) if owner else 'N/A'}", styles['SmallText']),
                Paragraph(f"Valid until: {self.format_date(as_utc(quote.expires_at))}", styles['SmallText']),
            ],
        ]
        header_table = Table(header_data, colWidths=[100*mm, 75*mm])
        header_table.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
        ]))
        elements.append(header_table)
        elements.append(Spacer(1, 10*mm))

        # ===== CUSTOMER =====
        customer = quote.customer
        elements.append(Paragraph("PREPARED FOR", styles['SectionHeader']))
        customer_info = f"<b>{customer.name}</b>"
        if customer.address:
            customer_info += f"<br/>{customer.address}"
        if customer.email:
            customer_info += f"<br/>Email: {customer.email}"
        if customer.phone:
            customer_info += f"<br/>Phone: {customer.phone}"
        elements.append(Paragraph(customer_info, styles['NormalText']))
        elements.append(Spacer(1, 8*mm))

        # ===== ITEMS =====
        elements.append(Paragraph(quote.title or "QUOTE DETAILS", styles['SectionHeader']))
        items_data = [
            [
                Paragraph("<b>Item</b>", styles['BoldText']),
                Paragraph("<b>Qty</b>", styles['BoldText']),
                Paragraph("<b>Unit Price</b>", styles['BoldText']),
                Paragraph("<b>Total</b>", styles['BoldText']),
            ]
        ]
        for item in quote.items:
            label = f"<b>{item.name}</b>"
            if item.description:
                label += f"<br/>{item.description}"
            items_data.append([
                Paragraph(label, styles['NormalText']),
                Paragraph(f"{item.quantity}", styles['RightAlign']),
                Paragraph(self.format_currency(item.unit_price), styles['RightAlign']),
                Paragraph(self.format_currency(item.total), styles['RightAlign']),
            ])

        items_table = Table(
            items_data,
            colWidths=[85*mm, 20*mm, 35*mm, 35*mm],
            repeatRows=1,
        )
        items_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), self.primary_color),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('FONTSIZE', (0, 1), (-1, -1), 9),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 3*mm),
            ('TOPPADDING', (0, 0), (-1, -1), 3*mm),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('LINEBELOW', (0, 1), (-1, -2), 0.5, self.border_color),
            ('LINEBELOW', (0, -1), (-1, -1), 1, self.border_color),
            *[('BACKGROUND', (0, i), (-1, i), self.light_gray)
              for i in range(2, len(items_data), 2)],
        ]))
        elements.append(items_table)
        elements.append(Spacer(1, 6*mm))

        # ===== TOTALS =====
        totals_data = [
            ["Subtotal", self.format_currency(quote.subtotal)],
            [f"Tax ({quote.tax_rate}%)", self.format_currency(quote.tax)],
            ["Total", self.format_currency(quote.total)],
        ]
        totals_table = Table(totals_data, colWidths=[130*mm, 45*mm])
        totals_table.setStyle(TableStyle([
            ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
            ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 10),
            ('LINEABOVE', (0, -1), (-1, -1), 1, self.primary_color),
            ('BACKGROUND', (0, -1), (-1, -1), self.light_gray),
        ]))
        elements.append(totals_table)
        elements.append(Spacer(1, 10*mm))

        if quote.notes:
            elements.append(Paragraph("NOTES", styles['SectionHeader']))
            elements.append(Paragraph(quote.notes, styles['NormalText']))
            elements.append(Spacer(1, 4*mm))

        if options.include_terms and quote.terms:
            elements.append(Paragraph("TERMS", styles['SectionHeader']))
            elements.append(Paragraph(quote.terms, styles['SmallText']))
            elements.append(Spacer(1, 4*mm))

        # ===== SIGNATURE =====
        if options.include_signature:
            elements.append(Paragraph("ACCEPTANCE", styles['SectionHeader']))
            if quote.signed_by:
                signed = f"Signed by <b>{quote.signed_by}</b> on {self.format_date(as_utc(quote.signed_at))}"
                elements.append(Paragraph(signed, styles['NormalText']))
            else:
                elements.append(Paragraph("Signature: ______________________   Date: __________", styles['NormalText']))

        elements.append(Spacer(1, 10*mm))
        elements.append(Paragraph(
            f"<i>Generated on {self.format_date(generated_at)} by FieldQuote</i>",
            styles['SmallText'],
        ))

        doc.build(elements)

    async def render(self, quote: Quote, options: DocumentOptions, generated_at: datetime) -> Path:
        """
        Render a quote to PDF in the storage directory.

        Returns:
            Path to the generated file
        """
        self.storage_path.mkdir(parents=True, exist_ok=True)
        filepath = self.storage_path / self.filename_for(quote, generated_at)
        await asyncio.to_thread(self._build, quote, filepath, options, generated_at)
        return filepath
