from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib import colors
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, Image
from io import BytesIO
import qrcode
from typing import Dict, Any
import logging

logger = logging.getLogger(__name__)


class InvoicePDFGenerator:
    """
    Generate PDF invoices for club members.

    Features:
    - Club header and member billing details
    - VAT breakdown on the discounted subtotal
    - QR code with invoice reference
    """

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        """Setup custom paragraph styles"""
        self.styles.add(ParagraphStyle(
            name='InvoiceTitle',
            fontSize=24,
            spaceAfter=20,
            alignment=1  # Center
        ))
        self.styles.add(ParagraphStyle(
            name='SectionHeader',
            fontSize=12,
            spaceAfter=10,
            fontName='Helvetica-Bold'
        ))
        self.styles.add(ParagraphStyle(
            name='SmallText',
            fontSize=8,
            textColor=colors.gray
        ))

    def generate_invoice_pdf(self, invoice_data: Dict[str, Any]) -> bytes:
        """
        Render an invoice to PDF.

        Args:
            invoice_data: Dict built by InvoiceService.get_invoice_data

        Returns:
            PDF bytes
        """
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            rightMargin=20*mm,
            leftMargin=20*mm,
            topMargin=20*mm,
            bottomMargin=20*mm
        )

        story = []
        story.extend(self._build_header(invoice_data))
        story.extend(self._build_member_section(invoice_data))
        story.extend(self._build_items_table(invoice_data))
        story.extend(self._build_totals_section(invoice_data))
        story.extend(self._build_qr_section(invoice_data))
        story.extend(self._build_footer(invoice_data))

        doc.build(story)
        pdf_bytes = buffer.getvalue()
        buffer.close()

        return pdf_bytes

    def _build_header(self, data: Dict) -> list:
        elements = []

        elements.append(Paragraph(data.get('club_name', 'Invoice'), self.styles['InvoiceTitle']))
        elements.append(Paragraph("Tax Invoice", self.styles['Normal']))
        elements.append(Spacer(1, 20))

        invoice_info = [
            ["Invoice Number:", data.get('invoice_number', 'N/A')],
            ["Issue Date:", data.get('issue_date') or '-'],
            ["Status:", data.get('status', 'DRAFT')],
        ]
        if data.get('due_date'):
            invoice_info.append(["Due Date:", data['due_date']])
        if data.get('paid_at'):
            invoice_info.append(["Paid At:", data['paid_at']])

        table = Table(invoice_info, colWidths=[90, 200])
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
            ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
        ]))
        elements.append(table)
        elements.append(Spacer(1, 20))

        return elements

    def _build_member_section(self, data: Dict) -> list:
        elements = []

        elements.append(Paragraph("Bill To:", self.styles['SectionHeader']))
        member = data.get('member', {})
        member_info = f"""
        {member.get('name', '')}<br/>
        {member.get('email', '')}<br/>
        {member.get('phone', '') or ''}
        """
        elements.append(Paragraph(member_info, self.styles['Normal']))
        elements.append(Spacer(1, 20))

        return elements

    def _build_items_table(self, data: Dict) -> list:
        elements = []
        currency = data.get('currency', 'SAR')

        table_data = [
            ['#', 'Description', 'Qty', 'Unit Price', 'Total']
        ]
        for idx, item in enumerate(data.get('items', []), 1):
            table_data.append([
                str(idx),
                item.get('description', 'Item'),
                str(item.get('quantity', 1)),
                f"{item.get('unit_price', 0):.2f} {currency}",
                f"{item.get('total_price', 0):.2f} {currency}"
            ])

        table = Table(table_data, colWidths=[30, 220, 50, 80, 80])
        table.setStyle(TableStyle([
            # Header style
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#1a5276')),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('ALIGN', (0, 0), (-1, 0), 'CENTER'),

            # Body style
            ('FONTNAME', (0, 1), (-1, -1), 'Helvetica'),
            ('ALIGN', (0, 1), (0, -1), 'CENTER'),
            ('ALIGN', (2, 1), (-1, -1), 'RIGHT'),

            ('GRID', (0, 0), (-1, -1), 0.5, colors.gray),
            ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#f8f9fa')]),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 8),
            ('TOPPADDING', (0, 0), (-1, -1), 8),
        ]))

        elements.append(table)
        elements.append(Spacer(1, 20))

        return elements

    def _build_totals_section(self, data: Dict) -> list:
        """Subtotal, discount, VAT and the amount still owed"""
        elements = []

        currency = data.get('currency', 'SAR')
        discount = data.get('discount_amount', 0)

        totals_data = [['Subtotal:', f"{data.get('subtotal', 0):.2f} {currency}"]]
        if discount > 0:
            totals_data.append(['Discount:', f"-{discount:.2f} {currency}"])
        totals_data.append([f"VAT ({data.get('vat_rate', 0):g}%):", f"{data.get('vat_amount', 0):.2f} {currency}"])
        total_row = len(totals_data)
        totals_data.append(['TOTAL:', f"{data.get('total_amount', 0):.2f} {currency}"])
        if data.get('paid_amount'):
            totals_data.append(['Paid:', f"{data['paid_amount']:.2f} {currency}"])
            totals_data.append(['Balance Due:', f"{data.get('balance_due', 0):.2f} {currency}"])

        table = Table(totals_data, colWidths=[350, 110])
        table.setStyle(TableStyle([
            ('ALIGN', (0, 0), (0, -1), 'RIGHT'),
            ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
            ('FONTNAME', (0, total_row), (-1, total_row), 'Helvetica-Bold'),
            ('FONTSIZE', (0, total_row), (-1, total_row), 12),
            ('LINEABOVE', (0, total_row), (-1, total_row), 1, colors.black),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 5),
        ]))

        elements.append(table)
        elements.append(Spacer(1, 30))

        return elements

    def _build_qr_section(self, data: Dict) -> list:
        """QR code with invoice reference"""
        elements = []

        qr_data = (
            f"INVOICE:{data.get('invoice_number', 'N/A')}|AMOUNT:{data.get('total_amount', 0)}"
            f"|VAT:{data.get('vat_amount', 0)}|DATE:{data.get('issue_date') or ''}"
        )
        qr = qrcode.QRCode(version=1, box_size=3, border=2)
        qr.add_data(qr_data)
        qr.make(fit=True)
        qr_img = qr.make_image(fill_color="black", back_color="white")

        qr_buffer = BytesIO()
        qr_img.save(qr_buffer, format='PNG')
        qr_buffer.seek(0)

        img = Image(qr_buffer, width=60, height=60)
        qr_table = Table(
            [[img, Paragraph(f"Scan to verify invoice<br/>Ref: {data.get('invoice_number', 'N/A')}", self.styles['SmallText'])]],
            colWidths=[70, 200]
        )
        qr_table.setStyle(TableStyle([
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ]))

        elements.append(qr_table)
        elements.append(Spacer(1, 20))

        return elements

    def _build_footer(self, data: Dict) -> list:
        elements = []

        contact = f"For inquiries, contact us at {data['club_email']}<br/>" if data.get('club_email') else ""
        footer_text = f"""
        Thank you for training with {data.get('club_name', 'us')}!<br/>
        {contact}
        <br/>
        This is a computer-generated invoice and does not require a signature.
        """
        if data.get('notes'):
            elements.append(Paragraph(f"Notes: {data['notes']}", self.styles['Normal']))
            elements.append(Spacer(1, 10))
        elements.append(Paragraph(footer_text, self.styles['SmallText']))

        return elements
