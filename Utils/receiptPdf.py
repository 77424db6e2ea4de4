from io import BytesIO
from datetime import datetime
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from Utils.currency import format_taka

BRAND_NAME = "Fruit Panda"
BRAND_COLOR = colors.HexColor("#10b981")
MUTED_COLOR = colors.HexColor("#6b7280")
SUPPORT_EMAIL = "support@fruitpanda.com"
MARGIN = 50


def _text(value) -> str:
    return escape(str(value)) if value is not None else ""


def _styles():
    styles = getSampleStyleSheet()
    return {
        "brand": ParagraphStyle(
            "Brand", parent=styles["Title"], fontSize=24, leading=28,
            textColor=BRAND_COLOR, alignment=TA_CENTER, spaceAfter=4,
        ),
        "title": ParagraphStyle(
            "ReceiptTitle", parent=styles["Normal"], fontSize=16, leading=20,
            alignment=TA_CENTER, spaceAfter=14,
        ),
        "heading": ParagraphStyle(
            "Section", parent=styles["Heading3"], fontSize=12, spaceBefore=10, spaceAfter=4,
        ),
        "body": ParagraphStyle("Body", parent=styles["Normal"], fontSize=10, leading=14),
        "cell": ParagraphStyle("Cell", parent=styles["Normal"], fontSize=10, leading=12),
        "right": ParagraphStyle("Right", parent=styles["Normal"], fontSize=10, leading=14, alignment=TA_RIGHT),
        "total": ParagraphStyle(
            "Total", parent=styles["Normal"], fontSize=14, leading=18, alignment=TA_RIGHT,
            textColor=BRAND_COLOR, fontName="Helvetica-Bold", spaceBefore=4,
        ),
        "footer": ParagraphStyle(
            "Footer", parent=styles["Normal"], fontSize=9, leading=12,
            alignment=TA_CENTER, textColor=MUTED_COLOR,
        ),
    }


def _section(story, styles, heading, lines):
    story.append(Paragraph(f"<u>{_text(heading)}</u>", styles["heading"]))
    for label, value in lines:
        story.append(Paragraph(f"<b>{_text(label)}:</b> {_text(value)}", styles["body"]))


def _items_table(items, styles, width):
    data = [["Item", "Qty", "Price", "Total"]]
    for item in items:
        name = _text(item.name)
        if item.weight:
            name += f" <font color='#6b7280'>({_text(item.weight)})</font>"
        data.append([
            Paragraph(name, styles["cell"]),
            str(item.quantity),
            format_taka(item.price),
            format_taka(item.subtotal),
        ])

    table = Table(
        data,
        colWidths=[width - 3.3 * 72, 0.6 * 72, 1.3 * 72, 1.4 * 72],
        repeatRows=1,
    )
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f3f4f6")),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
        ("ALIGN", (1, 0), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("LINEBELOW", (0, 0), (-1, 0), 0.75, colors.HexColor("#d1d5db")),
        ("LINEBELOW", (0, 1), (-1, -1), 0.25, colors.HexColor("#e5e7eb")),
        ("TOPPADDING", (0, 0), (-1, -1), 5),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
    ]))
    return table


def generate_receipt_pdf(order, payment_details, receipt_number=None, issued_at=None) -> bytes:
    """Render a payment receipt for an order snapshot and return the PDF bytes.

    ``order`` is an OrderSnapshot and ``payment_details`` a PaymentDetails.
    Optional fields that are missing (instructions, transaction id, paid-at)
    are left out of the document.
    """
    issued_at = issued_at or datetime.utcnow()
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=A4,
        leftMargin=MARGIN, rightMargin=MARGIN, topMargin=MARGIN, bottomMargin=MARGIN,
        title=f"Receipt {receipt_number or order.order_number}", author=BRAND_NAME,
    )
    frame_width = A4[0] - 2 * MARGIN
    styles = _styles()
    story = []

    # ----- Header -----
    story.append(Paragraph(BRAND_NAME, styles["brand"]))
    story.append(Paragraph("Payment Receipt", styles["title"]))

    details = []
    if receipt_number:
        details.append(("Receipt Number", receipt_number))
    details += [
        ("Order Number", order.order_number),
        ("Date", issued_at.strftime("%d %B %Y")),
        ("Time", issued_at.strftime("%I:%M %p")),
    ]
    for label, value in details:
        story.append(Paragraph(f"<b>{_text(label)}:</b> {_text(value)}", styles["body"]))

    # ----- Customer / shipping / payment -----
    customer = order.customer
    _section(story, styles, "Customer Information", [
        ("Name", customer.name),
        ("Email", customer.email),
        ("Phone", customer.phone),
    ])

    address = order.shipping_address
    address_lines = [
        ("Name", address.full_name),
        ("Phone", address.phone),
        ("Address", address.address),
        ("Area", address.area),
        ("City", address.city),
    ]
    if address.instructions:
        address_lines.append(("Instructions", address.instructions))
    _section(story, styles, "Shipping Address", address_lines)

    payment_lines = [
        ("Method", (payment_details.method or "").upper()),
        ("Status", (payment_details.status or "").capitalize()),
    ]
    if payment_details.transaction_id:
        payment_lines.append(("Transaction ID", payment_details.transaction_id))
    if payment_details.paid_at:
        payment_lines.append(("Paid At", payment_details.paid_at.strftime("%d %B %Y, %I:%M %p")))
    _section(story, styles, "Payment Information", payment_lines)

    # ----- Items -----
    story.append(Paragraph("<u>Order Items</u>", styles["heading"]))
    story.append(_items_table(order.items, styles, frame_width))
    story.append(Spacer(1, 12))

    # ----- Summary -----
    pricing = order.pricing
    story.append(Paragraph("<b>Order Summary</b>", styles["right"]))
    story.append(Paragraph(f"Subtotal: {format_taka(pricing.subtotal)}", styles["right"]))
    if pricing.delivery_fee and pricing.delivery_fee > 0:
        story.append(Paragraph(f"Delivery Fee: {format_taka(pricing.delivery_fee)}", styles["right"]))
    if pricing.discount and pricing.discount > 0:
        story.append(Paragraph(f"Discount: -{format_taka(pricing.discount)}", styles["right"]))
    story.append(Paragraph(f"Total: {format_taka(pricing.total)}", styles["total"]))

    # ----- Footer -----
    story.append(Spacer(1, 30))
    story.append(Paragraph("Thank you for your order!", styles["footer"]))
    story.append(Paragraph(
        f"For any questions, please contact us at {SUPPORT_EMAIL}", styles["footer"]
    ))
    story.append(Paragraph(
        f"&copy; {issued_at.year} {BRAND_NAME}. All rights reserved.", styles["footer"]
    ))

    doc.build(story)
    return buffer.getvalue()
