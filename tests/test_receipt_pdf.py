import re
from datetime import datetime

from Utils.receiptPdf import generate_receipt_pdf
from Utils.snapshots import (
    OrderSnapshot, PaymentDetails, CustomerSnapshot, ItemSnapshot, AddressSnapshot, PricingSnapshot
)


def build_snapshot(item_count=2, instructions=None, discount=0.0, name="Mango"):
    items = tuple(
        ItemSnapshot(name=f"{name} {i}", quantity=2, price=150.0, subtotal=300.0, weight="1kg")
        for i in range(item_count)
    )
    subtotal = 300.0 * item_count
    delivery_fee = 0.0 if subtotal >= 1000 else 60.0
    return OrderSnapshot(
        order_number="ORD-1719830000000-42",
        customer=CustomerSnapshot(name="Rahim Uddin", email="rahim@example.com", phone="01712345678"),
        items=items,
        shipping_address=AddressSnapshot(
            full_name="Rahim Uddin", phone="01712345678", address="House 12, Road 5",
            city="Dhaka", area="Dhanmondi", instructions=instructions,
        ),
        pricing=PricingSnapshot(
            subtotal=subtotal, delivery_fee=delivery_fee, discount=discount,
            total=subtotal + delivery_fee - discount,
        ),
    )


def page_count(pdf: bytes) -> int:
    # The /Pages tree root carries the total; outlines report /Count 0
    return max(int(n) for n in re.findall(rb"/Count (\d+)", pdf))


def test_renders_pdf_bytes():
    pdf = generate_receipt_pdf(
        build_snapshot(instructions="Call before delivery", discount=20),
        PaymentDetails(method="bkash", transaction_id="BK123", paid_at=datetime(2025, 6, 1, 14, 5)),
        receipt_number="RCP-20250601-0001",
        issued_at=datetime(2025, 6, 1, 14, 6),
    )
    assert pdf.startswith(b"%PDF-")
    assert page_count(pdf) == 1


def test_optional_fields_may_be_missing():
    pdf = generate_receipt_pdf(build_snapshot(), PaymentDetails(method="cod", status="pending"))
    assert pdf.startswith(b"%PDF-")


def test_long_orders_span_pages():
    pdf = generate_receipt_pdf(build_snapshot(item_count=120), PaymentDetails(method="nagad"))
    assert page_count(pdf) > 1


def test_markup_in_names_is_escaped():
    pdf = generate_receipt_pdf(
        build_snapshot(name="<b>Mango & Lychee</b>", instructions="Gate <2>"),
        PaymentDetails(method="card", transaction_id="<script>"),
    )
    assert pdf.startswith(b"%PDF-")
