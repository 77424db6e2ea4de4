"""Immutable value types handed between the order pipeline and receipts.

A receipt freezes what the order looked like when payment was confirmed;
later edits to the order never reach an issued receipt or its PDF.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class CustomerSnapshot:
    name: str
    email: str
    phone: str


@dataclass(frozen=True)
class ItemSnapshot:
    name: str
    quantity: int
    price: float
    subtotal: float
    name_bn: Optional[str] = None
    weight: Optional[str] = None


@dataclass(frozen=True)
class AddressSnapshot:
    full_name: str
    phone: str
    address: str
    city: str
    area: str
    instructions: Optional[str] = None


@dataclass(frozen=True)
class PricingSnapshot:
    subtotal: float
    delivery_fee: float = 0.0
    discount: float = 0.0
    total: float = 0.0


@dataclass(frozen=True)
class PaymentDetails:
    method: str
    status: str = "paid"
    transaction_id: Optional[str] = None
    paid_at: Optional[datetime] = None

    @classmethod
    def for_order(cls, order, transaction_id: Optional[str] = None):
        """Payment details as recorded on a paid order.

        Orders confirmed without a reference still get one on the receipt.
        """
        payment = order.payment
        paid_at = payment.paid_at or datetime.utcnow()
        txn = transaction_id or payment.transaction_id or f"FP-{int(paid_at.timestamp() * 1000)}"
        return cls(method=payment.method, status=payment.status, transaction_id=txn, paid_at=paid_at)


@dataclass(frozen=True)
class OrderSnapshot:
    order_number: str
    customer: CustomerSnapshot
    items: Tuple[ItemSnapshot, ...]
    shipping_address: AddressSnapshot
    pricing: PricingSnapshot
    order_id: Optional[str] = None
    customer_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order):
        info = order.customer_info
        address = order.shipping_address
        pricing = order.pricing
        return cls(
            order_id=str(order.id) if order.id else None,
            order_number=order.order_number,
            customer_id=str(order.customer_id) if order.customer else None,
            customer=CustomerSnapshot(name=info.name, email=info.email, phone=info.phone),
            items=tuple(
                ItemSnapshot(
                    name=item.product_info.name,
                    name_bn=item.product_info.name_bn,
                    quantity=item.quantity,
                    price=item.price,
                    weight=item.weight,
                    subtotal=item.subtotal,
                )
                for item in order.items
            ),
            shipping_address=AddressSnapshot(
                full_name=address.full_name,
                phone=address.phone,
                address=address.address,
                city=address.city,
                area=address.area,
                instructions=address.instructions,
            ),
            pricing=PricingSnapshot(
                subtotal=pricing.subtotal or 0.0,
                delivery_fee=pricing.delivery_fee or 0.0,
                discount=pricing.discount or 0.0,
                total=pricing.total or 0.0,
            ),
            created_at=order.created_at,
        )


@dataclass(frozen=True)
class ReceiptSnapshot:
    receipt_id: str
    receipt_number: str
    order_number: str
    status: str
    pdf_url: Optional[str] = None
    generated_at: Optional[datetime] = None
    download_count: int = 0

    @classmethod
    def from_receipt(cls, receipt):
        return cls(
            receipt_id=str(receipt.id),
            receipt_number=receipt.receipt_number,
            order_number=receipt.order_number,
            status=receipt.status,
            pdf_url=receipt.pdf_url,
            generated_at=receipt.generated_at,
            download_count=receipt.metadata.download_count if receipt.metadata else 0,
        )

    def to_json(self) -> dict:
        return {
            "id": self.receipt_id,
            "receipt_number": self.receipt_number,
            "order_number": self.order_number,
            "status": self.status,
            "pdf_url": self.pdf_url,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }
