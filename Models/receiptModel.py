from datetime import datetime
from enum import Enum

from bson import ObjectId
from mongoengine import (
    Document, EmbeddedDocument, EmbeddedDocumentField, EmbeddedDocumentListField,
    StringField, FloatField, IntField, DateTimeField, ReferenceField
)

from Models.orderModel import CustomerInfo, ShippingAddress, Pricing
from Utils.snapshots import (
    OrderSnapshot, PaymentDetails, CustomerSnapshot, ItemSnapshot,
    AddressSnapshot, PricingSnapshot
)


class ReceiptStatus(Enum):
    GENERATED = "generated"
    SENT = "sent"
    DOWNLOADED = "downloaded"


# =====================================
#  EMBEDDED DOCUMENTS
# =====================================
class ReceiptItem(EmbeddedDocument):
    name = StringField(required=True)
    name_bn = StringField()
    quantity = IntField(required=True)
    price = FloatField(required=True)
    weight = StringField()
    subtotal = FloatField(required=True)


class ReceiptPayment(EmbeddedDocument):
    method = StringField(required=True)
    status = StringField(default="paid")
    transaction_id = StringField()
    paid_at = DateTimeField()


class ReceiptMetadata(EmbeddedDocument):
    ip_address = StringField()
    user_agent = StringField()
    download_count = IntField(default=0)


# =====================================
#  RECEIPT MODEL
# =====================================
class Receipt(Document):
    """Frozen copy of a paid order, created once per order."""
    receipt_number = StringField(required=True, unique=True)
    order = ReferenceField('Order', required=True, unique=True)
    order_number = StringField(required=True, unique=True)
    customer = ReferenceField('User', required=True)
    customer_info = EmbeddedDocumentField(CustomerInfo, required=True)
    items = EmbeddedDocumentListField(ReceiptItem)
    pricing = EmbeddedDocumentField(Pricing, required=True)
    payment = EmbeddedDocumentField(ReceiptPayment, required=True)
    shipping_address = EmbeddedDocumentField(ShippingAddress, required=True)
    pdf_path = StringField()
    pdf_url = StringField()
    generated_at = DateTimeField(default=datetime.utcnow)
    status = StringField(choices=[s.value for s in ReceiptStatus], default=ReceiptStatus.GENERATED.value)
    metadata = EmbeddedDocumentField(ReceiptMetadata, default=ReceiptMetadata)

    meta = {
        'collection': 'receipts',
        'indexes': [
            'customer',
            '-generated_at',
            'status'
        ]
    }

    @classmethod
    def from_snapshot(cls, snapshot: OrderSnapshot, payment: PaymentDetails, receipt_number: str):
        return cls(
            receipt_number=receipt_number,
            order=ObjectId(snapshot.order_id),
            order_number=snapshot.order_number,
            customer=ObjectId(snapshot.customer_id),
            customer_info=CustomerInfo(
                name=snapshot.customer.name,
                email=snapshot.customer.email,
                phone=snapshot.customer.phone,
            ),
            items=[
                ReceiptItem(
                    name=item.name, name_bn=item.name_bn, quantity=item.quantity,
                    price=item.price, weight=item.weight, subtotal=item.subtotal,
                )
                for item in snapshot.items
            ],
            pricing=Pricing(
                subtotal=snapshot.pricing.subtotal,
                delivery_fee=snapshot.pricing.delivery_fee,
                discount=snapshot.pricing.discount,
                total=snapshot.pricing.total,
            ),
            payment=ReceiptPayment(
                method=payment.method,
                status=payment.status,
                transaction_id=payment.transaction_id,
                paid_at=payment.paid_at,
            ),
            shipping_address=ShippingAddress(
                full_name=snapshot.shipping_address.full_name,
                phone=snapshot.shipping_address.phone,
                address=snapshot.shipping_address.address,
                city=snapshot.shipping_address.city,
                area=snapshot.shipping_address.area,
                instructions=snapshot.shipping_address.instructions,
            ),
            generated_at=datetime.utcnow(),
            status=ReceiptStatus.GENERATED.value,
            metadata=ReceiptMetadata(download_count=0),
        )

    def to_snapshot(self):
        """Rebuild the (OrderSnapshot, PaymentDetails) pair this receipt froze."""
        order_snapshot = OrderSnapshot(
            order_id=str(_ref_id(self.order)),
            order_number=self.order_number,
            customer_id=str(_ref_id(self.customer)),
            customer=CustomerSnapshot(
                name=self.customer_info.name,
                email=self.customer_info.email,
                phone=self.customer_info.phone,
            ),
            items=tuple(
                ItemSnapshot(
                    name=item.name, name_bn=item.name_bn, quantity=item.quantity,
                    price=item.price, weight=item.weight, subtotal=item.subtotal,
                )
                for item in self.items
            ),
            shipping_address=AddressSnapshot(
                full_name=self.shipping_address.full_name,
                phone=self.shipping_address.phone,
                address=self.shipping_address.address,
                city=self.shipping_address.city,
                area=self.shipping_address.area,
                instructions=self.shipping_address.instructions,
            ),
            pricing=PricingSnapshot(
                subtotal=self.pricing.subtotal or 0.0,
                delivery_fee=self.pricing.delivery_fee or 0.0,
                discount=self.pricing.discount or 0.0,
                total=self.pricing.total or 0.0,
            ),
        )
        payment = PaymentDetails(
            method=self.payment.method,
            status=self.payment.status,
            transaction_id=self.payment.transaction_id,
            paid_at=self.payment.paid_at,
        )
        return order_snapshot, payment

    def is_owned_by(self, user) -> bool:
        return user is not None and str(_ref_id(self.customer)) == str(user.id)

    @property
    def download_count(self) -> int:
        return self.metadata.download_count if self.metadata else 0

    # =====================================
    #  JSON SERIALIZERS
    # =====================================
    def to_summary(self) -> dict:
        return {
            'id': str(self.id),
            'receipt_number': self.receipt_number,
            'order_number': self.order_number,
            'total': self.pricing.total if self.pricing else None,
            'status': self.status,
            'pdf_url': self.pdf_url,
            'generated_at': self.generated_at.isoformat() if self.generated_at else None,
            'download_count': self.download_count,
        }

    def to_json(self) -> dict:
        data = self.to_summary()
        data.update({
            'order': str(_ref_id(self.order)) if self.order else None,
            'customer': str(_ref_id(self.customer)) if self.customer else None,
            'customer_info': {
                'name': self.customer_info.name,
                'email': self.customer_info.email,
                'phone': self.customer_info.phone,
            },
            'items': [{
                'name': item.name,
                'name_bn': item.name_bn,
                'quantity': item.quantity,
                'price': item.price,
                'weight': item.weight,
                'subtotal': item.subtotal,
            } for item in self.items],
            'pricing': {
                'subtotal': self.pricing.subtotal,
                'delivery_fee': self.pricing.delivery_fee,
                'discount': self.pricing.discount,
                'total': self.pricing.total,
            },
            'payment': {
                'method': self.payment.method,
                'status': self.payment.status,
                'transaction_id': self.payment.transaction_id,
                'paid_at': self.payment.paid_at.isoformat() if self.payment.paid_at else None,
            },
            'shipping_address': {
                'full_name': self.shipping_address.full_name,
                'phone': self.shipping_address.phone,
                'address': self.shipping_address.address,
                'city': self.shipping_address.city,
                'area': self.shipping_address.area,
                'instructions': self.shipping_address.instructions,
            },
        })
        return data


def _ref_id(ref):
    return ref.id if hasattr(ref, "id") else ref
