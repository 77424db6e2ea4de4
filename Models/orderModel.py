import random
from datetime import datetime
from enum import Enum

from mongoengine import (
    Document, EmbeddedDocument, EmbeddedDocumentField, EmbeddedDocumentListField,
    StringField, FloatField, IntField, DateTimeField, ReferenceField
)


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    BKASH = "bkash"
    NAGAD = "nagad"
    COD = "cod"
    CARD = "card"


class RefundStatus(Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


def _choices(enum_cls):
    return [e.value for e in enum_cls]


# =====================================
#  EMBEDDED DOCUMENTS
# =====================================
class CustomerInfo(EmbeddedDocument):
    name = StringField(required=True)
    email = StringField(required=True)
    phone = StringField(required=True)


class ProductInfo(EmbeddedDocument):
    name = StringField(required=True)
    name_bn = StringField()
    image = StringField()
    seller = ReferenceField('User')


class OrderItem(EmbeddedDocument):
    # No catalog reference for frontend-only line items
    product = ReferenceField('Product', required=False)
    product_info = EmbeddedDocumentField(ProductInfo, required=True)
    quantity = IntField(required=True, min_value=1)
    price = FloatField(required=True, min_value=0)
    weight = StringField()
    subtotal = FloatField(required=True, min_value=0)


class ShippingAddress(EmbeddedDocument):
    full_name = StringField(required=True)
    phone = StringField(required=True)
    address = StringField(required=True)
    city = StringField(required=True)
    area = StringField(required=True)
    instructions = StringField()


class Pricing(EmbeddedDocument):
    subtotal = FloatField(required=True, default=0)
    delivery_fee = FloatField(default=0)
    discount = FloatField(default=0)
    total = FloatField(required=True, default=0)


class Payment(EmbeddedDocument):
    method = StringField(required=True, choices=_choices(PaymentMethod))
    status = StringField(choices=_choices(PaymentStatus), default=PaymentStatus.PENDING.value)
    transaction_id = StringField()
    paid_at = DateTimeField()
    submitted_at = DateTimeField()
    rejected_at = DateTimeField()
    rejected_by = ReferenceField('User')
    rejection_reason = StringField()
    admin_notes = StringField()


class TimelineEntry(EmbeddedDocument):
    status = StringField()
    message = StringField()
    timestamp = DateTimeField(default=datetime.utcnow)
    updated_by = ReferenceField('User')


class Tracking(EmbeddedDocument):
    tracking_number = StringField()
    carrier = StringField()
    estimated_delivery = DateTimeField()
    actual_delivery = DateTimeField()


class Notes(EmbeddedDocument):
    customer_notes = StringField()
    admin_notes = StringField()
    seller_notes = StringField()


class Cancellation(EmbeddedDocument):
    reason = StringField()
    cancelled_by = ReferenceField('User')
    cancelled_at = DateTimeField()
    refund_status = StringField(choices=_choices(RefundStatus), default=RefundStatus.PENDING.value)


# =====================================
#  ORDER MODEL
# =====================================
class Order(Document):
    order_number = StringField(required=True, unique=True)
    customer = ReferenceField('User', required=True)
    customer_info = EmbeddedDocumentField(CustomerInfo, required=True)
    items = EmbeddedDocumentListField(OrderItem)
    shipping_address = EmbeddedDocumentField(ShippingAddress, required=True)
    pricing = EmbeddedDocumentField(Pricing, required=True)
    payment = EmbeddedDocumentField(Payment, required=True)
    status = StringField(choices=_choices(OrderStatus), default=OrderStatus.PENDING.value)
    tracking = EmbeddedDocumentField(Tracking)
    timeline = EmbeddedDocumentListField(TimelineEntry)
    notes = EmbeddedDocumentField(Notes)
    cancellation = EmbeddedDocumentField(Cancellation)
    created_at = DateTimeField(default=datetime.utcnow)
    updated_at = DateTimeField(default=datetime.utcnow)

    meta = {
        'collection': 'orders',
        'indexes': [
            'customer',
            'status',
            'payment.status',
            '-created_at',
            'items.product'
        ]
    }

    # =====================================
    #  HELPERS
    # =====================================
    @staticmethod
    def generate_order_number() -> str:
        """ORD-<epoch millis>-<0..999>; the unique index catches the rare clash."""
        timestamp = int(datetime.utcnow().timestamp() * 1000)
        return f"ORD-{timestamp}-{random.randint(0, 999)}"

    def calculate_totals(self):
        """Recompute subtotal from stored line subtotals and re-derive total."""
        self.pricing.subtotal = sum(item.subtotal for item in self.items)
        self.pricing.total = self.pricing.subtotal + (self.pricing.delivery_fee or 0) - (self.pricing.discount or 0)
        return self

    def add_timeline(self, status: str, message: str, updated_by=None) -> TimelineEntry:
        entry = TimelineEntry(status=status, message=message, timestamp=datetime.utcnow(), updated_by=updated_by)
        self.timeline.append(entry)
        return entry

    def is_owned_by(self, user) -> bool:
        customer_id = self.customer.id if hasattr(self.customer, "id") else self.customer
        return user is not None and str(customer_id) == str(user.id)

    @property
    def customer_id(self):
        return self.customer.id if hasattr(self.customer, "id") else self.customer

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = self.generate_order_number()
        self.updated_at = datetime.utcnow()
        return super(Order, self).save(*args, **kwargs)

    # =====================================
    #  JSON SERIALIZERS
    # =====================================
    def to_summary(self) -> dict:
        return {
            'id': str(self.id),
            'order_number': self.order_number,
            'status': self.status,
            'total': self.pricing.total if self.pricing else None,
            'payment': _payment_json(self.payment),
        }

    def to_json(self) -> dict:
        return {
            'id': str(self.id),
            'order_number': self.order_number,
            'customer': str(self.customer_id) if self.customer else None,
            'customer_info': {
                'name': self.customer_info.name,
                'email': self.customer_info.email,
                'phone': self.customer_info.phone,
            } if self.customer_info else None,
            'items': [{
                'product': str(_ref_id(item.product)) if item.product else None,
                'product_info': {
                    'name': item.product_info.name,
                    'name_bn': item.product_info.name_bn,
                    'image': item.product_info.image,
                },
                'quantity': item.quantity,
                'price': item.price,
                'weight': item.weight,
                'subtotal': item.subtotal,
            } for item in self.items],
            'shipping_address': {
                'full_name': self.shipping_address.full_name,
                'phone': self.shipping_address.phone,
                'address': self.shipping_address.address,
                'city': self.shipping_address.city,
                'area': self.shipping_address.area,
                'instructions': self.shipping_address.instructions,
            } if self.shipping_address else None,
            'pricing': {
                'subtotal': self.pricing.subtotal,
                'delivery_fee': self.pricing.delivery_fee,
                'discount': self.pricing.discount,
                'total': self.pricing.total,
            } if self.pricing else None,
            'payment': _payment_json(self.payment),
            'status': self.status,
            'timeline': [{
                'status': entry.status,
                'message': entry.message,
                'timestamp': _iso(entry.timestamp),
                'updated_by': str(_ref_id(entry.updated_by)) if entry.updated_by else None,
            } for entry in self.timeline],
            'cancellation': {
                'reason': self.cancellation.reason,
                'cancelled_by': str(_ref_id(self.cancellation.cancelled_by)) if self.cancellation.cancelled_by else None,
                'cancelled_at': _iso(self.cancellation.cancelled_at),
                'refund_status': self.cancellation.refund_status,
            } if self.cancellation else None,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


def _ref_id(ref):
    return ref.id if hasattr(ref, "id") else ref


def _iso(value):
    return value.isoformat() if value else None


def _payment_json(payment):
    if not payment:
        return None
    return {
        'method': payment.method,
        'status': payment.status,
        'transaction_id': payment.transaction_id,
        'paid_at': _iso(payment.paid_at),
        'submitted_at': _iso(payment.submitted_at),
        'rejected_at': _iso(payment.rejected_at),
        'rejection_reason': payment.rejection_reason,
        'admin_notes': payment.admin_notes,
    }
